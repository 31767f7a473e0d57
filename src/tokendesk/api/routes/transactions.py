"""Transfer ledger endpoints."""

from typing import Literal, Optional

from fastapi import APIRouter, Query

from tokendesk.api.validation import assert_supported_network, assert_valid_address
from tokendesk.ledger.database import get_db
from tokendesk.ledger.repository import LedgerRepository

router = APIRouter()


@router.get("/transactions")
async def list_transactions(
    from_address: Optional[str] = Query(None, alias="from"),
    to_address: Optional[str] = Query(None, alias="to"),
    network: Optional[str] = None,
    token_address: Optional[str] = Query(None, alias="tokenAddress"),
    order: Literal["asc", "desc"] = "desc",
) -> list[dict]:
    """Recorded transfers, newest first unless ``order=asc``."""
    if from_address:
        assert_valid_address(from_address, "from")
    if to_address:
        assert_valid_address(to_address, "to")
    if token_address:
        assert_valid_address(token_address, "tokenAddress")
    if network:
        network = assert_supported_network(network)

    async with get_db() as session:
        repo = LedgerRepository(session)
        rows = await repo.get_transactions(
            from_address=from_address,
            to_address=to_address,
            network=network,
            token_address=token_address,
            order=order,
        )
        return [row.to_dict() for row in rows]
