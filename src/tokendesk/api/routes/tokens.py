"""Network and supported-token endpoints."""

from fastapi import APIRouter

from tokendesk.api.validation import assert_supported_network
from tokendesk.ledger.database import get_db
from tokendesk.ledger.repository import LedgerRepository
from tokendesk.networks import get_supported_networks

router = APIRouter()


@router.get("/networks")
async def list_networks() -> list[str]:
    return get_supported_networks()


@router.get("/supported-tokens/{network}")
async def list_supported_tokens(network: str) -> list[dict]:
    """Enabled tokens registered for a network."""
    network = assert_supported_network(network)
    async with get_db() as session:
        repo = LedgerRepository(session)
        tokens = await repo.get_supported_tokens(network)
        return [token.to_dict() for token in tokens]
