"""Admin API endpoints (API-key protected)."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from tokendesk.api.validation import assert_supported_network, assert_valid_address
from tokendesk.config import get_settings
from tokendesk.ledger.database import get_db
from tokendesk.ledger.repository import LedgerRepository, TokenInput

router = APIRouter()


async def require_api_key(x_api_key: Optional[str] = Header(None)) -> bool:
    """Verify the x-api-key header against API_KEY."""
    settings = get_settings()

    if not settings.api_key:
        raise HTTPException(status_code=500, detail="Server misconfigured: API key not set")

    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")

    return True


class TokenPayload(BaseModel):
    """Token metadata as sent by the admin UI."""

    model_config = ConfigDict(populate_by_name=True)

    token_address: str = Field(..., alias="tokenAddress")
    symbol: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=128)
    decimals: int = Field(..., ge=0, le=36)
    enabled: bool = True


class AddTokenRequest(BaseModel):
    network: str
    token: TokenPayload


class RemoveTokenRequest(BaseModel):
    network: str
    token: str


class BlacklistRequest(BaseModel):
    address: str
    reason: Optional[str] = None


class AddTokenResponse(BaseModel):
    created: int
    skipped: int


@router.post("/add-supported-token", response_model=AddTokenResponse)
async def add_supported_token(
    body: AddTokenRequest, _: bool = Depends(require_api_key)
) -> AddTokenResponse:
    network = assert_supported_network(body.network)
    assert_valid_address(body.token.token_address, "tokenAddress")

    async with get_db() as session:
        repo = LedgerRepository(session)
        created, skipped = await repo.add_supported_tokens(
            network,
            [
                TokenInput(
                    token_address=body.token.token_address,
                    symbol=body.token.symbol,
                    name=body.token.name,
                    decimals=body.token.decimals,
                    enabled=body.token.enabled,
                )
            ],
        )
    return AddTokenResponse(created=created, skipped=skipped)


@router.post("/remove-supported-token")
async def remove_supported_token(
    body: RemoveTokenRequest, _: bool = Depends(require_api_key)
) -> dict:
    network = assert_supported_network(body.network)
    assert_valid_address(body.token, "token")

    async with get_db() as session:
        removed = await LedgerRepository(session).remove_supported_token(network, body.token)
    return {"removed": removed}


@router.post("/blacklist")
async def blacklist_address(body: BlacklistRequest, _: bool = Depends(require_api_key)) -> dict:
    assert_valid_address(body.address, "address")

    async with get_db() as session:
        await LedgerRepository(session).blacklist_address(body.address, body.reason)
    return {"message": "address blacklisted"}


@router.post("/unblacklist")
async def unblacklist_address(body: BlacklistRequest, _: bool = Depends(require_api_key)) -> dict:
    assert_valid_address(body.address, "address")

    async with get_db() as session:
        removed = await LedgerRepository(session).remove_from_blacklist(body.address)
    return {"removed": removed}
