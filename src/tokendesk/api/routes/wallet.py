"""Signer wallet endpoint."""

from fastapi import APIRouter, HTTPException

from tokendesk.config import get_settings
from tokendesk.seed import signer_address

router = APIRouter()


@router.get("/wallet-address")
async def wallet_address() -> str:
    """Checksummed address of the configured PRIVATE_KEY."""
    address = signer_address(get_settings().private_key)
    if address is None:
        raise HTTPException(status_code=500, detail="PRIVATE_KEY is required to get address")
    return address
