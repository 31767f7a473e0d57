"""Health check endpoints."""

from fastapi import APIRouter

from tokendesk.config import get_settings
from tokendesk.networks import get_network_config, get_supported_networks

router = APIRouter()


@router.get("/healthz")
async def health_check():
    """Liveness probe polled by the bootstrap supervisor."""
    return {"ok": True}


@router.get("/health/detailed")
async def detailed_health():
    """Detailed health check with configuration info."""
    settings = get_settings()
    return {
        "ok": True,
        "service": "tokendesk",
        "networks": {
            name: get_network_config(name).chain_id for name in get_supported_networks()
        },
        "config": settings.get_safe_dict(),
    }
