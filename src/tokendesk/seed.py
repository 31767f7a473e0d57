"""Seed the local fork's supported tokens.

Registers well-known mainnet ERC-20 tokens for the ``localhost`` network.
On a mainnet fork those contracts exist at the same addresses, so the admin
UI has real balances to show straight away.

Usage:
    python -m tokendesk.seed

Requires FORK_RPC_URL; without it the job logs and exits cleanly.
"""

import asyncio
import logging
import sys
from typing import Optional

import httpx
from eth_account import Account

from tokendesk.bootstrap.errors import ReadinessTimeoutError, SeedError
from tokendesk.bootstrap.readiness import http_ok, rpc_chain_id, wait_until_ready
from tokendesk.config import Settings, get_settings

logger = logging.getLogger(__name__)

SEED_NETWORK = "localhost"

SEED_TOKENS = [
    {
        "tokenAddress": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        "symbol": "WETH",
        "name": "Wrapped Ether",
        "decimals": 18,
    },
    {
        "tokenAddress": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "symbol": "USDC",
        "name": "USD Coin",
        "decimals": 6,
    },
    {
        "tokenAddress": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "symbol": "USDT",
        "name": "Tether USD",
        "decimals": 6,
    },
    {
        "tokenAddress": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        "symbol": "DAI",
        "name": "Dai Stablecoin",
        "decimals": 18,
    },
    {
        "tokenAddress": "0x514910771AF9Ca656af840dff83E8264EcF986CA",
        "symbol": "LINK",
        "name": "ChainLink Token",
        "decimals": 18,
    },
]


def signer_address(private_key: Optional[str]) -> Optional[str]:
    """Address for the configured signing key, if any."""
    if not private_key:
        return None
    return Account.from_key(private_key).address


async def add_supported_token(client: httpx.AsyncClient, api_key: str, token: dict) -> dict:
    response = await client.post(
        "/add-supported-token",
        json={"network": SEED_NETWORK, "token": token},
        headers={"x-api-key": api_key},
    )
    if not response.is_success:
        raise SeedError(
            f"Failed to add supported token {token['symbol']} ({response.status_code}): {response.text}"
        )
    return response.json()


async def seed(settings: Settings, ready_timeout: Optional[float] = None) -> list[str]:
    """Register the seed tokens through the API.

    Returns the symbols that were newly created.
    """
    timeout = settings.ready_timeout_seconds if ready_timeout is None else ready_timeout

    await wait_until_ready(rpc_chain_id(settings.fork_rpc_url), timeout, name="fork RPC")
    address = signer_address(settings.private_key)
    if address:
        logger.info(f"Seeding with signer {address}")

    base_url = settings.api_base_url
    await wait_until_ready(http_ok(f"{base_url}/healthz"), timeout, name="API")

    created = []
    async with httpx.AsyncClient(base_url=base_url, timeout=10.0) as client:
        for token in SEED_TOKENS:
            result = await add_supported_token(client, settings.api_key, token)
            if result.get("created"):
                created.append(token["symbol"])

    logger.info(f"Seed complete: {', '.join(created) or 'nothing new'}")
    return created


def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not settings.fork_rpc_url:
        logger.info("No RPC found; skipping seed")
        return 0

    try:
        asyncio.run(seed(settings))
    except (SeedError, ReadinessTimeoutError, httpx.HTTPError) as e:
        logger.error(f"Token registration failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
