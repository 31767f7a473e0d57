"""Poll a dependency until it answers or a time budget runs out."""

import asyncio
import logging
import time
from typing import Awaitable, Callable

import httpx

from tokendesk.bootstrap.errors import ReadinessTimeoutError

logger = logging.getLogger(__name__)

Check = Callable[[], Awaitable[bool]]

POLL_INTERVAL = 1.0
REQUEST_TIMEOUT = 5.0


async def wait_until_ready(
    check: Check,
    timeout_seconds: float = 60,
    interval: float = POLL_INTERVAL,
    name: str = "dependency",
) -> None:
    """Invoke ``check`` until it returns truthy.

    A raised exception counts as not ready, and so does a check still
    pending when the budget runs out. Returns immediately after the first
    success.

    Raises:
        ReadinessTimeoutError: no check succeeded within ``timeout_seconds``.
    """
    deadline = time.monotonic() + timeout_seconds
    attempts = 0
    last_error = None

    while True:
        attempts += 1
        try:
            budget = max(deadline - time.monotonic(), 0)
            if await asyncio.wait_for(check(), budget):
                if attempts > 1:
                    logger.info(f"{name} ready after {attempts} attempts")
                return
        except asyncio.TimeoutError:
            last_error = "check did not answer in time"
            logger.debug(f"{name} not ready: {last_error}")
        except Exception as e:
            last_error = e
            logger.debug(f"{name} not ready: {e}")

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        await asyncio.sleep(min(interval, remaining))

    detail = f" (last error: {last_error})" if last_error else ""
    raise ReadinessTimeoutError(
        f"{name} not ready after {timeout_seconds:g}s ({attempts} attempts){detail}"
    )


def http_ok(url: str, timeout: float = REQUEST_TIMEOUT) -> Check:
    """Check that passes when GET ``url`` returns 2xx."""

    async def check() -> bool:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url)
            return response.is_success

    return check


def rpc_chain_id(url: str, timeout: float = REQUEST_TIMEOUT) -> Check:
    """Check that passes when ``url`` answers ``eth_chainId`` with a hex quantity."""

    async def check() -> bool:
        payload = {"jsonrpc": "2.0", "id": 1, "method": "eth_chainId", "params": []}
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, json=payload)
            if not response.is_success:
                return False
            result = response.json().get("result")
            if not isinstance(result, str) or not result.startswith("0x"):
                return False
            int(result, 16)
            return True

    return check
