"""Fire the one-shot seed job once the server is up."""

import logging
from pathlib import Path
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from tokendesk.bootstrap.commands import SEED_COMMAND, run_command

logger = logging.getLogger(__name__)


async def maybe_seed(
    enabled: bool,
    has_rpc: bool,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    command: Sequence[str] = SEED_COMMAND,
    runner: Callable[..., Awaitable[object]] = run_command,
) -> bool:
    """Run the seed job if enabled and a chain RPC is configured.

    Never raises; returns True only if the job ran and succeeded.
    """
    if not enabled:
        return False
    if not has_rpc:
        logger.info("Seeding enabled but no chain RPC configured; skipping seed")
        return False

    try:
        await runner(command, cwd=cwd, env=env)
    except Exception as e:
        logger.error(f"Seed failed, continuing startup: {e}")
        return False

    logger.info("Seed job complete")
    return True
