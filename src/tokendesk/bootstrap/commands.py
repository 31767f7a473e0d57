"""Run external tools as child processes."""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence

from tokendesk.bootstrap.errors import CommandError

logger = logging.getLogger(__name__)

PYTHON = sys.executable

# Schema and migration tools the provisioner drives
PUSH_COMMAND = (PYTHON, "-m", "tokendesk.ledger.schema", "push", "--accept-data-loss")
GENERATE_COMMAND = (PYTHON, "-m", "tokendesk.ledger.schema", "generate")
MIGRATE_COMMAND = (PYTHON, "-m", "alembic", "upgrade", "head")
SEED_COMMAND = (PYTHON, "-m", "tokendesk.seed")


def build_env(overrides: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """The current environment plus ``overrides``."""
    env = dict(os.environ)
    if overrides:
        env.update(overrides)
    return env


async def run_command(
    argv: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> int:
    """Run a command to completion with inherited stdio.

    Raises:
        CommandError: the command exited non-zero or could not be started.
    """
    logger.info(f"Running: {' '.join(argv)}")
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            env=build_env(env),
        )
    except OSError as e:
        raise CommandError(argv, None) from e

    try:
        returncode = await proc.wait()
    except asyncio.CancelledError:
        # Don't leave the tool running when the caller gives up on it
        if proc.returncode is None:
            proc.terminate()
        raise

    if returncode != 0:
        raise CommandError(argv, returncode)
    return returncode
