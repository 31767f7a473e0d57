"""Apply the schema to the selected database.

Two strategies:

- declarative apply (``push``): force the live schema to match the models in
  one shot, accepting data loss. Used for sqlite and as the development
  fallback for postgresql.
- versioned migration (``alembic upgrade head``): replay the recorded
  revisions. Required for postgresql in production.

Both run inside a bounded retry loop; the data-access binding is regenerated
once the schema is in place.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

from tokendesk.bootstrap.commands import GENERATE_COMMAND, MIGRATE_COMMAND, PUSH_COMMAND, run_command
from tokendesk.bootstrap.errors import ConfigurationError, ProvisioningError
from tokendesk.bootstrap.options import BootstrapOptions, Provider

logger = logging.getLogger(__name__)

# Same call shape as run_command: runner(argv, cwd=..., env=...)
Runner = Callable[..., Awaitable[object]]


@dataclass
class ProvisioningOutcome:
    """Result of one retried step."""

    succeeded: bool
    attempts: int
    method: str
    last_error: Optional[BaseException] = None


def has_versioned_migrations(migrations_dir: Path) -> bool:
    """True if the directory holds at least one revision script."""
    try:
        entries = list(migrations_dir.iterdir())
    except OSError:
        return False
    return any(
        entry.is_file() and entry.suffix == ".py" and not entry.name.startswith((".", "_"))
        for entry in entries
    )


class DatabaseProvisioner:
    """Applies the schema with retry/backoff and regenerates the binding."""

    def __init__(
        self,
        options: BootstrapOptions,
        runner: Runner = run_command,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        push_command: Sequence[str] = PUSH_COMMAND,
        migrate_command: Sequence[str] = MIGRATE_COMMAND,
        generate_command: Sequence[str] = GENERATE_COMMAND,
    ):
        self.options = options
        self._runner = runner
        self._sleep = sleep
        self.push_command = tuple(push_command)
        self.migrate_command = tuple(migrate_command)
        self.generate_command = tuple(generate_command)

    async def _run(self, argv: Sequence[str]) -> object:
        return await self._runner(argv, cwd=self.options.project_dir, env=self.options.child_env())

    async def provision(self, provider: Provider, has_migrations: bool) -> ProvisioningOutcome:
        """Apply the schema for ``provider``, then regenerate the binding.

        Raises:
            ConfigurationError: production postgresql without migrations.
            ProvisioningError: the chosen strategy failed on every attempt.
        """
        if provider.is_ephemeral:
            outcome = await self.run_with_retries(self.push_command, attempts=1, method="push")
        else:
            outcome = await self._provision_durable(has_migrations)

        await self.generate_client()
        return outcome

    async def _provision_durable(self, has_migrations: bool) -> ProvisioningOutcome:
        attempts = self.options.retry_attempts

        if not has_migrations:
            if self.options.is_production:
                raise ConfigurationError(
                    "No migrations found and running in production. "
                    "Generate and ship migrations before deploying."
                )
            logger.info("No migrations found; pushing schema for development")
            return await self.run_with_retries(self.push_command, attempts, method="push")

        try:
            return await self.run_with_retries(self.migrate_command, attempts, method="migrate")
        except ProvisioningError as e:
            if self.options.is_production:
                raise
            logger.warning(f"Migrations failed; falling back to schema push for development: {e}")
            return await self.run_with_retries(self.push_command, attempts, method="push")

    async def run_with_retries(
        self, argv: Sequence[str], attempts: int, method: str = "command"
    ) -> ProvisioningOutcome:
        """Run ``argv`` up to ``attempts`` times, sleeping between failures."""
        attempts = max(1, attempts)
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                await self._run(argv)
                return ProvisioningOutcome(succeeded=True, attempts=attempt, method=method)
            except Exception as e:
                last_error = e
                logger.error(f"Attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    await self._sleep(self.options.retry_delay)

        raise ProvisioningError(
            f"{method} failed after {attempts} attempt(s): {last_error}",
            attempts=attempts,
            last_error=last_error,
        ) from last_error

    async def generate_client(self) -> None:
        """Regenerate the data-access binding from the schema document."""
        await self._run(self.generate_command)
