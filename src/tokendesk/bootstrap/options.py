"""Bootstrap options parsed once from settings.

Everything downstream of ``BootstrapOptions.from_settings`` works with the
``Provider`` and ``RunMode`` enums instead of re-reading environment strings.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from tokendesk.bootstrap.errors import ConfigurationError
from tokendesk.config import DEFAULT_API_KEY, Settings
from tokendesk.ledger.schema import SCHEMA_FILE
from tokendesk.ledger.urls import POSTGRESQL, SQLITE, detect_provider, resolve_sqlite_file

DEFAULT_SQLITE_URL = "file:./dev.db?connection_limit=1"
DEFAULT_SQLITE_NAME = "dev.db"


class Provider(str, Enum):
    """Database engine the schema targets."""

    SQLITE = SQLITE
    POSTGRESQL = POSTGRESQL

    @property
    def is_ephemeral(self) -> bool:
        return self is Provider.SQLITE


class RunMode(str, Enum):
    """Runtime mode."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass
class ChainEnvironment:
    """Chain endpoint and signing key handed to the server and the seed job."""

    rpc_url: Optional[str] = None
    signing_key: Optional[str] = None

    @property
    def has_rpc(self) -> bool:
        return bool(self.rpc_url)

    def as_env(self) -> dict[str, str]:
        env = {}
        if self.rpc_url:
            env["FORK_RPC_URL"] = self.rpc_url
        if self.signing_key:
            env["PRIVATE_KEY"] = self.signing_key
        return env


@dataclass
class BootstrapOptions:
    """Validated startup configuration."""

    provider: Provider
    mode: RunMode
    database_url: str
    api_key: str
    project_dir: Path
    api_base_url: str
    retry_attempts: int
    retry_delay: float
    enable_fork: bool = False
    auto_seed: bool = False
    use_reload: bool = False
    ready_timeout: float = 60.0
    fork_command: str = "anvil"
    fork_port: int = 8545
    upstream_rpc_url: str = "https://ethereum.publicnode.com"
    chain: ChainEnvironment = field(default_factory=ChainEnvironment)
    api_host: str = "127.0.0.1"
    api_port: int = 4000
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.mode is RunMode.PRODUCTION

    @property
    def schema_path(self) -> Path:
        return self.project_dir / SCHEMA_FILE

    @property
    def migrations_dir(self) -> Path:
        return self.project_dir / "alembic" / "versions"

    @property
    def health_url(self) -> str:
        return f"{self.api_base_url}/healthz"

    def ephemeral_database_files(self) -> list[Path]:
        """Candidate throwaway database files, empty unless the engine is sqlite."""
        if not self.provider.is_ephemeral:
            return []
        candidates = []
        resolved = resolve_sqlite_file(self.database_url, self.project_dir)
        if resolved is not None:
            candidates.append(resolved)
        candidates.append(self.project_dir / DEFAULT_SQLITE_NAME)
        candidates.append(self.project_dir / "schema" / DEFAULT_SQLITE_NAME)

        unique = []
        for path in candidates:
            if path not in unique:
                unique.append(path)
        return unique

    def child_env(self) -> dict[str, str]:
        """Environment overrides every child process inherits."""
        return {
            "ENVIRONMENT": self.mode.value,
            "DATABASE_URL": self.database_url,
            "API_KEY": self.api_key,
            "PROJECT_DIR": str(self.project_dir),
            "API_HOST": self.api_host,
            "API_PORT": str(self.api_port),
            "LOG_LEVEL": self.log_level,
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "BootstrapOptions":
        """Parse and validate settings.

        Raises:
            ConfigurationError: production mode without a real API key or a
                connection string, or an unknown engine override.
        """
        mode = RunMode.PRODUCTION if settings.is_production else RunMode.DEVELOPMENT

        if mode is RunMode.PRODUCTION:
            if not settings.api_key:
                raise ConfigurationError("API_KEY is not set in production")
            if settings.api_key == DEFAULT_API_KEY:
                raise ConfigurationError(f"API_KEY must not be {DEFAULT_API_KEY!r} in production")
            if not settings.database_url:
                raise ConfigurationError("DATABASE_URL is not set in production")

        provider = cls._determine_provider(settings, mode)

        database_url = settings.database_url
        if provider is Provider.SQLITE and not database_url:
            database_url = DEFAULT_SQLITE_URL

        # sqlite is always applied once; the retry budget covers postgresql
        if settings.db_push_retries is not None:
            attempts = max(1, settings.db_push_retries)
        else:
            attempts = 20 if provider is Provider.POSTGRESQL else 1

        if mode is RunMode.PRODUCTION:
            use_reload = False
        elif settings.use_reload is None:
            use_reload = True
        else:
            use_reload = settings.use_reload

        return cls(
            provider=provider,
            mode=mode,
            database_url=database_url,
            api_key=settings.api_key or DEFAULT_API_KEY,
            project_dir=settings.project_dir.resolve(),
            api_base_url=settings.api_base_url,
            retry_attempts=attempts,
            retry_delay=settings.db_push_retry_delay_ms / 1000,
            enable_fork=settings.enable_fork,
            auto_seed=settings.auto_seed_on_start,
            use_reload=use_reload,
            ready_timeout=settings.ready_timeout_seconds,
            fork_command=settings.fork_command,
            fork_port=settings.fork_port,
            upstream_rpc_url=settings.upstream_rpc_url,
            chain=ChainEnvironment(rpc_url=settings.fork_rpc_url, signing_key=settings.private_key),
            api_host=settings.api_host,
            api_port=settings.api_port,
            log_level=settings.log_level,
        )

    @staticmethod
    def _determine_provider(settings: Settings, mode: RunMode) -> Provider:
        explicit = settings.db_provider.strip().lower()
        if explicit:
            try:
                return Provider(explicit)
            except ValueError:
                raise ConfigurationError(
                    f"DB_PROVIDER must be sqlite or postgresql, got {settings.db_provider!r}"
                ) from None

        detected = detect_provider(settings.database_url)
        if detected is not None:
            return Provider(detected)

        # No hint at all: local runs get sqlite, production gets postgresql
        return Provider.POSTGRESQL if mode is RunMode.PRODUCTION else Provider.SQLITE
