"""Application configuration using pydantic-settings.

Shared by the bootstrap supervisor, the API server and the seed job. Every
field maps to an environment variable of the same name (case-insensitive).
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_KEY = "dev-key"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="",
        description="Connection string (file:./dev.db, postgresql://...)",
    )
    db_provider: str = Field(
        default="", description="Explicit engine override: sqlite or postgresql"
    )
    db_push_retries: Optional[int] = Field(
        default=None, description="Provisioning attempts (default 20 for postgresql, 1 for sqlite)"
    )
    db_push_retry_delay_ms: int = Field(
        default=1500, description="Delay between provisioning attempts in milliseconds"
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="127.0.0.1", description="API server host")
    api_port: int = Field(default=4000, description="API server port")
    api_key: str = Field(default="", description="Admin API key (x-api-key header)")
    use_reload: Optional[bool] = Field(
        default=None, description="Run the API with auto-reload (defaults to on outside production)"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    log_level: str = Field(default="INFO", description="Logging level")
    project_dir: Path = Field(
        default=Path("."), description="Directory holding schema/, alembic/ and dev databases"
    )

    # ======================
    # Chain RPC Endpoints
    # ======================
    mainnet_rpc_url: str = Field(
        default="https://ethereum.publicnode.com", description="Ethereum mainnet RPC URL"
    )
    sepolia_rpc_url: str = Field(
        default="https://ethereum-sepolia.publicnode.com", description="Sepolia RPC URL"
    )
    polygon_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")

    # ======================
    # Local fork
    # ======================
    enable_fork: bool = Field(default=False, description="Start a local forked chain node")
    fork_command: str = Field(default="anvil", description="Fork node executable")
    fork_port: int = Field(default=8545, description="Local fork RPC port")
    upstream_rpc_url: str = Field(
        default="https://ethereum.publicnode.com", description="Upstream RPC the fork replays"
    )
    fork_rpc_url: Optional[str] = Field(
        default=None, description="RPC URL of an already running local chain"
    )
    private_key: Optional[str] = Field(
        default=None, description="Default signing key for the local chain"
    )

    # ======================
    # Startup
    # ======================
    auto_seed_on_start: bool = Field(
        default=False, description="Run the seed job once the API is reachable"
    )
    ready_timeout_seconds: float = Field(
        default=60, description="Readiness wait budget for the API and fork RPC"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() in ("production", "prod")

    @property
    def api_base_url(self) -> str:
        """Base URL the supervisor and seed job use to reach the API."""
        host = "127.0.0.1" if self.api_host in ("0.0.0.0", "") else self.api_host
        return f"http://{host}:{self.api_port}"

    def get_rpc_url(self, network: str) -> str:
        """Get RPC URL for a supported network."""
        rpc_map = {
            "ethereum": self.mainnet_rpc_url,
            "sepolia": self.sepolia_rpc_url,
            "matic": self.polygon_rpc_url,
            "localhost": self.fork_rpc_url or "http://127.0.0.1:8545",
        }
        return rpc_map.get(network.lower(), "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "api_key": "***" if self.api_key else "(not set)",
            "fork_rpc_url": self.fork_rpc_url or "(not set)",
            "private_key": "***" if self.private_key else "(not set)",
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
