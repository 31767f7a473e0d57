"""Engine and session management for the API server."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tokendesk.config import get_settings
from tokendesk.ledger.schema import read_binding_provider
from tokendesk.ledger.urls import POSTGRESQL, SQLITE, detect_provider, to_async_url

# Created lazily, reset by close_db()
_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    """Async SQLAlchemy URL for the configured database.

    The generated binding decides the engine when present, so the server
    follows whatever the schema document was switched to at startup.
    """
    settings = get_settings()
    project_dir = settings.project_dir.resolve()
    db_url = settings.database_url or "file:./dev.db"

    provider = read_binding_provider(project_dir) or detect_provider(db_url) or SQLITE
    return to_async_url(db_url, provider, project_dir)


def get_engine() -> AsyncEngine:
    """Engine for the configured database, created on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = get_database_url()
        _engine = create_async_engine(
            url,
            echo=settings.log_level.upper() == "DEBUG" and not settings.is_production,
            # Postgres connections go stale across database restarts
            pool_pre_ping=detect_provider(url) == POSTGRESQL,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _sessions
    if _sessions is None:
        _sessions = async_sessionmaker(get_engine(), expire_on_commit=False, autoflush=False)
    return _sessions


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: committed on success, rolled back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def close_db() -> None:
    """Dispose the engine; the next get_engine() call starts fresh."""
    global _engine, _sessions
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessions = None
