"""
Alembic migration environment.

Runs migrations against DATABASE_URL using the async driver for the engine the
schema document declares. Executed by Alembic, not imported by the API server.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from tokendesk.config import get_settings
from tokendesk.ledger.models import Base
from tokendesk.ledger.schema import SCHEMA_FILE, SchemaDocument
from tokendesk.ledger.urls import to_async_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _get_database_url() -> str:
    settings = get_settings()
    project_dir = settings.project_dir.resolve()
    document = SchemaDocument.load(project_dir / SCHEMA_FILE)
    return to_async_url(settings.database_url or "file:./dev.db", document.provider, project_dir)


def run_migrations_offline() -> None:
    # Offline: emit SQL without a DB connection.
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connectable = create_async_engine(_get_database_url(), poolclass=pool.NullPool)
    async with connectable.connect() as connection:
        await connection.run_sync(_run_sync_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
