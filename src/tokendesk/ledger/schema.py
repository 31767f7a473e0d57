"""Schema document tooling.

The schema document (``schema/schema.toml``) declares which engine the
datasource targets. Two tools act on it:

    python -m tokendesk.ledger.schema push --accept-data-loss
        Force the live database to match the models in one shot.

    python -m tokendesk.ledger.schema generate
        Write the data-access binding (``schema/generated/client.json``) the
        API server reads to pick its driver.

Both read ``DATABASE_URL`` and ``PROJECT_DIR`` through the shared settings.
"""

import argparse
import asyncio
import json
import logging
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.schema import CreateIndex, CreateTable

from tokendesk.config import get_settings
from tokendesk.ledger.models import Base
from tokendesk.ledger.urls import ASYNC_DRIVERS, POSTGRESQL, SQLITE, resolve_sqlite_file, to_async_url

logger = logging.getLogger(__name__)

KNOWN_PROVIDERS = (SQLITE, POSTGRESQL)
SCHEMA_FILE = Path("schema") / "schema.toml"
GENERATED_FILE = Path("schema") / "generated" / "client.json"

_DIALECTS = {
    SQLITE: sqlite.dialect,
    POSTGRESQL: postgresql.dialect,
}


class SchemaDriftError(Exception):
    """Live tables differ from the models and data loss was not accepted."""

    def __init__(self, tables: list[str]):
        self.tables = tables
        super().__init__(
            f"Tables out of date: {', '.join(tables)}. Re-run with --accept-data-loss to recreate them."
        )


def provider_marker(provider: str) -> str:
    """The literal text that declares ``provider`` in the schema document."""
    return f'provider = "{provider}"'


def declared_provider(text: str) -> Optional[str]:
    """Return the known provider the document declares, if any."""
    for provider in KNOWN_PROVIDERS:
        if provider_marker(provider) in text:
            return provider
    return None


@dataclass
class SchemaDocument:
    """Parsed schema document."""

    path: Path
    provider: str

    @classmethod
    def load(cls, path: Path) -> "SchemaDocument":
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        datasource = data.get("datasource", {})
        provider = datasource.get("provider", "")
        if provider not in KNOWN_PROVIDERS:
            raise ValueError(f"Unsupported datasource provider {provider!r} in {path}")
        return cls(path=path, provider=provider)


def render_binding(provider: str) -> dict:
    """Build the generated binding for ``provider``: driver plus dialect DDL."""
    dialect = _DIALECTS[provider]()
    ddl = []
    for table in Base.metadata.sorted_tables:
        ddl.append(str(CreateTable(table).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda i: i.name or ""):
            ddl.append(str(CreateIndex(index).compile(dialect=dialect)).strip())
    return {
        "provider": provider,
        "driver": ASYNC_DRIVERS[provider],
        "tables": [table.name for table in Base.metadata.sorted_tables],
        "ddl": ddl,
    }


def generate(project_dir: Path) -> Path:
    """Regenerate the data-access binding from the schema document."""
    document = SchemaDocument.load(project_dir / SCHEMA_FILE)
    output = project_dir / GENERATED_FILE
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(render_binding(document.provider), indent=2) + "\n", encoding="utf-8")
    logger.info(f"Generated {document.provider} binding at {output}")
    return output


def read_binding_provider(project_dir: Path) -> Optional[str]:
    """Provider recorded in the generated binding, or None if not generated yet."""
    path = project_dir / GENERATED_FILE
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    provider = data.get("provider")
    return provider if provider in KNOWN_PROVIDERS else None


def _sync_tables(connection, accept_data_loss: bool) -> list[str]:
    """Drop drifted tables (when allowed) and create missing ones."""
    inspector = inspect(connection)
    existing = set(inspector.get_table_names())

    stale = []
    for table in Base.metadata.sorted_tables:
        if table.name not in existing:
            continue
        live_columns = {column["name"] for column in inspector.get_columns(table.name)}
        if live_columns != set(table.columns.keys()):
            stale.append(table)

    if stale and not accept_data_loss:
        raise SchemaDriftError([table.name for table in stale])

    for table in reversed(stale):
        logger.warning(f"Recreating table {table.name} (columns changed)")
        table.drop(connection)

    missing = [t.name for t in Base.metadata.sorted_tables if t.name not in existing]
    Base.metadata.create_all(connection)
    return [table.name for table in stale] + missing


async def push(database_url: str, project_dir: Path, accept_data_loss: bool = False) -> list[str]:
    """Apply the models to the database declared by the schema document.

    Returns the names of tables that were created or recreated.
    """
    document = SchemaDocument.load(project_dir / SCHEMA_FILE)

    if document.provider == SQLITE:
        db_file = resolve_sqlite_file(database_url, project_dir)
        if db_file is not None:
            db_file.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(to_async_url(database_url, document.provider, project_dir))
    try:
        async with engine.begin() as conn:
            changed = await conn.run_sync(_sync_tables, accept_data_loss)
    finally:
        await engine.dispose()

    if changed:
        logger.info(f"Schema pushed ({document.provider}): {', '.join(changed)}")
    else:
        logger.info(f"Schema already in sync ({document.provider})")
    return changed


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="tokendesk.ledger.schema", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)
    push_parser = sub.add_parser("push", help="Force the database to match the models")
    push_parser.add_argument("--accept-data-loss", action="store_true")
    sub.add_parser("generate", help="Regenerate the data-access binding")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    project_dir = settings.project_dir.resolve()

    try:
        if args.command == "push":
            if not settings.database_url:
                logger.error("DATABASE_URL is not set")
                return 1
            asyncio.run(push(settings.database_url, project_dir, args.accept_data_loss))
        else:
            generate(project_dir)
    except SchemaDriftError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
