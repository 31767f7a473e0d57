"""Connection-string helpers shared by the bootstrap and the ledger.

Connection strings arrive in two families: the ``file:./dev.db`` form used by
local sqlite setups, and regular SQLAlchemy-style URLs
(``sqlite:///``, ``postgresql://``, ``postgres://``).
"""

import re
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qsl, urlencode

SQLITE = "sqlite"
POSTGRESQL = "postgresql"

ASYNC_DRIVERS = {
    SQLITE: "sqlite+aiosqlite",
    POSTGRESQL: "postgresql+asyncpg",
}

_POSTGRES_RE = re.compile(r"^postgres(ql)?(\+\w+)?://", re.IGNORECASE)
_SQLITE_RE = re.compile(r"^sqlite(\+\w+)?://", re.IGNORECASE)

# Options other postgres clients accept that asyncpg.connect rejects
_DROPPED_PG_PARAMS = {"schema", "connection_limit", "pool_timeout", "pgbouncer", "socket_timeout"}
_RENAMED_PG_PARAMS = {"sslmode": "ssl"}


def detect_provider(url: str) -> Optional[str]:
    """Return the engine a connection string targets, or None if unknown."""
    if not url:
        return None
    if url.startswith("file:") or _SQLITE_RE.match(url):
        return SQLITE
    if _POSTGRES_RE.match(url):
        return POSTGRESQL
    return None


def resolve_sqlite_file(url: Optional[str], base_dir: Path) -> Optional[Path]:
    """Resolve the database file a sqlite connection string points at.

    Relative paths resolve against ``base_dir``. Query strings are dropped.
    In-memory databases and non-sqlite URLs yield None.
    """
    if not url or not isinstance(url, str):
        return None

    if url.startswith("file:"):
        file_part = url[len("file:"):].split("?", 1)[0]
    else:
        match = _SQLITE_RE.match(url)
        if not match:
            return None
        # sqlite:///relative.db and sqlite:////abs/path.db
        file_part = url[match.end():].split("?", 1)[0]
        if file_part.startswith("/"):
            file_part = file_part[1:]

    if not file_part or file_part == ":memory:":
        return None

    path = Path(file_part)
    if path.is_absolute():
        return path
    return (base_dir / file_part.lstrip("/")).resolve()


def to_async_url(url: str, provider: str, base_dir: Path) -> str:
    """Translate a connection string into the async SQLAlchemy URL for ``provider``."""
    driver = ASYNC_DRIVERS[provider]

    if provider == SQLITE:
        if url.endswith(":memory:"):
            return f"{driver}:///:memory:"
        path = resolve_sqlite_file(url, base_dir)
        if path is None:
            raise ValueError(f"Not a sqlite connection string: {url!r}")
        return f"{driver}:///{path}"

    match = _POSTGRES_RE.match(url)
    if not match:
        raise ValueError(f"Not a postgresql connection string: {url!r}")
    rest, _, query = url[match.end():].partition("?")
    params = [
        (_RENAMED_PG_PARAMS.get(key, key), value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if key not in _DROPPED_PG_PARAMS
    ]
    if params:
        rest = f"{rest}?{urlencode(params)}"
    return f"{driver}://{rest}"
