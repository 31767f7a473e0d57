"""Persistence layer: models, sessions, repository and schema tooling."""

from tokendesk.ledger.database import close_db, get_db, get_engine
from tokendesk.ledger.models import AddressBlacklist, Base, SupportedToken, Transaction
from tokendesk.ledger.repository import LedgerRepository, TokenInput

__all__ = [
    "AddressBlacklist",
    "Base",
    "LedgerRepository",
    "SupportedToken",
    "TokenInput",
    "Transaction",
    "close_db",
    "get_db",
    "get_engine",
]
