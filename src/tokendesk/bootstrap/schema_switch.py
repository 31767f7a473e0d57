"""Switch the schema document between database engines.

The document declares its engine with a single ``provider = "<engine>"``
marker. Switching rewrites that marker in place and keeps a byte-for-byte
backup next to the document until ``restore`` puts the original back.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tokendesk.bootstrap.options import Provider
from tokendesk.ledger.schema import declared_provider, provider_marker

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".__dev_backup__"


@dataclass(frozen=True)
class SchemaChange:
    """Result of ``SchemaSwitcher.reconcile``."""

    changed: bool
    original: Optional[str] = None


class SchemaSwitcher:
    """Reconciles the schema document with the requested provider."""

    def __init__(self, schema_path: Path):
        self.schema_path = schema_path
        self.backup_path = schema_path.with_name(schema_path.name + BACKUP_SUFFIX)

    def reconcile(self, requested: Provider) -> SchemaChange:
        """Point the document at ``requested``.

        Documents that already declare ``requested``, or that declare no
        known engine at all, are left untouched.
        """
        # newline="" keeps the text byte-identical on every platform
        with open(self.schema_path, encoding="utf-8", newline="") as f:
            current = f.read()

        declared = declared_provider(current)
        if declared == requested.value:
            return SchemaChange(changed=False)
        if declared is None:
            logger.warning(f"No known provider marker in {self.schema_path}; leaving it untouched")
            return SchemaChange(changed=False)

        self._write(self.backup_path, current)
        swapped = current.replace(provider_marker(declared), provider_marker(requested.value), 1)
        self._write(self.schema_path, swapped)

        logger.info(f"Schema provider switched {declared} -> {requested.value}")
        return SchemaChange(changed=True, original=current)

    def restore(self, changed: bool, original: Optional[str] = None) -> None:
        """Put the pre-switch document back and remove the backup.

        Safe to call repeatedly. Errors are logged, never raised.
        """
        if not changed:
            return

        try:
            text = original
            if text is None and self.backup_path.exists():
                with open(self.backup_path, encoding="utf-8", newline="") as f:
                    text = f.read()
            if text is not None:
                self._write(self.schema_path, text)
                logger.info(f"Schema document restored: {self.schema_path}")
            else:
                logger.warning("No original schema text available to restore")
        except OSError as e:
            logger.error(f"Failed to restore schema document: {e}")
        finally:
            try:
                self.backup_path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to remove schema backup {self.backup_path}: {e}")

    @staticmethod
    def _write(path: Path, text: str) -> None:
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
