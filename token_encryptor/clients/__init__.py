"""Expose constructed client wrappers."""

from .database import connect
from .migration_ledger import LedgerMismatchError, MigrationLedger
from .row_repository import SQLiteRowRepository

__all__ = [
    "LedgerMismatchError",
    "MigrationLedger",
    "SQLiteRowRepository",
    "connect",
]
