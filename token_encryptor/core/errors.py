"""
Exception hierarchy for the migration engine.

Messages are built from entity types, table names, identifiers and counts.
Credential values never go into an exception message.
"""

from __future__ import annotations

from typing import Optional

from token_encryptor.models.oauth import EntityType


class MigrationError(Exception):
    """Base class for failures surfaced by the migration engine."""

    def __init__(self, message: str, *, entity_type: Optional[EntityType] = None) -> None:
        super().__init__(message)
        self.entity_type = entity_type


class StoreReadError(MigrationError):
    """Raised when rows cannot be fetched from a credential table."""


class StoreWriteError(MigrationError):
    """Raised after a failed batch update has been rolled back."""


class EncryptionError(MigrationError):
    """Raised when the encryption provider rejects a value or is unavailable."""


class MigrationCancelledError(MigrationError):
    """Raised when the caller cancels the run or its deadline passes."""


__all__ = [
    "EncryptionError",
    "MigrationCancelledError",
    "MigrationError",
    "StoreReadError",
    "StoreWriteError",
]
