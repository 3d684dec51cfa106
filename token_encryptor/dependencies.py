"""
Factory functions that wire settings into the migration components.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from token_encryptor.clients import MigrationLedger, SQLiteRowRepository
from token_encryptor.core.config import AppSettings
from token_encryptor.services import (
    EncryptionGateway,
    FernetEncryptionProvider,
    TokenMigrationService,
)


def build_encryption_gateway(settings: AppSettings) -> EncryptionGateway:
    """Provide the production gateway backed by the Fernet provider."""
    secret = settings.security.token_encryption_secret
    if not secret:
        raise ValueError(
            "TOKEN_ENCRYPTION_SECRET must be set before credentials can be migrated."
        )
    return EncryptionGateway(FernetEncryptionProvider(secret=secret))


def build_row_repository(
    settings: AppSettings, connection: sqlite3.Connection
) -> SQLiteRowRepository:
    """Provide a repository over the configured credential tables."""
    return SQLiteRowRepository(connection, settings.migration.tables())


def build_ledger(settings: AppSettings) -> MigrationLedger:
    """Provide the state file that records committed entity types for this database."""
    return MigrationLedger(
        settings.migration.ledger_path, database=settings.database.path
    )


def build_migration_service(
    settings: AppSettings,
    connection: sqlite3.Connection,
    *,
    ledger: Optional[MigrationLedger] = None,
) -> TokenMigrationService:
    """Build the orchestrator with production collaborators."""
    return TokenMigrationService(
        repository=build_row_repository(settings, connection),
        gateway=build_encryption_gateway(settings),
        ledger=ledger if ledger is not None else build_ledger(settings),
    )


__all__ = [
    "build_encryption_gateway",
    "build_ledger",
    "build_migration_service",
    "build_row_repository",
]
