"""
Orchestrates the one-time encryption of stored OAuth credentials.

Each entity type is migrated in its own pass: every row is read into memory,
every sensitive value is encrypted, and the rows are written back in a single
transaction. A pass that fails leaves its table untouched and the run carries
on with the next entity type.

Running the migration twice over the same table encrypts the ciphertext a
second time. Committed entity types are therefore recorded in a
:class:`~token_encryptor.clients.migration_ledger.MigrationLedger` and skipped
on later runs; without a ledger the operator must make sure each table is
migrated exactly once.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from token_encryptor.core.cancellation import CancellationToken
from token_encryptor.core.errors import (
    EncryptionError,
    MigrationCancelledError,
    MigrationError,
    StoreReadError,
    StoreWriteError,
)
from token_encryptor.models.migration import EntityOutcome, MigrationReport, OutcomeStatus
from token_encryptor.models.oauth import MIGRATION_ORDER, CredentialRecord, EntityType

LOGGER = logging.getLogger(__name__)


class RowRepository(Protocol):
    def fetch_all(
        self, entity_type: EntityType, *, cancel: Optional[CancellationToken] = None
    ) -> List[CredentialRecord]:
        ...

    def apply_batch(
        self,
        entity_type: EntityType,
        records: Sequence[CredentialRecord],
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> int:
        ...


class Encryptor(Protocol):
    def encrypt(
        self, plaintext: str, *, cancel: Optional[CancellationToken] = None
    ) -> str:
        ...


class Ledger(Protocol):
    def is_migrated(self, entity_type: EntityType) -> bool:
        ...

    def record(self, entity_type: EntityType, count: int) -> None:
        ...


class TokenMigrationService:
    """Run one fetch-encrypt-write pass per entity type."""

    def __init__(
        self,
        repository: RowRepository,
        gateway: Encryptor,
        *,
        ledger: Optional[Ledger] = None,
        order: Sequence[EntityType] = MIGRATION_ORDER,
    ) -> None:
        self._repository = repository
        self._gateway = gateway
        self._ledger = ledger
        self._order = tuple(order)

    def run(
        self,
        *,
        cancel: Optional[CancellationToken] = None,
        dry_run: bool = False,
        ignore_ledger: bool = False,
    ) -> MigrationReport:
        """Migrate every entity type and return the per-type outcomes."""
        report = MigrationReport(dry_run=dry_run)
        if ignore_ledger and self._ledger is not None:
            LOGGER.warning(
                "Ignoring the migration ledger; already migrated tables will be "
                "encrypted again"
            )

        for position, entity_type in enumerate(self._order):
            if cancel is not None and cancel.cancelled:
                for remaining in self._order[position:]:
                    report.outcomes.append(
                        EntityOutcome(
                            entity_type=remaining,
                            status=OutcomeStatus.CANCELLED,
                            detail=cancel.reason,
                        )
                    )
                break
            report.outcomes.append(
                self.migrate_entity(
                    entity_type,
                    cancel=cancel,
                    dry_run=dry_run,
                    ignore_ledger=ignore_ledger,
                )
            )

        for line in report.summary_lines():
            LOGGER.info("Migration result: %s", line)
        return report

    def migrate_entity(
        self,
        entity_type: EntityType,
        *,
        cancel: Optional[CancellationToken] = None,
        dry_run: bool = False,
        ignore_ledger: bool = False,
    ) -> EntityOutcome:
        """Run a single migration pass and translate failures into an outcome."""
        if (
            self._ledger is not None
            and not ignore_ledger
            and self._ledger.is_migrated(entity_type)
        ):
            LOGGER.warning(
                "Skipping %s: the ledger shows it was already migrated",
                entity_type.value,
            )
            return EntityOutcome(
                entity_type=entity_type, status=OutcomeStatus.ALREADY_MIGRATED
            )

        LOGGER.info("Migrating %s", entity_type.value)
        try:
            records = self._repository.fetch_all(entity_type, cancel=cancel)
        except StoreReadError as exc:
            return self._failure(entity_type, OutcomeStatus.FAILED_TO_READ, exc, cancel)
        except MigrationCancelledError as exc:
            return self._cancelled(entity_type, exc)

        rows_read = len(records)
        try:
            encrypted = self._encrypt_records(entity_type, records, cancel)
        except EncryptionError as exc:
            return self._failure(
                entity_type, OutcomeStatus.FAILED_TO_ENCRYPT, exc, cancel, rows_read
            )
        except MigrationCancelledError as exc:
            return self._cancelled(entity_type, exc, rows_read)
        LOGGER.info(
            "Encrypted %d values across %d %s rows",
            encrypted,
            rows_read,
            entity_type.value,
        )

        if dry_run:
            return EntityOutcome(
                entity_type=entity_type,
                status=OutcomeStatus.WOULD_MIGRATE,
                count=rows_read,
                rows_read=rows_read,
            )

        try:
            count = self._repository.apply_batch(entity_type, records, cancel=cancel)
        except StoreWriteError as exc:
            return self._failure(
                entity_type, OutcomeStatus.FAILED_TO_WRITE, exc, cancel, rows_read
            )
        except MigrationCancelledError as exc:
            return self._cancelled(entity_type, exc, rows_read)

        LOGGER.info("Committed %d %s rows", count, entity_type.value)
        outcome = EntityOutcome(
            entity_type=entity_type,
            status=OutcomeStatus.MIGRATED,
            count=count,
            rows_read=rows_read,
        )
        if self._ledger is not None:
            try:
                self._ledger.record(entity_type, count)
            except (OSError, ValueError):
                LOGGER.exception(
                    "Committed %s but could not update the migration ledger",
                    entity_type.value,
                )
                outcome.detail = "ledger not updated; do not re-run this table"
        return outcome

    def _encrypt_records(
        self,
        entity_type: EntityType,
        records: Sequence[CredentialRecord],
        cancel: Optional[CancellationToken],
    ) -> int:
        """Replace every non-null value with its ciphertext; stop at the first failure."""
        encrypted = 0
        for record in records:
            LOGGER.debug(
                "Encrypting %s values for identifier %s",
                entity_type.value,
                record.identity,
            )
            for column, plaintext in list(record.values.items()):
                if plaintext is None:
                    continue
                try:
                    ciphertext = self._gateway.encrypt(plaintext, cancel=cancel)
                except EncryptionError as exc:
                    raise EncryptionError(
                        f"Could not encrypt {column} for identifier {record.identity}; "
                        f"no {entity_type.value} rows were written.",
                        entity_type=entity_type,
                    ) from exc
                record.replace_value(column, ciphertext)
                encrypted += 1
        return encrypted

    def _failure(
        self,
        entity_type: EntityType,
        status: OutcomeStatus,
        exc: MigrationError,
        cancel: Optional[CancellationToken],
        rows_read: int = 0,
    ) -> EntityOutcome:
        # An interrupted driver call surfaces as a store error; report it as
        # the cancellation it was.
        if cancel is not None and cancel.cancelled:
            return self._cancelled(entity_type, exc, rows_read)
        LOGGER.error("Migration of %s failed: %s", entity_type.value, exc)
        return EntityOutcome(
            entity_type=entity_type,
            status=status,
            rows_read=rows_read,
            detail=str(exc),
        )

    @staticmethod
    def _cancelled(
        entity_type: EntityType, exc: MigrationError, rows_read: int = 0
    ) -> EntityOutcome:
        LOGGER.warning("Migration of %s cancelled: %s", entity_type.value, exc)
        return EntityOutcome(
            entity_type=entity_type,
            status=OutcomeStatus.CANCELLED,
            rows_read=rows_read,
            detail=str(exc),
        )


__all__ = ["Encryptor", "Ledger", "RowRepository", "TokenMigrationService"]
