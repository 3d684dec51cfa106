"""SQLite-backed access to the credential tables being migrated."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing, contextmanager
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple

from token_encryptor.core.cancellation import CancellationToken, raise_if_cancelled
from token_encryptor.core.config import EntityTableConfig
from token_encryptor.core.errors import StoreReadError, StoreWriteError
from token_encryptor.models.oauth import RECORD_TYPES, CredentialRecord, EntityType

LOGGER = logging.getLogger(__name__)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class SQLiteRowRepository:
    """Read-all and batch-update queries for each configured credential table.

    The connection must be opened with ``isolation_level=None`` so that reads
    never start a transaction; :meth:`apply_batch` is the only place one is
    opened. Calls are sequential; a batch cannot be applied from inside
    another batch.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        tables: Mapping[EntityType, EntityTableConfig],
    ) -> None:
        self._conn = connection
        self._tables = dict(tables)
        self._batch_open = False

    def table_for(self, entity_type: EntityType) -> EntityTableConfig:
        try:
            return self._tables[entity_type]
        except KeyError:
            raise StoreReadError(
                f"No table configured for {entity_type.value}.",
                entity_type=entity_type,
            ) from None

    def fetch_all(
        self,
        entity_type: EntityType,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> List[CredentialRecord]:
        """Load every row of the entity's table into memory."""
        config = self.table_for(entity_type)
        columns = (config.identity_column, *config.sensitive_columns)
        query = f"SELECT {', '.join(columns)} FROM {config.table}"
        record_type = RECORD_TYPES[entity_type]

        raise_if_cancelled(cancel)
        records: List[CredentialRecord] = []
        try:
            with closing(self._conn.cursor()) as cursor:
                cursor.execute(query)
                for row in cursor:
                    raise_if_cancelled(cancel)
                    records.append(
                        self._build_record(entity_type, record_type, config, row)
                    )
        except (sqlite3.Error, UnicodeDecodeError) as exc:
            raise StoreReadError(
                f"Unable to read {config.table}.", entity_type=entity_type
            ) from exc

        LOGGER.debug("Read %d rows from %s", len(records), config.table)
        return records

    def apply_batch(
        self,
        entity_type: EntityType,
        records: Sequence[CredentialRecord],
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> int:
        """Write every record back in one transaction and return rows affected.

        On any failure the transaction is rolled back before the error is
        raised, so either every row is updated or none is.
        """
        if self._batch_open:
            raise RuntimeError("apply_batch is not reentrant on a shared connection")
        config = self.table_for(entity_type)
        if not records:
            return 0

        assignments = ", ".join(f"{column} = ?" for column in config.sensitive_columns)
        statement = (
            f"UPDATE {config.table} SET {assignments} "
            f"WHERE {config.identity_column} = ?"
        )

        raise_if_cancelled(cancel)
        self._batch_open = True
        try:
            with self._transaction(entity_type, config) as cursor:
                cursor.executemany(
                    statement, self._bind_rows(config, records, cancel)
                )
                affected = cursor.rowcount
                raise_if_cancelled(cancel)
        finally:
            self._batch_open = False

        if affected != len(records):
            LOGGER.warning(
                "Updated %d of %d rows in %s; some identifiers no longer exist",
                affected,
                len(records),
                config.table,
            )
        return affected

    def verify_schema(self, entity_type: EntityType) -> None:
        """Check that the configured table and columns exist."""
        config = self.table_for(entity_type)
        columns = (config.identity_column, *config.sensitive_columns)
        try:
            with closing(self._conn.cursor()) as cursor:
                cursor.execute(
                    f"SELECT {', '.join(columns)} FROM {config.table} WHERE 1 = 0"
                )
        except sqlite3.Error as exc:
            raise StoreReadError(
                f"Table {config.table} does not match the configured columns.",
                entity_type=entity_type,
            ) from exc

    @staticmethod
    def _build_record(
        entity_type: EntityType,
        record_type: type[CredentialRecord],
        config: EntityTableConfig,
        row: Sequence[Any],
    ) -> CredentialRecord:
        identity = _as_text(row[0])
        if identity is None:
            raise StoreReadError(
                f"{config.table} contains a row without an identifier.",
                entity_type=entity_type,
            )
        values = {
            column: _as_text(row[index])
            for index, column in enumerate(config.sensitive_columns, start=1)
        }
        return record_type(identity=identity, values=values)

    @staticmethod
    def _bind_rows(
        config: EntityTableConfig,
        records: Sequence[CredentialRecord],
        cancel: Optional[CancellationToken],
    ) -> Iterator[Tuple[Optional[str], ...]]:
        for record in records:
            raise_if_cancelled(cancel)
            values = [record.values[column] for column in config.sensitive_columns]
            yield (*values, record.identity)

    @contextmanager
    def _transaction(
        self, entity_type: EntityType, config: EntityTableConfig
    ) -> Iterator[sqlite3.Cursor]:
        """Explicit BEGIN/COMMIT around a batch, ROLLBACK on any failure."""
        cursor = self._conn.cursor()
        try:
            try:
                cursor.execute("BEGIN")
            except sqlite3.Error as exc:
                raise StoreWriteError(
                    f"Unable to open a transaction on {config.table}.",
                    entity_type=entity_type,
                ) from exc
            try:
                yield cursor
                cursor.execute("COMMIT")
            except BaseException as exc:
                self._rollback(config)
                if isinstance(exc, sqlite3.Error):
                    raise StoreWriteError(
                        f"Unable to update {config.table}; changes rolled back.",
                        entity_type=entity_type,
                    ) from exc
                raise
        finally:
            cursor.close()

    def _rollback(self, config: EntityTableConfig) -> None:
        if not self._conn.in_transaction:
            return
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error:
            LOGGER.exception("Rollback of %s failed", config.table)
        else:
            LOGGER.info("Rolled back pending updates to %s", config.table)


__all__ = ["SQLiteRowRepository"]
