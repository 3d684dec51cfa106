"""
File-backed record of entity types whose migration has committed.

Ciphertext cannot be told apart from plaintext reliably, so a second run over
a migrated table would encrypt the ciphertext again. The ledger is how a
re-run knows to leave those tables alone. Each ledger file belongs to exactly
one database; pointing a run at another database with the same ledger is
refused rather than reported as already migrated.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from token_encryptor.models.oauth import EntityType


class LedgerMismatchError(ValueError):
    """Raised when a ledger file was written for a different database."""


class MigrationLedger:
    """JSON state file keyed by entity type and bound to one database."""

    def __init__(self, path: Path, *, database: Path) -> None:
        self._path = Path(path)
        self._database = str(Path(database).resolve())

    @property
    def path(self) -> Path:
        return self._path

    @property
    def database(self) -> str:
        return self._database

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        owner = data.get("database")
        if owner != self._database:
            raise LedgerMismatchError(
                f"Migration ledger {self._path} belongs to database "
                f"{owner or '<unrecorded>'}, not {self._database}. "
                "Set MIGRATION_LEDGER_PATH to the ledger of this database."
            )
        return data.get("entities", {})

    def verify(self) -> None:
        """Fail unless the ledger is absent or was written for this database."""
        self._load()

    def is_migrated(self, entity_type: EntityType) -> bool:
        return entity_type.value in self._load()

    def entry_for(self, entity_type: EntityType) -> Optional[Dict[str, Any]]:
        return self._load().get(entity_type.value)

    def record(self, entity_type: EntityType, count: int) -> None:
        """Mark ``entity_type`` as committed with ``count`` rows."""
        entities = self._load()
        entities[entity_type.value] = {
            "count": count,
            "migrated_at": datetime.now(timezone.utc).isoformat(),
        }
        if self._path.parent and not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        tmp_path.write_text(
            json.dumps(
                {"database": self._database, "entities": entities},
                indent=2,
                sort_keys=True,
            )
            + "\n",
            encoding="utf-8",
        )
        os.replace(tmp_path, self._path)


__all__ = ["LedgerMismatchError", "MigrationLedger"]
