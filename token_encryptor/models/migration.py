"""
Outcome models reported by a migration run.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from token_encryptor.models.oauth import EntityType


class OutcomeStatus(str, Enum):
    """Terminal state of one entity type's migration pass."""

    MIGRATED = "migrated"
    FAILED_TO_READ = "failed-to-read"
    FAILED_TO_ENCRYPT = "failed-to-encrypt"
    FAILED_TO_WRITE = "failed-to-write"
    WOULD_MIGRATE = "would-migrate"
    ALREADY_MIGRATED = "already-migrated"
    CANCELLED = "cancelled"


_COUNTED_STATUSES = {OutcomeStatus.MIGRATED, OutcomeStatus.WOULD_MIGRATE}
_FAILED_STATUSES = {
    OutcomeStatus.FAILED_TO_READ,
    OutcomeStatus.FAILED_TO_ENCRYPT,
    OutcomeStatus.FAILED_TO_WRITE,
    OutcomeStatus.CANCELLED,
}


class EntityOutcome(BaseModel):
    """Result of migrating a single entity type."""

    entity_type: EntityType
    status: OutcomeStatus
    count: int = 0
    rows_read: int = 0
    detail: Optional[str] = Field(
        None,
        description="Error summary; built from identifiers and counts only.",
    )

    @property
    def failed(self) -> bool:
        return self.status in _FAILED_STATUSES

    @property
    def label(self) -> str:
        """Operator-facing label such as ``migrated(3)``."""
        if self.status in _COUNTED_STATUSES:
            return f"{self.status.value}({self.count})"
        return self.status.value


class MigrationReport(BaseModel):
    """Per-entity outcomes of a run, in migration order."""

    outcomes: List[EntityOutcome] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        return not any(outcome.failed for outcome in self.outcomes)

    @property
    def cancelled(self) -> bool:
        return any(
            outcome.status is OutcomeStatus.CANCELLED for outcome in self.outcomes
        )

    def outcome_for(self, entity_type: EntityType) -> Optional[EntityOutcome]:
        for outcome in self.outcomes:
            if outcome.entity_type is entity_type:
                return outcome
        return None

    def summary_lines(self) -> List[str]:
        lines = []
        for outcome in self.outcomes:
            line = f"{outcome.entity_type.value}: {outcome.label}"
            if outcome.detail:
                line = f"{line} ({outcome.detail})"
            lines.append(line)
        return lines


__all__ = ["EntityOutcome", "MigrationReport", "OutcomeStatus"]
