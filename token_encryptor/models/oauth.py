"""
Domain models for OAuth credential rows that carry sensitive values.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Type

from pydantic import BaseModel, Field


class EntityType(str, Enum):
    """Table-shaped groups of credentials migrated as a unit."""

    APPLICATION = "application"
    ACCESS_TOKEN = "access_token"
    AUTHORIZATION_CODE = "authorization_code"


# Applications first, then tokens, then codes. The tables are independent so
# any order works, but reports and logs rely on it staying fixed.
MIGRATION_ORDER: tuple[EntityType, ...] = (
    EntityType.APPLICATION,
    EntityType.ACCESS_TOKEN,
    EntityType.AUTHORIZATION_CODE,
)


class CredentialRecord(BaseModel):
    """A row read from a credential table.

    ``values`` maps each configured sensitive column to its current value, in
    column order. The orchestrator swaps plaintext for ciphertext in place
    before the row is written back; ``identity`` is only ever used to address
    the row.
    """

    entity_type: EntityType = Field(..., frozen=True)
    identity: str = Field(..., frozen=True)
    values: Dict[str, Optional[str]] = Field(default_factory=dict)

    def replace_value(self, column: str, value: str) -> None:
        """Replace the value held for ``column``."""
        if column not in self.values:
            raise KeyError(f"{column} is not a sensitive column of {self.entity_type.value}")
        self.values[column] = value

    def _value_at(self, position: int) -> Optional[str]:
        return list(self.values.values())[position]

    def __repr__(self) -> str:
        # Values are plaintext until migrated; keep them out of reprs.
        return (
            f"{type(self).__name__}(identity={self.identity!r}, "
            f"columns={list(self.values)!r})"
        )

    __str__ = __repr__


class OauthApplication(CredentialRecord):
    """OAuth consumer application keyed by its consumer key."""

    entity_type: EntityType = Field(EntityType.APPLICATION, frozen=True)

    @property
    def client_secret(self) -> Optional[str]:
        return self._value_at(0)


class AccessTokenRecord(CredentialRecord):
    """OAuth2 access/refresh token pair keyed by token id."""

    entity_type: EntityType = Field(EntityType.ACCESS_TOKEN, frozen=True)

    @property
    def access_token(self) -> Optional[str]:
        return self._value_at(0)

    @property
    def refresh_token(self) -> Optional[str]:
        return self._value_at(1)


class AuthorizationCodeRecord(CredentialRecord):
    """OAuth2 authorization code keyed by code id."""

    entity_type: EntityType = Field(EntityType.AUTHORIZATION_CODE, frozen=True)

    @property
    def authorization_code(self) -> Optional[str]:
        return self._value_at(0)


RECORD_TYPES: Dict[EntityType, Type[CredentialRecord]] = {
    EntityType.APPLICATION: OauthApplication,
    EntityType.ACCESS_TOKEN: AccessTokenRecord,
    EntityType.AUTHORIZATION_CODE: AuthorizationCodeRecord,
}


__all__ = [
    "AccessTokenRecord",
    "AuthorizationCodeRecord",
    "CredentialRecord",
    "EntityType",
    "MIGRATION_ORDER",
    "OauthApplication",
    "RECORD_TYPES",
]
