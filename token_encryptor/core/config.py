"""
Settings models for the token migration tool.

Column names differ between identity-server releases (``ID`` versus
``CONSUMER_KEY`` for the application key, for example), so every table the
migration touches is described by a validated configuration record rather
than hardcoded into the queries.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Any, Dict, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from token_encryptor.models.oauth import EntityType


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class EntityTableConfig(BaseSettings):
    """Table and column names for one entity type.

    Names are interpolated into SQL, so they are restricted to plain
    identifiers (optionally schema-qualified for the table).
    """

    model_config = SettingsConfigDict(extra="ignore")

    table: str
    identity_column: str
    sensitive_columns: Annotated[tuple[str, ...], NoDecode]

    @field_validator("table")
    @classmethod
    def _check_table(cls, value: str) -> str:
        if not _TABLE_NAME.match(value):
            raise ValueError(f"{value!r} is not a valid table name")
        return value

    @field_validator("identity_column")
    @classmethod
    def _check_identity_column(cls, value: str) -> str:
        if not _IDENTIFIER.match(value):
            raise ValueError(f"{value!r} is not a valid column name")
        return value

    @field_validator("sensitive_columns", mode="before")
    @classmethod
    def _split_columns(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        """Support providing columns as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(column.strip() for column in value.split(",") if column.strip())

    @field_validator("sensitive_columns")
    @classmethod
    def _check_sensitive_columns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("at least one sensitive column is required")
        for column in value:
            if not _IDENTIFIER.match(column):
                raise ValueError(f"{column!r} is not a valid column name")
        if len(set(value)) != len(value):
            raise ValueError("sensitive columns must be unique")
        return value

    @model_validator(mode="after")
    def _identity_not_sensitive(self) -> "EntityTableConfig":
        if self.identity_column in self.sensitive_columns:
            raise ValueError(
                f"identity column {self.identity_column} cannot also be a sensitive column"
            )
        return self


class ApplicationTableConfig(EntityTableConfig):
    """OAuth consumer application registry."""

    model_config = SettingsConfigDict(env_prefix="MIGRATION_APPLICATIONS_", extra="ignore")

    table: str = "IDN_OAUTH_CONSUMER_APPS"
    identity_column: str = "CONSUMER_KEY"
    sensitive_columns: Annotated[tuple[str, ...], NoDecode] = ("CONSUMER_SECRET",)


class AccessTokenTableConfig(EntityTableConfig):
    """OAuth2 access-token store."""

    model_config = SettingsConfigDict(env_prefix="MIGRATION_ACCESS_TOKENS_", extra="ignore")

    table: str = "IDN_OAUTH2_ACCESS_TOKEN"
    identity_column: str = "TOKEN_ID"
    sensitive_columns: Annotated[tuple[str, ...], NoDecode] = (
        "ACCESS_TOKEN",
        "REFRESH_TOKEN",
    )


class AuthorizationCodeTableConfig(EntityTableConfig):
    """OAuth2 authorization-code store."""

    model_config = SettingsConfigDict(
        env_prefix="MIGRATION_AUTHORIZATION_CODES_", extra="ignore"
    )

    table: str = "IDN_OAUTH2_AUTHORIZATION_CODE"
    identity_column: str = "CODE_ID"
    sensitive_columns: Annotated[tuple[str, ...], NoDecode] = ("AUTHORIZATION_CODE",)


class DatabaseSettings(BaseSettings):
    """Location of the identity-server database."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    path: Path = Field(..., alias="IDENTITY_DB_PATH")
    timeout_seconds: float = Field(
        30.0,
        alias="IDENTITY_DB_TIMEOUT",
        description="How long to wait on a locked database before failing.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class MigrationSettings(BaseSettings):
    """Per-table configuration and run controls."""

    model_config = SettingsConfigDict(env_prefix="MIGRATION_", extra="ignore")

    applications: ApplicationTableConfig = Field(default_factory=ApplicationTableConfig)
    access_tokens: AccessTokenTableConfig = Field(default_factory=AccessTokenTableConfig)
    authorization_codes: AuthorizationCodeTableConfig = Field(
        default_factory=AuthorizationCodeTableConfig
    )
    ledger_path: Path = Field(
        Path("token_migration_ledger.json"),
        description="State file recording entity types that were already committed.",
    )
    deadline_seconds: Optional[float] = Field(
        None,
        gt=0,
        description="Optional wall-clock budget for a whole run.",
    )

    @model_validator(mode="after")
    def _distinct_tables(self) -> "MigrationSettings":
        tables = [config.table.lower() for config in self.tables().values()]
        if len(set(tables)) != len(tables):
            raise ValueError("each entity type must be migrated from its own table")
        return self

    def tables(self) -> Dict[EntityType, EntityTableConfig]:
        return {
            EntityType.APPLICATION: self.applications,
            EntityType.ACCESS_TOKEN: self.access_tokens,
            EntityType.AUTHORIZATION_CODE: self.authorization_codes,
        }


class AppSettings(BaseSettings):
    """Root settings object for the migration tool."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    log_file: Optional[Path] = Field(
        None,
        alias="APP_LOG_FILE",
        description="Optional file that keeps a copy of the run log.",
    )
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)


DEFAULT_ENV_FILE = Path(".env")


def load_settings(env_file: Optional[Path] = None) -> AppSettings:
    """Build settings from exported variables and one dotenv file.

    Exported variables take precedence over the file. ``env_file`` replaces the
    default ``.env`` in the working directory; a missing file is skipped.
    Nested settings read the same file, since pydantic-settings only applies
    ``_env_file`` to the model it is passed to.
    """
    source = env_file if env_file is not None else DEFAULT_ENV_FILE
    dotenv: Dict[str, Any] = {"_env_file": source, "_env_file_encoding": "utf-8"}
    return AppSettings(
        database=DatabaseSettings(**dotenv),
        security=SecuritySettings(**dotenv),
        migration=MigrationSettings(
            applications=ApplicationTableConfig(**dotenv),
            access_tokens=AccessTokenTableConfig(**dotenv),
            authorization_codes=AuthorizationCodeTableConfig(**dotenv),
            **dotenv,
        ),
        **dotenv,
    )


__all__ = [
    "AccessTokenTableConfig",
    "AppSettings",
    "ApplicationTableConfig",
    "AuthorizationCodeTableConfig",
    "DEFAULT_ENV_FILE",
    "DatabaseSettings",
    "EntityTableConfig",
    "MigrationSettings",
    "SecuritySettings",
    "load_settings",
]
