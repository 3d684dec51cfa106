try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest
from pydantic import ValidationError

from token_encryptor.core.config import (
    AccessTokenTableConfig,
    AppSettings,
    ApplicationTableConfig,
    AuthorizationCodeTableConfig,
    MigrationSettings,
    load_settings,
)
from token_encryptor.models.oauth import EntityType


def test_default_tables_match_identity_server_schema() -> None:
    tables = MigrationSettings().tables()

    assert tables[EntityType.APPLICATION].table == "IDN_OAUTH_CONSUMER_APPS"
    assert tables[EntityType.APPLICATION].identity_column == "CONSUMER_KEY"
    assert tables[EntityType.APPLICATION].sensitive_columns == ("CONSUMER_SECRET",)
    assert tables[EntityType.ACCESS_TOKEN].sensitive_columns == (
        "ACCESS_TOKEN",
        "REFRESH_TOKEN",
    )
    assert tables[EntityType.AUTHORIZATION_CODE].identity_column == "CODE_ID"


def test_table_columns_can_be_overridden_from_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("MIGRATION_APPLICATIONS_IDENTITY_COLUMN", "ID")
    monkeypatch.setenv(
        "MIGRATION_ACCESS_TOKENS_SENSITIVE_COLUMNS", "ACCESS_TOKEN, REFRESH_TOKEN"
    )
    monkeypatch.setenv("MIGRATION_LEDGER_PATH", "/var/lib/idp/ledger.json")

    settings = MigrationSettings()

    assert settings.applications.identity_column == "ID"
    assert settings.applications.table == "IDN_OAUTH_CONSUMER_APPS"
    assert settings.access_tokens.sensitive_columns == ("ACCESS_TOKEN", "REFRESH_TOKEN")
    assert settings.ledger_path == Path("/var/lib/idp/ledger.json")


@pytest.mark.parametrize(
    "overrides",
    [
        {"table": "IDN_OAUTH_CONSUMER_APPS; DROP TABLE X"},
        {"identity_column": "CONSUMER KEY"},
        {"sensitive_columns": ()},
        {"sensitive_columns": ("CONSUMER_SECRET", "CONSUMER_SECRET")},
        {"sensitive_columns": ("CONSUMER_KEY",)},
    ],
)
def test_invalid_table_config_is_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        ApplicationTableConfig(**overrides)


def test_schema_qualified_table_names_are_accepted() -> None:
    config = AuthorizationCodeTableConfig(table="idp.IDN_OAUTH2_AUTHORIZATION_CODE")

    assert config.table == "idp.IDN_OAUTH2_AUTHORIZATION_CODE"


def test_entity_types_cannot_share_a_table() -> None:
    with pytest.raises(ValidationError):
        MigrationSettings(
            access_tokens=AccessTokenTableConfig(table="IDN_OAUTH_CONSUMER_APPS")
        )


def test_app_settings_read_database_and_secret_from_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("IDENTITY_DB_PATH", str(tmp_path / "idp.db"))
    monkeypatch.setenv("IDENTITY_DB_TIMEOUT", "5")
    monkeypatch.setenv("TOKEN_ENCRYPTION_SECRET", "from-env")
    monkeypatch.setenv("APP_LOG_LEVEL", "DEBUG")

    settings = AppSettings()

    assert settings.database.path == tmp_path / "idp.db"
    assert settings.database.timeout_seconds == 5.0
    assert settings.security.token_encryption_secret == "from-env"
    assert settings.log_level == "DEBUG"


def test_app_settings_require_database_path(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("IDENTITY_DB_PATH", raising=False)

    with pytest.raises(ValidationError):
        AppSettings()


def test_load_settings_reads_nested_values_from_env_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("TOKEN_ENCRYPTION_SECRET", raising=False)
    env_file = tmp_path / "migration.env"
    env_file.write_text(
        "\n".join(
            [
                f"IDENTITY_DB_PATH={tmp_path / 'idp.db'}",
                "TOKEN_ENCRYPTION_SECRET=from-file",
                "MIGRATION_APPLICATIONS_IDENTITY_COLUMN=ID",
                "MIGRATION_ACCESS_TOKENS_SENSITIVE_COLUMNS=ACCESS_TOKEN",
                "MIGRATION_DEADLINE_SECONDS=90",
                "APP_LOG_LEVEL=WARNING",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("IDENTITY_DB_PATH", str(tmp_path / "exported.db"))

    settings = load_settings(env_file)

    assert settings.database.path == tmp_path / "exported.db"
    assert settings.security.token_encryption_secret == "from-file"
    assert settings.migration.applications.identity_column == "ID"
    assert settings.migration.access_tokens.sensitive_columns == ("ACCESS_TOKEN",)
    assert settings.migration.deadline_seconds == 90
    assert settings.log_level == "WARNING"


def test_load_settings_defaults_to_dotenv_in_working_directory(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("IDENTITY_DB_PATH", raising=False)
    (tmp_path / ".env").write_text(
        "IDENTITY_DB_PATH=/srv/idp/identity.db\n", encoding="utf-8"
    )

    settings = load_settings()

    assert settings.database.path == Path("/srv/idp/identity.db")
