"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import sqlite3
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

import pytest

from token_encryptor.core.config import (
    AccessTokenTableConfig,
    ApplicationTableConfig,
    AuthorizationCodeTableConfig,
    EntityTableConfig,
)
from token_encryptor.models.oauth import EntityType

IDENTITY_SCHEMA = """
CREATE TABLE IDN_OAUTH_CONSUMER_APPS (
    CONSUMER_KEY TEXT PRIMARY KEY,
    CONSUMER_SECRET TEXT,
    APP_NAME TEXT
);
CREATE TABLE IDN_OAUTH2_ACCESS_TOKEN (
    TOKEN_ID TEXT PRIMARY KEY,
    ACCESS_TOKEN TEXT,
    REFRESH_TOKEN TEXT
);
CREATE TABLE IDN_OAUTH2_AUTHORIZATION_CODE (
    CODE_ID TEXT PRIMARY KEY,
    AUTHORIZATION_CODE TEXT
);
"""

SEED_ROWS = {
    "IDN_OAUTH_CONSUMER_APPS": [
        ("k1", "s1", "app-one"),
        ("k2", "s2", "app-two"),
        ("k3", "s3", "app-three"),
    ],
    "IDN_OAUTH2_ACCESS_TOKEN": [
        ("t1", "access-1", "refresh-1"),
        ("t2", "access-2", None),
    ],
    "IDN_OAUTH2_AUTHORIZATION_CODE": [
        ("c1", "code-1"),
        ("c2", "code-2"),
    ],
}


@pytest.fixture
def identity_db(tmp_path: Path) -> Path:
    """Create a seeded identity database with plaintext credentials."""
    db_path = tmp_path / "identity.db"
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(IDENTITY_SCHEMA)
        for table, rows in SEED_ROWS.items():
            placeholders = ", ".join("?" for _ in rows[0])
            conn.executemany(f"INSERT INTO {table} VALUES ({placeholders})", rows)
        conn.commit()
    finally:
        conn.close()
    return db_path


@pytest.fixture
def connection(identity_db: Path) -> Iterator[sqlite3.Connection]:
    """Connection configured the way the migration tool opens it."""
    conn = sqlite3.connect(identity_db, isolation_level=None)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


@pytest.fixture
def default_tables() -> Dict[EntityType, EntityTableConfig]:
    return {
        EntityType.APPLICATION: ApplicationTableConfig(),
        EntityType.ACCESS_TOKEN: AccessTokenTableConfig(),
        EntityType.AUTHORIZATION_CODE: AuthorizationCodeTableConfig(),
    }


@pytest.fixture
def read_column(identity_db: Path) -> Callable[[str, str, str], Dict[str, Optional[str]]]:
    """Return ``{identity: value}`` for one column, read on a fresh connection."""

    def _read(table: str, key_column: str, value_column: str) -> Dict[str, Optional[str]]:
        conn = sqlite3.connect(identity_db)
        try:
            rows = conn.execute(f"SELECT {key_column}, {value_column} FROM {table}").fetchall()
        finally:
            conn.close()
        return {key: value for key, value in rows}

    return _read
