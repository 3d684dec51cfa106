"""Connection factory for the identity-server database."""

from __future__ import annotations

import sqlite3

from token_encryptor.core.config import DatabaseSettings


def connect(settings: DatabaseSettings) -> sqlite3.Connection:
    """Open the single connection a migration run uses.

    ``isolation_level=None`` keeps the driver from opening transactions on
    its own; the row repository issues ``BEGIN``/``COMMIT``/``ROLLBACK``
    explicitly around each batch.
    """
    if not settings.path.exists():
        raise FileNotFoundError(
            f"Identity database {settings.path} does not exist."
        )
    conn = sqlite3.connect(
        settings.path,
        timeout=settings.timeout_seconds,
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    return conn


__all__ = ["connect"]
