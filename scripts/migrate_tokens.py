"""Encrypt the plaintext OAuth credentials stored in the identity database.

Run this once per database during the upgrade window, with the identity
server stopped. Two commands are available:

1. ``check`` loads the settings and confirms every configured table and
   column exists, without touching any data.
2. ``run`` migrates client secrets, access/refresh tokens and authorization
   codes, one transaction per table, and prints one result line per table.

Tables that committed are recorded in the migration ledger
(``MIGRATION_LEDGER_PATH``) and are skipped by later runs, since encrypting
them again would make the stored values unusable. A ledger belongs to the
database it was written for; both commands reject a ledger from another
database.

Settings come from exported variables first, then from ``--env-file`` (or
``.env`` in the working directory). Table and column names use one prefix per
table, for example ``MIGRATION_APPLICATIONS_IDENTITY_COLUMN=ID`` for releases
that key applications by ``ID``.

Example usages::

    # Confirm the configured tables before the upgrade window.
    python -m scripts.migrate_tokens check --env-file /opt/idp/migration.env

    # See how many rows would be migrated, without writing anything.
    python -m scripts.migrate_tokens run --dry-run --env-file /opt/idp/migration.env

    # Migrate.
    python -m scripts.migrate_tokens run --env-file /opt/idp/migration.env
"""

from __future__ import annotations

import argparse
import logging
import signal
import sqlite3
import sys
from pathlib import Path
from typing import Any, Callable, Dict

from pydantic import ValidationError

from token_encryptor.clients import connect
from token_encryptor.core.cancellation import CancellationToken
from token_encryptor.core.config import AppSettings, load_settings
from token_encryptor.core.errors import StoreReadError
from token_encryptor.core.logging import configure_logging
from token_encryptor.dependencies import (
    build_ledger,
    build_migration_service,
    build_row_repository,
)
from token_encryptor.models.oauth import MIGRATION_ORDER

EXIT_OK = 0
EXIT_MIGRATION_FAILED = 1
EXIT_VALIDATION_ERROR = 2
EXIT_CANCELLED = 4
EXIT_RUNTIME_ERROR = 5

LOGGER = logging.getLogger("token_encryptor.migrate")


def _load_settings(env_file: Path | None) -> AppSettings:
    """Load settings, letting ``env_file`` supply anything not already exported.

    Without ``env_file`` the ``.env`` in the working directory is used.
    """
    if env_file is not None and not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )
    return load_settings(env_file)


def _check_schema(settings: AppSettings) -> int:
    """Verify every configured table and the ledger without reading any credential."""
    conn = connect(settings.database)
    try:
        repository = build_row_repository(settings, conn)
        problems = 0
        for entity_type in MIGRATION_ORDER:
            table = repository.table_for(entity_type)
            try:
                repository.verify_schema(entity_type)
            except StoreReadError as exc:
                problems += 1
                print(f"{entity_type.value}: {exc}", file=sys.stderr)
            else:
                print(f"{entity_type.value}: {table.table} OK")
    finally:
        conn.close()

    ledger = build_ledger(settings)
    try:
        ledger.verify()
    except ValueError as exc:
        problems += 1
        print(f"ledger: {exc}", file=sys.stderr)
    else:
        print(f"ledger: {ledger.path} OK")
    return EXIT_VALIDATION_ERROR if problems else EXIT_OK


def _install_signal_handlers(cancel: CancellationToken) -> Dict[int, Any]:
    """Turn SIGINT/SIGTERM into a cooperative cancellation."""
    previous: Dict[int, Any] = {}

    def _handle(signum: int, _frame: Any) -> None:
        cancel.cancel(f"received {signal.Signals(signum).name}")

    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle)
    return previous


def _restore_signal_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def _run_migration(settings: AppSettings, *, dry_run: bool, ignore_ledger: bool) -> int:
    """Migrate every entity type and map the report to an exit code."""
    # Refuse a ledger written for another database.
    ledger = build_ledger(settings)
    ledger.verify()

    conn = connect(settings.database)
    cancel = CancellationToken(deadline_seconds=settings.migration.deadline_seconds)
    cancel.on_cancel(conn.interrupt)
    previous_handlers = _install_signal_handlers(cancel)
    try:
        service = build_migration_service(settings, conn, ledger=ledger)
        report = service.run(cancel=cancel, dry_run=dry_run, ignore_ledger=ignore_ledger)
    finally:
        _restore_signal_handlers(previous_handlers)
        conn.close()

    if dry_run:
        print("Dry run: no rows were written.")
    for line in report.summary_lines():
        print(line)

    if report.cancelled:
        return EXIT_CANCELLED
    if not report.succeeded:
        return EXIT_MIGRATION_FAILED
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Encrypt plaintext OAuth credentials in the identity database."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=None,
            type=Path,
            help="Optional environment file providing settings not already exported.",
        )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings and confirm the configured tables and columns exist.",
    )
    add_common_arguments(check_parser)

    run_parser = subparsers.add_parser(
        "run",
        help="Encrypt every configured credential table.",
    )
    add_common_arguments(run_parser)
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read and encrypt in memory, but write nothing.",
    )
    run_parser.add_argument(
        "--ignore-ledger",
        action="store_true",
        help=(
            "Migrate tables the ledger marks as done. Only use this after "
            "restoring those tables from a plaintext backup."
        ),
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args.env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    configure_logging(settings.log_level, settings.log_file)

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "check": lambda: _check_schema(settings),
        "run": lambda: _run_migration(
            settings, dry_run=args.dry_run, ignore_ledger=args.ignore_ledger
        ),
    }
    try:
        return handlers[command]()
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except (FileNotFoundError, sqlite3.Error) as exc:
        print(f"Unable to use the identity database: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        LOGGER.exception("Unexpected error during migration")
        print(f"Unexpected error during migration: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
