"""
Schema version ledger.

The ledger is an append-only table with one row per applied upgrade:

    schema_versions(id INTEGER PRIMARY KEY, date TEXT NOT NULL)

The highest id is the schema version the database satisfies. Rows are only
ever inserted; there is no update or delete path.
"""

import logging
import sqlite3
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict

from sqlhelper.errors import SqlHelperError, VersionReadError, VersionWriteError
from sqlhelper.statement import StepResult, prepare, run_statement

logger = logging.getLogger(__name__)

LEDGER_TABLE = "schema_versions"

CREATE_LEDGER_SQL = f"""
CREATE TABLE {LEDGER_TABLE} (
    id INTEGER PRIMARY KEY NOT NULL,
    date TEXT NOT NULL
);
"""


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return datetime.now(UTC).isoformat()


class LedgerEntry(BaseModel):
    """One applied schema version."""

    model_config = ConfigDict(frozen=True)

    version: int
    applied_at: str


class SchemaVersions:
    """
    Reads and appends schema ledger rows on an open connection.

    Usage:
        versions = SchemaVersions(conn)
        versions.create_ledger()
        versions.record_version(1)
        versions.current_version()  # 1
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_ledger(self) -> None:
        """Create the ledger table. Only valid on a brand-new database."""
        run_statement(self._conn, CREATE_LEDGER_SQL)
        logger.debug("created %s ledger", LEDGER_TABLE)

    def current_version(self) -> int:
        """
        Return the highest recorded schema version.

        Raises:
            VersionReadError: If the ledger is missing or empty. Callers treat
                this as "no version yet".
        """
        try:
            with prepare(self._conn, f"SELECT MAX(id) FROM {LEDGER_TABLE}") as stmt:
                if stmt.step() is not StepResult.ROW or stmt.row is None:
                    raise VersionReadError(underlying_error="no row returned")
                version = stmt.row[0]
        except VersionReadError:
            raise
        except SqlHelperError as e:
            raise VersionReadError(underlying_error=e.message) from e

        if not isinstance(version, int):
            raise VersionReadError(underlying_error="no version recorded")
        return version

    def record_version(self, version: int) -> None:
        """
        Append a ledger row for a newly applied version.

        Raises:
            VersionWriteError: If the insert does not complete
        """
        try:
            run_statement(
                self._conn,
                f"INSERT INTO {LEDGER_TABLE} (id, date) VALUES (?, ?)",
                (version, now_iso()),
            )
        except SqlHelperError as e:
            raise VersionWriteError(version=version, underlying_error=e.message) from e
        logger.debug("recorded schema version %s", version)

    def history(self) -> list[LedgerEntry]:
        """
        List every applied version, oldest first.

        Raises:
            VersionReadError: If the ledger cannot be read
        """
        entries = []
        try:
            with prepare(self._conn, f"SELECT id, date FROM {LEDGER_TABLE} ORDER BY id") as stmt:
                while stmt.step() is StepResult.ROW:
                    version, applied_at = stmt.row  # type: ignore[misc]
                    entries.append(LedgerEntry(version=version, applied_at=applied_at))
        except SqlHelperError as e:
            raise VersionReadError(underlying_error=e.message) from e
        return entries
