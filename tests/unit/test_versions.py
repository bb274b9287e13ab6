"""
Unit tests for the schema version ledger.
"""

import sqlite3

import pytest

from sqlhelper.errors import VersionReadError, VersionWriteError
from sqlhelper.versions import LEDGER_TABLE, SchemaVersions


@pytest.fixture
def versions(conn: sqlite3.Connection) -> SchemaVersions:
    """Ledger on a connection where the table exists."""
    ledger = SchemaVersions(conn)
    ledger.create_ledger()
    return ledger


class TestSchemaVersions:
    """Tests for reading and recording versions."""

    def test_missing_ledger_is_read_error(self, conn: sqlite3.Connection) -> None:
        """Without the table there is no version."""
        with pytest.raises(VersionReadError):
            SchemaVersions(conn).current_version()

    def test_empty_ledger_is_read_error(self, versions: SchemaVersions) -> None:
        """An empty ledger has no version."""
        with pytest.raises(VersionReadError):
            versions.current_version()

    def test_record_and_read(self, versions: SchemaVersions) -> None:
        """The current version is the highest recorded."""
        versions.record_version(1)
        versions.record_version(3)
        assert versions.current_version() == 3

    def test_duplicate_version_is_write_error(self, versions: SchemaVersions) -> None:
        """Versions are recorded once."""
        versions.record_version(2)
        with pytest.raises(VersionWriteError) as exc_info:
            versions.record_version(2)
        assert exc_info.value.version == 2

    def test_record_without_ledger_is_write_error(self, conn: sqlite3.Connection) -> None:
        """Recording needs the ledger table."""
        with pytest.raises(VersionWriteError):
            SchemaVersions(conn).record_version(1)

    def test_history(self, versions: SchemaVersions) -> None:
        """History lists versions oldest first with timestamps."""
        versions.record_version(2)
        versions.record_version(1)
        history = versions.history()
        assert [e.version for e in history] == [1, 2]
        assert all(e.applied_at for e in history)

    def test_ledger_table_shape(
        self,
        conn: sqlite3.Connection,
        versions: SchemaVersions,
    ) -> None:
        """The ledger has an integer id and a text date."""
        columns = conn.execute(f"PRAGMA table_info({LEDGER_TABLE})").fetchall()
        assert [(c[1], c[2]) for c in columns] == [("id", "INTEGER"), ("date", "TEXT")]
