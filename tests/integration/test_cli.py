"""
Integration tests for the inspection CLI.

Tests cover:
- versions, query and info commands
- JSON output
- Error exits
"""

import json
import sqlite3
from pathlib import Path

import pytest
from typer.testing import CliRunner

from sqlhelper import Database, MigrationContext, __version__
from sqlhelper.cli import app


runner = CliRunner()


@pytest.fixture
def db_file(temp_dir: Path) -> Path:
    """A database at version 2 with a few items."""

    def upgrade(version: int, ctx: MigrationContext) -> None:
        ctx.exec_sql("CREATE TABLE IF NOT EXISTS items (id INTEGER PRIMARY KEY, label TEXT, data BLOB)")

    with Database("cli.db", 1, upgrade, directory=temp_dir) as db:
        db.insert_batch("items", ["id", "label", "data"], [(1, "a", b"\x01\x02"), (2, None, None)])
    with Database("cli.db", 2, upgrade, directory=temp_dir) as db:
        db.ensure_open()
    return temp_dir / "cli.db"


class TestVersionFlag:
    """Tests for --version."""

    def test_version(self) -> None:
        """--version prints the package version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestVersionsCommand:
    """Tests for `sqlhelper versions`."""

    def test_versions_table(self, db_file: Path) -> None:
        """The ledger is printed with the current version."""
        result = runner.invoke(app, ["versions", str(db_file)])
        assert result.exit_code == 0
        assert "Current version: 2" in result.stdout

    def test_versions_json(self, db_file: Path) -> None:
        """--json returns the ledger rows."""
        result = runner.invoke(app, ["versions", str(db_file), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["current_version"] == 2
        assert [v["version"] for v in data["versions"]] == [1, 2]

    def test_versions_without_ledger(self, temp_dir: Path) -> None:
        """A file with no ledger is an error."""
        plain = temp_dir / "plain.db"
        sqlite3.connect(plain).execute("CREATE TABLE t (x)").connection.close()
        result = runner.invoke(app, ["versions", str(plain)])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_missing_file(self, temp_dir: Path) -> None:
        """Missing files are rejected by argument validation."""
        result = runner.invoke(app, ["versions", str(temp_dir / "nope.db")])
        assert result.exit_code != 0


class TestQueryCommand:
    """Tests for `sqlhelper query`."""

    def test_query_json(self, db_file: Path) -> None:
        """Rows come back with blobs as hex and NULL as null."""
        result = runner.invoke(
            app, ["query", str(db_file), "SELECT id, label, data FROM items ORDER BY id", "--json"]
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["columns"] == ["id", "label", "data"]
        assert data["rows"] == [[1, "a", "0102"], [2, None, None]]

    def test_query_with_args(self, db_file: Path) -> None:
        """--arg values bind to placeholders."""
        result = runner.invoke(
            app, ["query", str(db_file), "SELECT label FROM items WHERE id = ?", "-a", "1", "--json"]
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout)["rows"] == [["a"]]

    def test_query_table(self, db_file: Path) -> None:
        """The default output is a table with a row count."""
        result = runner.invoke(app, ["query", str(db_file), "SELECT id FROM items"])
        assert result.exit_code == 0
        assert "2 row(s)" in result.stdout

    def test_query_is_read_only(self, db_file: Path) -> None:
        """Writes are refused."""
        result = runner.invoke(app, ["query", str(db_file), "DELETE FROM items"])
        assert result.exit_code == 1
        with Database("cli.db", 2, directory=db_file.parent) as db:
            assert db.raw_query("SELECT COUNT(*) FROM items") == [(2,)]

    def test_query_bad_sql(self, db_file: Path) -> None:
        """Malformed SQL exits with an error."""
        result = runner.invoke(app, ["query", str(db_file), "SELEC 1"])
        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestInfoCommand:
    """Tests for `sqlhelper info`."""

    def test_info(self, db_file: Path) -> None:
        """Info lists the version and tables."""
        result = runner.invoke(app, ["info", str(db_file)])
        assert result.exit_code == 0
        assert "Schema version:" in result.stdout
        assert "items" in result.stdout
        assert "schema_versions" in result.stdout
