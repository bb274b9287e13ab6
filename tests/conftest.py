"""
Pytest configuration and fixtures for sqlhelper tests.

This module provides shared fixtures used across unit and integration tests.
"""

import sqlite3
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import pytest

from sqlhelper.database import Database, MigrationContext

ITEMS_DDL = "CREATE TABLE items (id INTEGER PRIMARY KEY, label TEXT)"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def conn() -> Generator[sqlite3.Connection, None, None]:
    """An in-memory connection in autocommit mode."""
    connection = sqlite3.connect(":memory:", isolation_level=None)
    connection.execute(ITEMS_DDL)
    yield connection
    connection.close()


@pytest.fixture
def upgrade_calls() -> list[tuple[int, int | None]]:
    """Records (target_version, previous_version) for every upgrade call."""
    return []


@pytest.fixture
def items_upgrade(
    upgrade_calls: list[tuple[int, int | None]],
) -> Callable[[int, MigrationContext], None]:
    """Upgrade callback that creates the items table on first run."""

    def upgrade(version: int, ctx: MigrationContext) -> None:
        upgrade_calls.append((version, ctx.previous_version))
        if ctx.previous_version is None:
            ctx.exec_sql(ITEMS_DDL)

    return upgrade


@pytest.fixture
def db(
    temp_dir: Path,
    items_upgrade: Callable[[int, MigrationContext], None],
) -> Generator[Database, None, None]:
    """A file-backed database at version 1 with an items table."""
    database = Database("test.db", version=1, on_upgrade=items_upgrade, directory=temp_dir)
    yield database
    database.close()
