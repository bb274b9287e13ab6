"""
Single-connection SQLite database with versioned schema upgrades.

Usage:
    def upgrade(version: int, ctx: MigrationContext) -> None:
        if ctx.previous_version is None:
            ctx.exec_sql("CREATE TABLE items (id INTEGER PRIMARY KEY, label TEXT)")

    with Database("app.db", version=1, on_upgrade=upgrade) as db:
        db.insert("items", {"id": 1, "label": "a"})
        db.query("items", ["id", "label"])  # [(1, "a")]

The connection is opened lazily by the first operation. Opening a brand-new
file creates the schema_versions ledger; whenever the recorded version is
behind the declared one, on_upgrade runs and the new version is appended to
the ledger.

Every operation takes the instance lock, so exactly one call sequence runs
against the connection at a time. The upgrade callback gets a
MigrationContext bound to the connection being opened and must not call back
into the Database itself.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, ContextManager, TypeVar

from sqlhelper.codec import SqlValue, decode_value
from sqlhelper.config import DatabaseConfig
from sqlhelper.cursor import Cursor
from sqlhelper.errors import (
    ERROR_OPEN_REENTRANT,
    BindError,
    OpenDatabaseError,
    VersionReadError,
)
from sqlhelper.paths import data_dir, resolve_data_dir
from sqlhelper.query import SortOrder, build_delete, build_insert, build_select
from sqlhelper.statement import StepResult, exec_sql, execute_batch, prepare, run_statement
from sqlhelper.versions import LedgerEntry, SchemaVersions

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

T = TypeVar("T")
Row = tuple[SqlValue, ...]
UpgradeCallback = Callable[[int, "MigrationContext"], None]


class SqlOperations(ABC):
    """
    Statement-level operations shared by Database and MigrationContext.

    Subclasses decide how a connection is obtained for each call.
    """

    @abstractmethod
    def _connection(self) -> ContextManager[sqlite3.Connection]:
        """Yield the connection to run one operation against."""

    # =========================================================================
    # Raw Operations
    # =========================================================================

    def exec_sql(self, sql: str) -> None:
        """Execute one or more statements without bindings."""
        with self._connection() as conn:
            exec_sql(conn, sql)

    def execute_batch(self, statements: Iterable[str]) -> None:
        """Run statements in order, each to completion; stops at the first failure."""
        with self._connection() as conn:
            execute_batch(conn, statements)

    def raw_query(self, sql: str, args: Sequence[object] | None = None) -> list[Row]:
        """
        Run a parameterized query and return every row.

        Args:
            sql: Query template with "?" placeholders
            args: Values for the placeholders, in order

        Returns:
            List of rows, each a tuple of None/int/str/bytes
        """
        with self._connection() as conn:
            return _fetch_all(conn, sql, args or ())

    @contextmanager
    def cursor(self, sql: str, args: Sequence[object] | None = None) -> Iterator[Cursor]:
        """
        Open a cursor over a parameterized query.

        The cursor is closed when the block exits, and close() raises
        CursorMisuseError if the rows were not fully consumed.
        """
        with self._connection() as conn:
            stmt = prepare(conn, sql)
            try:
                stmt.bind_all(args or ())
            except Exception:
                stmt.finalize()
                raise
            with Cursor(stmt) as cursor:
                yield cursor

    def raw_query_cursor(
        self,
        sql: str,
        callback: Callable[[Cursor], T],
        args: Sequence[object] | None = None,
    ) -> T:
        """Run ``callback(cursor)`` over a query, then close the cursor."""
        with self.cursor(sql, args) as cursor:
            return callback(cursor)

    # =========================================================================
    # Structured Operations
    # =========================================================================

    def query(
        self,
        table: str,
        columns: Sequence[str],
        selection: str | None = None,
        selection_args: Sequence[object] | None = None,
        group_by: str | None = None,
        having: str | None = None,
        order_by: str | None = None,
        order: SortOrder | str | None = None,
    ) -> list[Row]:
        """
        Run a structured SELECT.

        ``selection`` is a WHERE template whose "?" placeholders are bound
        from ``selection_args``; every other clause is optional.
        """
        sql, args = build_select(
            table, columns, selection, selection_args, group_by, having, order_by, order
        )
        with self._connection() as conn:
            return _fetch_all(conn, sql, args)

    def insert(
        self,
        table: str,
        values: Mapping[str, object],
        replace_existing: bool = False,
    ) -> int | None:
        """Insert one row given as ``{column: value}``; returns the rowid."""
        return self.insert_row(table, list(values), list(values.values()), replace_existing)

    def insert_row(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[object],
        replace_existing: bool = False,
    ) -> int | None:
        """
        Insert one row.

        Args:
            table: Target table
            columns: Column names
            values: One value per column
            replace_existing: Use INSERT OR REPLACE

        Returns:
            The rowid of the inserted row
        """
        sql = build_insert(table, columns, replace_existing)
        _check_width(sql, columns, values)
        with self._connection() as conn:
            with prepare(conn, sql) as stmt:
                stmt.bind_all(values)
                stmt.step()
                return stmt.lastrowid

    def insert_batch(
        self,
        table: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[object]],
        replace_existing: bool = False,
    ) -> int:
        """
        Insert many rows with one prepared statement inside a transaction.

        The statement is re-executed per row with its bindings cleared in
        between. If any row fails the transaction is rolled back and the
        error re-raised, so either every row is written or none is.

        Returns:
            Number of rows written
        """
        sql = build_insert(table, columns, replace_existing)
        with self._connection() as conn:
            return _insert_batch(conn, sql, columns, rows)

    def delete(
        self,
        table: str,
        where_clause: str | None = None,
        where_args: Sequence[object] | None = None,
    ) -> int:
        """Delete matching rows (all rows without a clause); returns the count."""
        sql, args = build_delete(table, where_clause, where_args)
        with self._connection() as conn:
            return run_statement(conn, sql, args)


class MigrationContext(SqlOperations):
    """
    Restricted view of a database handed to the upgrade callback.

    Runs statements directly on the connection being opened. It cannot open,
    close or re-migrate the database.

    Attributes:
        target_version: The version being upgraded to
        previous_version: The recorded version before the upgrade, or None
            for a database with no recorded version
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        target_version: int,
        previous_version: int | None,
    ) -> None:
        self._conn = conn
        self.target_version = target_version
        self.previous_version = previous_version

    @property
    def connection(self) -> sqlite3.Connection:
        """The native handle, for statements the helpers do not cover."""
        return self._conn

    def _connection(self) -> ContextManager[sqlite3.Connection]:
        return nullcontext(self._conn)


class Database(SqlOperations):
    """
    Lazily opened SQLite database with a schema version ledger.

    Usage:
        db = Database("app.db", version=2, on_upgrade=upgrade)
        db.insert_batch("items", ["id", "label"], [(1, "a"), (2, "b")])
        db.close()

    Or use as context manager:
        with Database("app.db", version=2, on_upgrade=upgrade) as db:
            ...
    """

    def __init__(
        self,
        name: str,
        version: int,
        on_upgrade: UpgradeCallback | None = None,
        directory: str | Path | None = None,
        timeout: float = 5.0,
    ) -> None:
        """
        Configure the database; nothing is opened until first use.

        Args:
            name: File name of the database, or ":memory:"
            version: Schema version the application expects
            on_upgrade: Called as ``on_upgrade(version, ctx)`` when the
                recorded version is behind ``version``
            directory: Storage directory; resolved from XDG data home when None
            timeout: Seconds to wait on a locked database file
        """
        self.name = name
        self.version = version
        self.timeout = timeout
        self._on_upgrade = on_upgrade
        self._directory = Path(directory) if directory is not None else None
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._opening = False

    @classmethod
    def from_config(
        cls,
        config: DatabaseConfig,
        on_upgrade: UpgradeCallback | None = None,
    ) -> "Database":
        """Build a Database from a validated configuration."""
        return cls(
            config.name,
            config.version,
            on_upgrade=on_upgrade,
            directory=config.directory,
            timeout=config.timeout,
        )

    @property
    def path(self) -> str:
        """
        Filesystem path of the database (":memory:" for in-memory).

        Computed only; the directory is created when the database opens.
        """
        if self.name == MEMORY:
            return MEMORY
        return str(data_dir(base=self._directory) / self.name)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def ensure_open(self) -> sqlite3.Connection:
        """
        Return the open connection, opening and migrating it on first use.

        Raises:
            OpenDatabaseError: If the file cannot be opened, or when called
                from inside the upgrade callback
            VersionWriteError: If the new version cannot be recorded
        """
        with self._lock:
            return self._ensure_open_locked()

    def _ensure_open_locked(self) -> sqlite3.Connection:
        if self._opening:
            raise OpenDatabaseError(
                db_path=self.name,
                code=ERROR_OPEN_REENTRANT,
                message="Database operation called from inside its own upgrade callback",
                suggestion="Use the MigrationContext passed to the callback",
            )
        if self._conn is not None:
            return self._conn

        self._opening = True
        try:
            self._conn = self._open()
        finally:
            self._opening = False
        return self._conn

    def _open(self) -> sqlite3.Connection:
        path = self.path
        if path != MEMORY:
            resolve_data_dir(base=self._directory)
            if Path(path).is_dir():
                raise OpenDatabaseError(db_path=path, underlying_error="path is a directory")
        # sqlite treats a zero-byte file as an empty database
        is_new = path == MEMORY or not Path(path).exists() or Path(path).stat().st_size == 0

        try:
            conn = sqlite3.connect(
                path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise OpenDatabaseError(db_path=path, underlying_error=str(e)) from e
        logger.debug("opened %s (new=%s)", path, is_new)

        try:
            versions = SchemaVersions(conn)
            if is_new:
                versions.create_ledger()

            try:
                previous: int | None = versions.current_version()
            except VersionReadError:
                previous = None

            if previous is None or previous < self.version:
                if self._on_upgrade is not None:
                    self._on_upgrade(self.version, MigrationContext(conn, self.version, previous))
                versions.record_version(self.version)
                logger.info(
                    "upgraded %s from schema version %s to %s", path, previous, self.version
                )
        except Exception:
            conn.close()
            raise
        return conn

    def close(self) -> None:
        """Close the connection. A later operation reopens it."""
        with self._lock:
            if self._opening:
                raise OpenDatabaseError(
                    db_path=self.name,
                    code=ERROR_OPEN_REENTRANT,
                    message="Database closed from inside its own upgrade callback",
                )
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("closed %s", self.name)

    def __enter__(self) -> "Database":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            yield self._ensure_open_locked()

    # =========================================================================
    # Schema Versions
    # =========================================================================

    def current_version(self) -> int:
        """The highest version recorded in the ledger."""
        with self._connection() as conn:
            return SchemaVersions(conn).current_version()

    def history(self) -> list[LedgerEntry]:
        """Every applied schema version, oldest first."""
        with self._connection() as conn:
            return SchemaVersions(conn).history()

    def raw_handle(self, callback: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``callback(connection)`` with the native handle, under the lock."""
        with self._connection() as conn:
            return callback(conn)

    def __repr__(self) -> str:
        return f"Database(name={self.name!r}, version={self.version}, open={self.is_open})"


# =============================================================================
# Connection-level Helpers
# =============================================================================


def _fetch_all(conn: sqlite3.Connection, sql: str, args: Sequence[object]) -> list[Row]:
    rows = []
    with prepare(conn, sql) as stmt:
        stmt.bind_all(args)
        while stmt.step() is StepResult.ROW:
            rows.append(tuple(decode_value(v, i) for i, v in enumerate(stmt.row or ())))
    return rows


def _check_width(sql: str, columns: Sequence[str], values: Sequence[object]) -> None:
    if len(values) != len(columns):
        raise BindError(
            sql=sql,
            underlying_error=f"{len(values)} values for {len(columns)} columns",
        )


def _insert_batch(
    conn: sqlite3.Connection,
    sql: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[object]],
) -> int:
    count = 0
    with prepare(conn, sql) as stmt:
        run_statement(conn, "BEGIN")
        try:
            for row in rows:
                _check_width(sql, columns, row)
                stmt.bind_all(row)
                stmt.step()
                stmt.clear_bindings()
                stmt.reset()
                count += 1
            run_statement(conn, "COMMIT")
        except Exception:
            logger.warning("rolling back batch insert after %d rows: %s", count, sql)
            if conn.in_transaction:
                run_statement(conn, "ROLLBACK")
            raise
    logger.debug("batch inserted %d rows: %s", count, sql)
    return count
