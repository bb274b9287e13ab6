"""
Statement execution for sqlhelper.

A Statement wraps one SQL command on a sqlite3 connection and gives it an
explicit lifecycle:

    prepare -> bind_all -> step ... step -> finalize

sqlite3 compiles a statement the first time it is executed, so compile
failures (malformed SQL, missing table or column) surface from the first
step() as PrepareError. Later failures surface as StepError, and arguments
the engine rejects surface as BindError.
"""

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from enum import Enum
from typing import Any

from sqlhelper.codec import SqlValue, encode_values
from sqlhelper.errors import BindError, ExecError, PrepareError, StepError, UnsupportedValueError

logger = logging.getLogger(__name__)


class StepResult(str, Enum):
    """Outcome of a successful step."""

    ROW = "row"
    DONE = "done"


def _is_compile_error(
    conn: sqlite3.Connection,
    sql: str,
    args: Sequence[object],
    exc: sqlite3.Error,
) -> bool:
    # SQLITE_ERROR covers both parse failures and runtime failures such as a
    # raising user function; EXPLAIN compiles without running to tell them apart
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    if getattr(exc, "sqlite_errorname", "SQLITE_ERROR") != "SQLITE_ERROR":
        return False
    try:
        conn.execute(f"EXPLAIN {sql}", args).close()
    except sqlite3.Error:
        return True
    return False


class Statement:
    """
    One prepared SQL statement.

    Statements are single-owner and not thread-safe; the owning Database
    serializes access. Use as a context manager to guarantee finalize():

        with prepare(conn, "SELECT id FROM items WHERE label = ?") as stmt:
            stmt.bind_all(["a"])
            while stmt.step() is StepResult.ROW:
                print(stmt.row)
    """

    def __init__(self, conn: sqlite3.Connection, sql: str) -> None:
        self.sql = sql
        self._conn = conn
        self._cursor: sqlite3.Cursor | None = None
        self._args: tuple[SqlValue, ...] = ()
        self._row: tuple[Any, ...] | None = None
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def executed(self) -> bool:
        """True once the statement has been stepped and not reset."""
        return self._cursor is not None

    @property
    def row(self) -> tuple[Any, ...] | None:
        """The current row, or None when the last step was not ROW."""
        return self._row

    @property
    def column_names(self) -> list[str]:
        if self._cursor is None or self._cursor.description is None:
            return []
        return [d[0] for d in self._cursor.description]

    @property
    def rowcount(self) -> int:
        """Rows changed by the last INSERT/UPDATE/DELETE step."""
        return self._cursor.rowcount if self._cursor is not None else -1

    @property
    def lastrowid(self) -> int | None:
        return self._cursor.lastrowid if self._cursor is not None else None

    def bind_all(self, args: Iterable[object]) -> None:
        """
        Bind positional placeholders 1..N in order.

        The number of arguments must match the placeholders; the engine's
        rejection of a mismatch is raised from step() as BindError.

        Raises:
            UnsupportedValueError: If a value is outside the codec's set
            BindError: If the statement was stepped and not reset
        """
        if self.executed:
            raise BindError(
                sql=self.sql,
                underlying_error="statement must be reset before rebinding",
            )
        try:
            self._args = encode_values(args)
        except UnsupportedValueError as e:
            raise UnsupportedValueError(
                sql=self.sql,
                index=e.index,
                value_type=e.value_type,
            ) from None

    def clear_bindings(self) -> None:
        """Drop all bound values (subsequent steps bind nothing)."""
        self._args = ()

    def step(self) -> StepResult:
        """
        Advance the statement by one row.

        Returns:
            StepResult.ROW while a row is available, StepResult.DONE at the end

        Raises:
            PrepareError: The statement failed to compile on its first step
            BindError: The engine rejected the bound arguments
            StepError: Any other execution failure
        """
        if self._finalized:
            raise StepError(sql=self.sql, underlying_error="statement already finalized")

        if self._cursor is None:
            cursor = self._conn.cursor()
            try:
                cursor.execute(self.sql, self._args)
            except sqlite3.ProgrammingError as e:
                cursor.close()
                if "binding" in str(e).lower():
                    raise BindError(sql=self.sql, underlying_error=str(e)) from e
                raise PrepareError(sql=self.sql, underlying_error=str(e)) from e
            except (OverflowError, UnicodeEncodeError) as e:
                # values in range for Python but not for sqlite: ints past 64 bits,
                # strings holding lone surrogates
                cursor.close()
                raise BindError(sql=self.sql, underlying_error=str(e)) from e
            except sqlite3.Error as e:
                cursor.close()
                if _is_compile_error(self._conn, self.sql, self._args, e):
                    raise PrepareError(sql=self.sql, underlying_error=str(e)) from e
                raise StepError(sql=self.sql, underlying_error=str(e)) from e
            self._cursor = cursor

        try:
            self._row = self._cursor.fetchone()
        except sqlite3.Error as e:
            self._row = None
            raise StepError(sql=self.sql, underlying_error=str(e)) from e

        return StepResult.ROW if self._row is not None else StepResult.DONE

    def reset(self) -> None:
        """Rewind so the statement can be stepped again; bindings are kept."""
        if self._cursor is not None:
            self._cursor.close()
        self._cursor = None
        self._row = None

    def finalize(self) -> None:
        """Release the statement. Safe to call more than once."""
        if self._finalized:
            return
        self.reset()
        self._finalized = True

    def __enter__(self) -> "Statement":
        return self

    def __exit__(self, *args: Any) -> None:
        self.finalize()

    def __repr__(self) -> str:
        return f"Statement(sql={self.sql!r}, finalized={self._finalized})"


def prepare(conn: sqlite3.Connection, sql: str) -> Statement:
    """
    Prepare a statement on an open connection.

    Raises:
        PrepareError: If the SQL text is empty
    """
    if not sql or not sql.strip():
        raise PrepareError(sql=sql, underlying_error="empty statement")
    logger.debug("prepare: %s", sql)
    return Statement(conn, sql)


def run_statement(
    conn: sqlite3.Connection,
    sql: str,
    args: Sequence[object] = (),
) -> int:
    """
    Prepare, bind and step a statement to completion, then finalize it.

    Returns:
        The statement's rowcount (-1 for statements that change no rows)
    """
    with prepare(conn, sql) as stmt:
        stmt.bind_all(args)
        while stmt.step() is StepResult.ROW:
            pass
        return stmt.rowcount


def exec_sql(conn: sqlite3.Connection, sql: str) -> None:
    """
    Execute one or more statements without bindings.

    This is the one-shot path; sqlite3 commits any open transaction before
    running the script.

    Raises:
        ExecError: If any statement in the script fails
    """
    logger.debug("exec: %s", sql)
    try:
        conn.executescript(sql)
    except sqlite3.Error as e:
        raise ExecError(sql=sql, underlying_error=str(e)) from e


def execute_batch(conn: sqlite3.Connection, statements: Iterable[str]) -> None:
    """
    Run statements one after another, each to completion.

    The first failure aborts the remaining statements. Statements already
    run are not rolled back.
    """
    for sql in statements:
        run_statement(conn, sql)
