"""
Unit tests for statement execution.

Tests cover:
- Prepare/bind/step/finalize lifecycle
- Error classification (prepare, bind, step, exec)
- Reset and rebinding
- exec_sql and execute_batch
"""

import sqlite3

import pytest

from sqlhelper.errors import BindError, ExecError, PrepareError, StepError, UnsupportedValueError
from sqlhelper.statement import (
    StepResult,
    exec_sql,
    execute_batch,
    prepare,
    run_statement,
)


def count_items(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM items").fetchone()[0]


class TestStatementLifecycle:
    """Tests for stepping statements."""

    def test_insert_steps_to_done(self, conn: sqlite3.Connection) -> None:
        """DML completes in a single step."""
        with prepare(conn, "INSERT INTO items (id, label) VALUES (?, ?)") as stmt:
            stmt.bind_all([1, "a"])
            assert stmt.step() is StepResult.DONE
            assert stmt.rowcount == 1
            assert stmt.lastrowid == 1
        assert count_items(conn) == 1

    def test_select_yields_rows_then_done(self, conn: sqlite3.Connection) -> None:
        """SELECT steps once per row and then reports done."""
        conn.execute("INSERT INTO items VALUES (1, 'a'), (2, 'b')")
        with prepare(conn, "SELECT id, label FROM items ORDER BY id") as stmt:
            assert stmt.step() is StepResult.ROW
            assert stmt.row == (1, "a")
            assert stmt.column_names == ["id", "label"]
            assert stmt.step() is StepResult.ROW
            assert stmt.row == (2, "b")
            assert stmt.step() is StepResult.DONE
            assert stmt.row is None

    def test_finalize_is_idempotent(self, conn: sqlite3.Connection) -> None:
        """Finalizing twice is harmless."""
        stmt = prepare(conn, "SELECT 1")
        stmt.finalize()
        stmt.finalize()
        assert stmt.finalized

    def test_step_after_finalize_fails(self, conn: sqlite3.Connection) -> None:
        """A finalized statement cannot be stepped."""
        stmt = prepare(conn, "SELECT 1")
        stmt.finalize()
        with pytest.raises(StepError):
            stmt.step()

    def test_reset_allows_rebinding(self, conn: sqlite3.Connection) -> None:
        """Reset rewinds so new values can be bound."""
        with prepare(conn, "INSERT INTO items (id, label) VALUES (?, ?)") as stmt:
            stmt.bind_all([1, "a"])
            stmt.step()
            with pytest.raises(BindError):
                stmt.bind_all([2, "b"])
            stmt.reset()
            stmt.bind_all([2, "b"])
            stmt.step()
        assert count_items(conn) == 2

    def test_clear_bindings(self, conn: sqlite3.Connection) -> None:
        """Cleared bindings leave the placeholders unbound."""
        with prepare(conn, "SELECT ?") as stmt:
            stmt.bind_all([1])
            stmt.clear_bindings()
            with pytest.raises(BindError):
                stmt.step()


class TestStatementErrors:
    """Tests for error classification."""

    def test_empty_sql(self, conn: sqlite3.Connection) -> None:
        """Empty statements fail at prepare."""
        with pytest.raises(PrepareError):
            prepare(conn, "   ")

    def test_syntax_error_is_prepare_error(self, conn: sqlite3.Connection) -> None:
        """Malformed SQL surfaces as PrepareError with the SQL text."""
        with prepare(conn, "SELEC id FROM items") as stmt:
            with pytest.raises(PrepareError) as exc_info:
                stmt.step()
        assert exc_info.value.sql == "SELEC id FROM items"
        assert "syntax error" in exc_info.value.underlying_error

    def test_missing_table_is_prepare_error(self, conn: sqlite3.Connection) -> None:
        """Schema mismatch surfaces as PrepareError."""
        with prepare(conn, "SELECT * FROM nope") as stmt:
            with pytest.raises(PrepareError) as exc_info:
                stmt.step()
        assert "no such table" in exc_info.value.underlying_error

    def test_wrong_argument_count_is_bind_error(self, conn: sqlite3.Connection) -> None:
        """The engine's rejection of argument count is a BindError."""
        with prepare(conn, "SELECT * FROM items WHERE id = ?") as stmt:
            stmt.bind_all([1, 2])
            with pytest.raises(BindError):
                stmt.step()

    def test_unsupported_value_carries_sql(self, conn: sqlite3.Connection) -> None:
        """Unsupported values are rejected at bind time."""
        with prepare(conn, "SELECT ?") as stmt:
            with pytest.raises(UnsupportedValueError) as exc_info:
                stmt.bind_all([1.5])
        assert exc_info.value.sql == "SELECT ?"
        assert exc_info.value.index == 1

    def test_constraint_violation_is_step_error(self, conn: sqlite3.Connection) -> None:
        """Execution failures that are not compile errors are StepErrors."""
        conn.execute("INSERT INTO items VALUES (1, 'a')")
        with pytest.raises(StepError) as exc_info:
            run_statement(conn, "INSERT INTO items (id, label) VALUES (?, ?)", (1, "dup"))
        assert not isinstance(exc_info.value, PrepareError)
        assert "UNIQUE" in exc_info.value.underlying_error

    def test_runtime_function_failure_is_step_error(self, conn: sqlite3.Connection) -> None:
        """A statement that compiles but fails while running is a StepError."""

        def explode(value: object) -> object:
            raise RuntimeError("explode")

        conn.create_function("explode", 1, explode)
        with pytest.raises(StepError) as exc_info:
            run_statement(conn, "INSERT INTO items (id, label) VALUES (1, explode(1))")
        assert not isinstance(exc_info.value, PrepareError)
        assert conn.execute("SELECT COUNT(*) FROM items").fetchone()[0] == 0

    @pytest.mark.parametrize("value", [2**63, -(2**63) - 1, "\ud800"])
    def test_value_engine_cannot_store_is_bind_error(
        self, conn: sqlite3.Connection, value: object
    ) -> None:
        """Out-of-range ints and unencodable strings are rejected as BindError."""
        sql = "INSERT INTO items (id, label) VALUES (1, ?)"
        with pytest.raises(BindError) as exc_info:
            run_statement(conn, sql, (value,))
        assert exc_info.value.sql == sql

    def test_int64_bounds_bind(self, conn: sqlite3.Connection) -> None:
        """The signed 64-bit extremes still bind."""
        with prepare(conn, "SELECT ?, ?") as stmt:
            stmt.bind_all([2**63 - 1, -(2**63)])
            assert stmt.step() is StepResult.ROW
            assert stmt.row == (2**63 - 1, -(2**63))


class TestExec:
    """Tests for exec_sql, run_statement and execute_batch."""

    def test_exec_sql_runs_script(self, conn: sqlite3.Connection) -> None:
        """exec_sql accepts several statements."""
        exec_sql(conn, "INSERT INTO items VALUES (1, 'a'); INSERT INTO items VALUES (2, 'b');")
        assert count_items(conn) == 2

    def test_exec_sql_failure(self, conn: sqlite3.Connection) -> None:
        """exec_sql failures are ExecErrors naming the query."""
        with pytest.raises(ExecError) as exc_info:
            exec_sql(conn, "DROP TABLE nope")
        assert exc_info.value.sql == "DROP TABLE nope"

    def test_run_statement_returns_rowcount(self, conn: sqlite3.Connection) -> None:
        """run_statement reports changed rows."""
        conn.execute("INSERT INTO items VALUES (1, 'a'), (2, 'b')")
        assert run_statement(conn, "DELETE FROM items WHERE id > ?", (0,)) == 2

    def test_execute_batch_runs_in_order(self, conn: sqlite3.Connection) -> None:
        """Every statement runs to completion."""
        execute_batch(conn, [
            "INSERT INTO items VALUES (1, 'a')",
            "UPDATE items SET label = 'z' WHERE id = 1",
        ])
        assert conn.execute("SELECT label FROM items").fetchone()[0] == "z"

    def test_execute_batch_stops_at_first_failure(self, conn: sqlite3.Connection) -> None:
        """A failure aborts the rest; earlier statements stay applied."""
        with pytest.raises(PrepareError):
            execute_batch(conn, [
                "INSERT INTO items VALUES (1, 'a')",
                "INSERT INTO nope VALUES (2)",
                "INSERT INTO items VALUES (3, 'c')",
            ])
        assert count_items(conn) == 1
