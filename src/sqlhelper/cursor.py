"""
Forward-only cursor over the rows of one statement.

Usage:
    cursor = Cursor(prepare(conn, "SELECT id, label FROM items"))
    while cursor.advance():
        print(cursor.int_at(0), cursor.text_or_none_at(1))
    cursor.close()

close() insists that the rows were consumed: a cursor that was never
advanced, was abandoned mid-stream, or stopped on a step error raises
CursorMisuseError when closed. The statement is finalized exactly once
either way, and a second close() is a no-op.
"""

from typing import Any, TypeVar

from pydantic import BaseModel

from sqlhelper.codec import ColumnType, SqlValue, column_type, decode_payload, decode_value
from sqlhelper.errors import ColumnTypeError, CursorMisuseError, SqlHelperError
from sqlhelper.statement import Statement, StepResult

ModelT = TypeVar("ModelT", bound=BaseModel)


class Cursor:
    """
    Row cursor owning one Statement.

    Column accessors are valid only between an advance() that returned True
    and the next advance() or close().
    """

    def __init__(self, statement: Statement) -> None:
        self._stmt = statement
        self._status: StepResult | None = None
        self._error: SqlHelperError | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def sql(self) -> str:
        return self._stmt.sql

    @property
    def column_names(self) -> list[str]:
        return self._stmt.column_names

    @property
    def column_count(self) -> int:
        return len(self.column_names)

    def advance(self) -> bool:
        """
        Move to the next row.

        Returns True while rows remain. A step failure returns False and is
        reported by close().
        """
        if self._closed or self._error is not None:
            return False
        try:
            self._status = self._stmt.step()
        except SqlHelperError as e:
            self._status = None
            self._error = e
            return False
        return self._status is StepResult.ROW

    def close(self) -> None:
        """
        Finalize the statement and check that iteration completed.

        Raises:
            CursorMisuseError: reason "never_advanced", "abandoned" or
                "step_failed" when the rows were not fully consumed
        """
        if self._closed:
            return

        self._stmt.finalize()
        self._closed = True

        if self._error is not None:
            raise CursorMisuseError(
                reason="step_failed",
                sql=self.sql,
                underlying_error=str(self._error),
            ) from self._error
        if self._status is None:
            raise CursorMisuseError(reason="never_advanced", sql=self.sql)
        if self._status is not StepResult.DONE:
            raise CursorMisuseError(reason="abandoned", sql=self.sql)

    def __enter__(self) -> "Cursor":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is None:
            self.close()
            return
        # The block is already failing; keep its exception primary.
        try:
            self.close()
        except CursorMisuseError as close_error:
            exc.add_note(f"while closing cursor: {close_error}")

    # =========================================================================
    # Column Accessors
    # =========================================================================

    def _current_row(self) -> tuple[Any, ...]:
        row = self._stmt.row
        if self._closed or self._status is not StepResult.ROW or row is None:
            raise CursorMisuseError(reason="no_current_row", sql=self.sql)
        return row

    def _raw(self, index: int) -> Any:
        return self._current_row()[index]

    def column_type_at(self, index: int) -> ColumnType:
        return column_type(self._raw(index), index)

    def is_null_at(self, index: int) -> bool:
        return self._raw(index) is None

    def value_at(self, index: int) -> SqlValue:
        """Decode a column to None, int, str or bytes by its storage class."""
        return decode_value(self._raw(index), index)

    def _typed(self, index: int, expected: ColumnType) -> SqlValue:
        raw = self._raw(index)
        actual = column_type(raw, index)
        if actual is not expected:
            raise ColumnTypeError(index=index, expected=expected.value, actual=actual.value)
        return decode_value(raw, index)

    def int_at(self, index: int) -> int:
        return self._typed(index, ColumnType.INTEGER)  # type: ignore[return-value]

    def int_or_none_at(self, index: int) -> int | None:
        if self.is_null_at(index):
            return None
        return self.int_at(index)

    def text_at(self, index: int) -> str:
        return self._typed(index, ColumnType.TEXT)  # type: ignore[return-value]

    def text_or_none_at(self, index: int) -> str | None:
        if self.is_null_at(index):
            return None
        return self.text_at(index)

    def blob_at(self, index: int) -> bytes:
        return self._typed(index, ColumnType.BLOB)  # type: ignore[return-value]

    def blob_or_none_at(self, index: int) -> bytes | None:
        if self.is_null_at(index):
            return None
        return self.blob_at(index)

    def payload_at(self, index: int, model: type[ModelT]) -> ModelT | None:
        """Parse a structured-payload column; None if NULL or unparseable."""
        return decode_payload(self._raw(index), model)

    def row_values(self) -> tuple[SqlValue, ...]:
        """Decode every column of the current row."""
        return tuple(decode_value(raw, i) for i, raw in enumerate(self._current_row()))

    def __repr__(self) -> str:
        return f"Cursor(sql={self.sql!r}, status={self._status}, closed={self._closed})"
