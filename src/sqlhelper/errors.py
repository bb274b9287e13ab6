"""
Exception hierarchy for sqlhelper.

All sqlhelper exceptions inherit from SqlHelperError, allowing callers to catch
every database-layer failure with a single except clause.

Exception Categories:
    - OpenDatabaseError: The connection could not be established
    - StatementError: Prepare, bind, step or exec failed (carries the SQL)
    - CursorMisuseError: A cursor was closed or read out of order
    - VersionReadError / VersionWriteError: Schema ledger access failed
    - ConfigError: Configuration could not be loaded

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (SQL text, column index, path where applicable)
    - Native sqlite3 exceptions are chained, never swallowed
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Connection errors: 1xxx
ERROR_OPEN_FAILED = 1001
ERROR_OPEN_REENTRANT = 1002
ERROR_DATA_DIR = 1003

# Statement errors: 2xxx
ERROR_PREPARE = 2001
ERROR_STEP = 2002
ERROR_BIND = 2003
ERROR_UNSUPPORTED_VALUE = 2004
ERROR_EXEC = 2005

# Cursor errors: 3xxx
ERROR_CURSOR_MISUSE = 3001
ERROR_COLUMN_TYPE = 3002

# Schema ledger errors: 4xxx
ERROR_VERSION_READ = 4001
ERROR_VERSION_WRITE = 4002

# Configuration errors: 5xxx
ERROR_CONFIG = 5001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class SqlHelperError(Exception):
    """
    Base exception for all sqlhelper errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Connection Errors
# =============================================================================


@dataclass
class OpenDatabaseError(SqlHelperError):
    """
    Raised when the database connection cannot be established.

    Also raised when an upgrade callback tries to re-enter the database it is
    migrating, and when the storage directory cannot be created.

    Attributes:
        db_path: Path of the database file
        underlying_error: Native error message, if any
    """

    db_path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot open database at {self.db_path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_OPEN_FAILED
        if not self.suggestion and self.code == ERROR_OPEN_FAILED:
            self.suggestion = "Check that the database directory exists and is writable"
        self.context.update({
            "db_path": self.db_path,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Statement Errors
# =============================================================================


@dataclass
class StatementError(SqlHelperError):
    """
    Base class for errors raised while running a statement.

    Attributes:
        sql: The statement text that failed
        underlying_error: Native error message
    """

    sql: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "sql": self.sql,
            "underlying_error": self.underlying_error,
        })


@dataclass
class PrepareError(StatementError):
    """Raised when a statement is malformed or references missing schema."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Preparing statement {self.sql!r}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_PREPARE
        super().__post_init__()


@dataclass
class StepError(StatementError):
    """Raised when stepping a statement fails with anything but row/done."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Executing statement {self.sql!r}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STEP
        super().__post_init__()


@dataclass
class BindError(StatementError):
    """
    Raised when the engine rejects the bound arguments.

    Attributes:
        index: 1-based placeholder position, when known
    """

    index: int | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Binding arguments for {self.sql!r}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BIND
        super().__post_init__()
        self.context["index"] = self.index


@dataclass
class UnsupportedValueError(BindError):
    """Raised when a value outside {None, int, str, bytes, model} is bound or read."""

    value_type: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unsupported value type {self.value_type} at position {self.index}"
        if self.code == 0:
            self.code = ERROR_UNSUPPORTED_VALUE
        if not self.suggestion:
            self.suggestion = "Convert the value to int, str, bytes or a pydantic model"
        super().__post_init__()
        self.context["value_type"] = self.value_type


@dataclass
class ExecError(StatementError):
    """Raised when one-shot execution through exec_sql fails."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Query failed because {self.underlying_error} Query: {self.sql}"
        if self.code == 0:
            self.code = ERROR_EXEC
        super().__post_init__()


# =============================================================================
# Cursor Errors
# =============================================================================


@dataclass
class CursorMisuseError(SqlHelperError):
    """
    Raised when a cursor is closed or read out of order.

    Attributes:
        reason: One of "never_advanced", "abandoned", "step_failed" or
            "no_current_row"
        sql: The statement the cursor was iterating
        underlying_error: Native error message for "step_failed"
    """

    reason: str = ""
    sql: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = _CURSOR_MESSAGES.get(self.reason, f"Cursor misuse: {self.reason}")
            if self.underlying_error:
                self.message = f"{self.message}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CURSOR_MISUSE
        self.context.update({
            "reason": self.reason,
            "sql": self.sql,
            "underlying_error": self.underlying_error,
        })


_CURSOR_MESSAGES = {
    "never_advanced": "cursor.advance was never called, cursor values unused",
    "abandoned": "cursor closed before all rows were consumed",
    "step_failed": "cursor stopped on a step error",
    "no_current_row": "cursor has no current row",
}


@dataclass
class ColumnTypeError(SqlHelperError):
    """Raised when a typed accessor meets a column of another storage class."""

    index: int = 0
    expected: str = ""
    actual: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Column {self.index} holds {self.actual}, expected {self.expected}"
        if self.code == 0:
            self.code = ERROR_COLUMN_TYPE
        if not self.suggestion and self.actual == "NULL":
            self.suggestion = "Use the *_or_none_at accessor for nullable columns"
        self.context.update({
            "index": self.index,
            "expected": self.expected,
            "actual": self.actual,
        })


# =============================================================================
# Schema Ledger Errors
# =============================================================================


@dataclass
class VersionReadError(SqlHelperError):
    """Raised when the current schema version cannot be read."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Checking version: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_VERSION_READ
        self.context["underlying_error"] = self.underlying_error


@dataclass
class VersionWriteError(SqlHelperError):
    """Raised when a new schema version cannot be recorded."""

    version: int = 0
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Writing migration record for version {self.version}: {self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_VERSION_WRITE
        self.context.update({
            "version": self.version,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(SqlHelperError):
    """Raised when a configuration file cannot be loaded or validated."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })
