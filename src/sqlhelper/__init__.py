"""
sqlhelper - single-connection SQLite access with versioned schema upgrades.

It provides:
- Lazy opening with a schema version ledger and an upgrade callback
- Structured select/insert/batch-insert/delete on top of bound parameters
- A closed value codec (None, int, str, bytes, pydantic payloads)
- A forward-only cursor that checks its rows were consumed

Example usage:
    from sqlhelper import Database

    def upgrade(version, ctx):
        ctx.exec_sql("CREATE TABLE items (id INTEGER PRIMARY KEY, label TEXT)")

    with Database("app.db", version=1, on_upgrade=upgrade) as db:
        db.insert("items", {"id": 1, "label": "a"})
"""

from sqlhelper.codec import ColumnType, SqlValue
from sqlhelper.config import DatabaseConfig, load_config, load_config_from_string
from sqlhelper.cursor import Cursor
from sqlhelper.database import Database, MigrationContext
from sqlhelper.errors import (
    BindError,
    ColumnTypeError,
    ConfigError,
    CursorMisuseError,
    ExecError,
    OpenDatabaseError,
    PrepareError,
    SqlHelperError,
    StatementError,
    StepError,
    UnsupportedValueError,
    VersionReadError,
    VersionWriteError,
)
from sqlhelper.query import SortOrder
from sqlhelper.versions import LedgerEntry

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BindError",
    "ColumnType",
    "ColumnTypeError",
    "ConfigError",
    "Cursor",
    "CursorMisuseError",
    "Database",
    "DatabaseConfig",
    "ExecError",
    "LedgerEntry",
    "MigrationContext",
    "OpenDatabaseError",
    "PrepareError",
    "SortOrder",
    "SqlHelperError",
    "SqlValue",
    "StatementError",
    "StepError",
    "UnsupportedValueError",
    "VersionReadError",
    "VersionWriteError",
    "load_config",
    "load_config_from_string",
]
