"""
Value codec for sqlhelper.

Maps the closed set of Python value kinds to SQLite storage classes and back:

    None                          <-> NULL
    int                           <-> INTEGER
    str                           <-> TEXT (UTF-8)
    bytes, bytearray, memoryview   -> BLOB  (decoded as bytes)
    pydantic BaseModel             -> BLOB of its JSON (structured payload)

Anything else is rejected with UnsupportedValueError at the boundary rather
than being bound as NULL. Structured payloads are read back with
decode_payload(), which yields None instead of raising on bad data.
"""

from collections.abc import Iterable
from enum import Enum
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from sqlhelper.errors import UnsupportedValueError

SqlValue = None | int | str | bytes

ModelT = TypeVar("ModelT", bound=BaseModel)


class ColumnType(str, Enum):
    """SQLite storage class of a single column value."""

    NULL = "NULL"
    INTEGER = "INTEGER"
    TEXT = "TEXT"
    BLOB = "BLOB"


def column_type(raw: object, index: int | None = None) -> ColumnType:
    """Return the storage class of a value read from a row."""
    if raw is None:
        return ColumnType.NULL
    # bool is an int subclass but never comes back from sqlite3
    if isinstance(raw, int) and not isinstance(raw, bool):
        return ColumnType.INTEGER
    if isinstance(raw, str):
        return ColumnType.TEXT
    if isinstance(raw, bytes):
        return ColumnType.BLOB
    raise UnsupportedValueError(index=index, value_type=type(raw).__name__)


def encode_value(value: object, index: int | None = None) -> SqlValue:
    """
    Encode one Python value for binding.

    Args:
        value: The value to bind
        index: 1-based placeholder position, used in error context

    Returns:
        A value sqlite3 binds to NULL, INTEGER, TEXT or BLOB

    Raises:
        UnsupportedValueError: If the value is outside the supported set
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        raise UnsupportedValueError(index=index, value_type="bool")
    if isinstance(value, int):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, BaseModel):
        return encode_payload(value)
    raise UnsupportedValueError(index=index, value_type=type(value).__name__)


def encode_values(values: Iterable[object]) -> tuple[SqlValue, ...]:
    """Encode positional arguments 1..N in order."""
    return tuple(encode_value(v, index=i) for i, v in enumerate(values, start=1))


def decode_value(raw: object, index: int | None = None) -> SqlValue:
    """
    Decode one column value read from sqlite3.

    Raises:
        UnsupportedValueError: If the column holds a REAL (or any other) value
    """
    kind = column_type(raw, index)
    if kind is ColumnType.BLOB:
        return bytes(raw)  # type: ignore[arg-type]
    return raw  # type: ignore[return-value]


def encode_payload(model: BaseModel) -> bytes:
    """Serialize a structured record to a JSON blob."""
    return model.model_dump_json().encode("utf-8")


def decode_payload(raw: object, model: type[ModelT]) -> ModelT | None:
    """
    Parse a blob (or text) column as a JSON structured record.

    Returns None for NULL and for anything that fails to parse or validate.
    """
    if not isinstance(raw, (bytes, str)):
        return None
    try:
        return model.model_validate_json(raw)
    except ValidationError:
        return None
