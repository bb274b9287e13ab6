"""
SQL text builders for structured select, insert and delete.

Table names, column lists and the group/having/order clauses are inserted
into the statement text as given; they must come from the application, not
from users. Predicate templates keep their "?" placeholders and the
predicate arguments are returned alongside the SQL for positional binding,
so argument values never become part of the SQL text.
"""

from collections.abc import Sequence
from enum import Enum

from sqlhelper.errors import PrepareError


class SortOrder(str, Enum):
    """Direction of an ORDER BY clause."""

    ASC = "ASC"
    DESC = "DESC"


def _sort_order(order: SortOrder | str | None) -> SortOrder:
    if order is None:
        return SortOrder.ASC
    try:
        return SortOrder(order.upper())
    except ValueError:
        raise PrepareError(
            sql="ORDER BY",
            underlying_error=f"unknown sort order {order!r}",
        ) from None


def build_select(
    table: str,
    columns: Sequence[str],
    selection: str | None = None,
    selection_args: Sequence[object] | None = None,
    group_by: str | None = None,
    having: str | None = None,
    order_by: str | None = None,
    order: SortOrder | str | None = None,
) -> tuple[str, tuple[object, ...]]:
    """
    Build a SELECT statement.

    Args:
        table: Table to query
        columns: Column names or expressions to return
        selection: WHERE template with "?" placeholders (None for no WHERE)
        selection_args: Values for the placeholders, in order
        group_by: GROUP BY clause
        having: HAVING clause
        order_by: ORDER BY clause
        order: Sort direction, ASC when order_by is given without one

    Returns:
        The SQL text and the arguments to bind

    Raises:
        PrepareError: If no columns are given or the sort order is unknown
    """
    if not columns:
        raise PrepareError(sql=f"SELECT FROM {table}", underlying_error="no columns given")

    parts = [f"SELECT {', '.join(columns)}", f"FROM {table}"]
    args: tuple[object, ...] = ()
    if selection:
        parts.append(f"WHERE {selection}")
        args = tuple(selection_args or ())
    if group_by:
        parts.append(f"GROUP BY {group_by}")
    if having:
        parts.append(f"HAVING {having}")
    if order_by:
        direction = _sort_order(order)
        parts.append(f"ORDER BY {order_by} {direction.value}")
    return " ".join(parts), args


def build_insert(table: str, columns: Sequence[str], replace_existing: bool = False) -> str:
    """Build a single-row INSERT with one placeholder per column."""
    if not columns:
        raise PrepareError(sql=f"INSERT INTO {table}", underlying_error="no columns given")
    verb = "INSERT OR REPLACE" if replace_existing else "INSERT"
    placeholders = ", ".join("?" for _ in columns)
    return f"{verb} INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


def build_delete(
    table: str,
    where_clause: str | None = None,
    where_args: Sequence[object] | None = None,
) -> tuple[str, tuple[object, ...]]:
    """Build a DELETE; no where_clause deletes every row."""
    if where_clause:
        return f"DELETE FROM {table} WHERE {where_clause}", tuple(where_args or ())
    return f"DELETE FROM {table}", ()
