"""
CLI entry point for sqlhelper.

Read-only inspection of databases managed by sqlhelper.

Commands:
    versions    Show the schema version ledger
    query       Run a read-only query and print the rows
    info        Show file, engine and schema details

Every command opens the file read-only; nothing here creates, migrates or
writes to a database.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sqlhelper import __version__
from sqlhelper.codec import SqlValue
from sqlhelper.cursor import Cursor
from sqlhelper.errors import OpenDatabaseError, SqlHelperError, VersionReadError
from sqlhelper.statement import prepare
from sqlhelper.versions import SchemaVersions

app = typer.Typer(
    name="sqlhelper",
    help="Inspect sqlhelper-managed SQLite databases.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DbPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the SQLite database file.",
        exists=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
    ),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]sqlhelper[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log every statement."),
    ] = False,
) -> None:
    """
    sqlhelper - inspect SQLite databases and their schema version ledger.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@contextmanager
def _open_readonly(path: Path) -> Iterator[sqlite3.Connection]:
    try:
        conn = sqlite3.connect(f"{path.as_uri()}?mode=ro", uri=True)
    except sqlite3.Error as e:
        raise OpenDatabaseError(db_path=str(path), underlying_error=str(e)) from e
    with closing(conn):
        yield conn


def _read_rows(
    conn: sqlite3.Connection,
    sql: str,
    args: list[str],
) -> tuple[list[str], list[tuple[SqlValue, ...]]]:
    stmt = prepare(conn, sql)
    try:
        stmt.bind_all(args)
    except SqlHelperError:
        stmt.finalize()
        raise
    rows = []
    with Cursor(stmt) as cursor:
        while cursor.advance():
            rows.append(cursor.row_values())
        columns = cursor.column_names
    return columns, rows


def _display_value(value: SqlValue) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    if isinstance(value, bytes):
        return f"[dim]<{len(value)} bytes>[/dim]"
    return escape(str(value))


def _json_value(value: SqlValue) -> Any:
    if isinstance(value, bytes):
        return value.hex()
    return value


def _fail(error: Exception) -> None:
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    raise typer.Exit(code=1)


@app.command()
def versions(db: DbPath, json_output: JsonFlag = False) -> None:
    """
    Show the schema version ledger.

    Example:
        $ sqlhelper versions ~/.local/share/sqlhelper/app.db
    """
    try:
        with _open_readonly(db) as conn:
            entries = SchemaVersions(conn).history()
    except SqlHelperError as e:
        _fail(e)

    current = entries[-1].version if entries else None

    if json_output:
        print(json.dumps({
            "db_path": str(db),
            "current_version": current,
            "versions": [e.model_dump() for e in entries],
        }, indent=2))
        return

    if not entries:
        console.print("[dim]No versions recorded.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Version", style="cyan", justify="right")
    table.add_column("Applied")
    for entry in entries:
        table.add_row(str(entry.version), entry.applied_at[:19])
    console.print(table)
    console.print(f"[dim]Current version: {current}[/dim]")


@app.command()
def query(
    db: DbPath,
    sql: Annotated[str, typer.Argument(help="SQL query with ? placeholders.")],
    arg: Annotated[
        Optional[list[str]],
        typer.Option("--arg", "-a", help="Value for the next ? placeholder."),
    ] = None,
    json_output: JsonFlag = False,
) -> None:
    """
    Run a read-only query and print the rows.

    Example:
        $ sqlhelper query app.db "SELECT id, label FROM items WHERE id = ?" -a 1
    """
    try:
        with _open_readonly(db) as conn:
            columns, rows = _read_rows(conn, sql, arg or [])
    except SqlHelperError as e:
        _fail(e)

    if json_output:
        print(json.dumps({
            "columns": columns,
            "rows": [[_json_value(v) for v in row] for row in rows],
        }, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    for name in columns:
        table.add_column(name)
    for row in rows:
        table.add_row(*(_display_value(v) for v in row))
    console.print(table)
    console.print(f"[dim]{len(rows)} row(s)[/dim]")


@app.command()
def info(db: DbPath) -> None:
    """
    Show file, engine and schema details.

    Example:
        $ sqlhelper info app.db
    """
    try:
        with _open_readonly(db) as conn:
            try:
                current: int | None = SchemaVersions(conn).current_version()
            except VersionReadError:
                current = None
            _, tables = _read_rows(
                conn,
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name",
                [],
            )
    except SqlHelperError as e:
        _fail(e)

    console.print(f"[bold]Path:[/bold] {db}")
    console.print(f"[bold]Size:[/bold] {db.stat().st_size} bytes")
    console.print(f"[bold]SQLite:[/bold] {sqlite3.sqlite_version}")
    if current is None:
        console.print("[bold]Schema version:[/bold] [yellow]none recorded[/yellow]")
    else:
        console.print(f"[bold]Schema version:[/bold] {current}")
    console.print(f"[bold]Tables:[/bold] {', '.join(str(t[0]) for t in tables) or '-'}")


if __name__ == "__main__":
    app()
