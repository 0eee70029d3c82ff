"""
CLI entry point for TinyStore.

This module provides a Typer-based command-line interface for looking
inside TinyStore databases without writing Python.

Commands:
    tables      List the tables of a database
    columns     List the columns of a table
    rows        Print the rows of a table

Architecture Note:
    Every command goes through the same Database the library uses
    (configure, fetch, close), so the CLI sees exactly what the stores see.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from tinystore import __version__
from tinystore.schema import StoreConfig, load_config
from tinystore.store import Database, quote_identifier, select_statement

app = typer.Typer(
    name="tinystore",
    help="Inspect TinyStore SQLite databases.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

DbArgument = Annotated[
    Path,
    typer.Argument(
        help="Path to the SQLite database.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="YAML store configuration (pragmas, log level).",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]tinystore[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    TinyStore - Typed record storage on SQLite.

    Read-only views of the tables TinyStore stores manage.
    """
    pass


def _open(db_path: Path, config_path: Path | None) -> Database:
    """Load configuration, set up logging and open the database."""
    try:
        config = load_config(config_path) if config_path else StoreConfig()
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(code=1)

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(levelname)-8s | %(name)s | %(message)s",
    )

    database = Database(db_path, pragmas=dict(config.pragmas))
    if not database.configure().result():
        database.close()
        console.print(f"[red]Could not open database {db_path}[/red]")
        raise typer.Exit(code=1)
    return database


def _fetch(database: Database, statement: str) -> list[dict[str, str]]:
    """Run a read and exit on failure."""
    success, rows = database.fetch(statement).result()
    if not success:
        console.print(f"[red]Query failed:[/red] {statement}")
        raise typer.Exit(code=1)
    return rows or []


@app.command()
def tables(
    db: DbArgument,
    config: ConfigOption = None,
) -> None:
    """
    List the tables of a database.

    Example:
        $ tinystore tables app.db
    """
    with _open(db, config) as database:
        rows = _fetch(
            database,
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
        )

    if not rows:
        console.print("[dim]No tables found.[/dim]")
        raise typer.Exit(code=0)

    for row in rows:
        console.print(row["name"])


@app.command()
def columns(
    db: DbArgument,
    table: Annotated[str, typer.Argument(help="Table name.")],
    config: ConfigOption = None,
) -> None:
    """
    List the columns of a table.

    Example:
        $ tinystore columns app.db Note
    """
    with _open(db, config) as database:
        rows = _fetch(database, f"PRAGMA table_info({quote_identifier(table)})")

    if not rows:
        console.print(f"[yellow]No such table: {table}[/yellow]")
        raise typer.Exit(code=1)

    output = Table(show_header=True, header_style="bold")
    output.add_column("#", style="dim", justify="right")
    output.add_column("Column", style="cyan")
    output.add_column("Type")
    output.add_column("Key", justify="center")

    for row in rows:
        output.add_row(
            row.get("cid", ""),
            row.get("name", ""),
            row.get("type", ""),
            "PK" if row.get("pk", "0") != "0" else "",
        )

    console.print(output)


@app.command()
def rows(
    db: DbArgument,
    table: Annotated[str, typer.Argument(help="Table name.")],
    where: Annotated[
        Optional[str],
        typer.Option(
            "--where",
            "-w",
            help="Raw condition, e.g. \"WHERE age > 3\".",
        ),
    ] = None,
    sort: Annotated[
        Optional[str],
        typer.Option(
            "--sort",
            "-s",
            help="Column to sort by.",
        ),
    ] = None,
    numeric: Annotated[
        bool,
        typer.Option(
            "--numeric",
            help="Compare the sort column as a number.",
        ),
    ] = False,
    desc: Annotated[
        bool,
        typer.Option(
            "--desc",
            help="Sort descending.",
        ),
    ] = False,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Maximum number of rows to show.",
        ),
    ] = 50,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output rows as JSON.",
        ),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """
    Print the rows of a table.

    Cells are shown as stored: every value is text.

    Example:
        $ tinystore rows app.db Note --sort created --numeric --desc -n 10
    """
    statement = select_statement(
        table,
        where,
        sort,
        numeric=numeric,
        reverse=desc,
        limit=limit,
    )

    with _open(db, config) as database:
        result = _fetch(database, statement)

    if json_output:
        console.print_json(json.dumps(result))
        return

    if not result:
        console.print("[dim]No rows found.[/dim]")
        raise typer.Exit(code=0)

    names: list[str] = []
    for row in result:
        for name in row:
            if name not in names:
                names.append(name)

    output = Table(show_header=True, header_style="bold")
    for name in names:
        output.add_column(name, style="cyan" if name == "id" else None)
    for row in result:
        output.add_row(*(row.get(name, "") for name in names))

    console.print(output)
    console.print(f"[dim]{len(result)} row(s)[/dim]")


if __name__ == "__main__":
    app()
