"""
CLI: ``rowmap db`` table management commands.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from rowmap.cli.utils import console, fail, load_entities, load_settings, print_dict, print_rows
from rowmap.core.errors import RowmapError

if TYPE_CHECKING:
    from rowmap.core.helper import DatabaseHelper

app = typer.Typer(no_args_is_help=True)


@app.command()
def ddl(
    entities: list[str] = typer.Argument(..., help="package.module:ClassName[=table]"),
    dialect: str = typer.Option("sqlite", "--dialect", help="sqlite or postgresql"),
) -> None:
    """Print the CREATE TABLE statement for each entity."""
    from rowmap.core.ddl import create_table_sql
    from rowmap.core.dialect import get_dialect
    from rowmap.core.inspector import inspect_entity

    sql_dialect = get_dialect(dialect)
    for cls, table in load_entities(entities):
        try:
            schema = inspect_entity(cls)
        except RowmapError as e:
            fail(e)
        console.print(create_table_sql(schema, table, sql_dialect) + ";", highlight=False, soft_wrap=True)


@app.command()
def init(
    entities: list[str] = typer.Argument(..., help="package.module:ClassName[=table]"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    version: int | None = typer.Option(None, "--version", "-v", min=1, help="Schema version"),
) -> None:
    """Create (or destructively upgrade) the tables for the given entities."""
    helper = _open_helper(entities, database, version)
    try:
        with helper.session() as store:
            print_dict(
                {
                    "backend": store.dialect_name,
                    "version": store.user_version,
                    "tables": ", ".join(helper.table_names),
                },
                title="Database Init",
            )
    except RowmapError as e:
        fail(e)


@app.command()
def tables(
    entities: list[str] = typer.Argument(..., help="package.module:ClassName[=table]"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    version: int | None = typer.Option(None, "--version", "-v", min=1, help="Schema version"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show row counts for the given entities' tables."""
    helper = _open_helper(entities, database, version)
    rows = []
    try:
        with helper.session():
            for cls, table in helper.entities:
                with helper.dao(cls, table) as dao:
                    rows.append({"table": table, "entity": cls.__qualname__, "rows": dao.count_entries()})
    except RowmapError as e:
        fail(e)
    print_rows(rows, title="Table Counts", as_json=json_out)


@app.command()
def check(
    entities: list[str] = typer.Argument(..., help="package.module:ClassName[=table]"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    version: int | None = typer.Option(None, "--version", "-v", min=1, help="Schema version"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Decode every row and list the ones that cannot be converted.

    Exits with status 1 when any row fails.
    """
    from rowmap.core.errors import categorize_error
    from rowmap.core.result import partition_results

    helper = _open_helper(entities, database, version)
    failures = []
    try:
        with helper.session():
            for cls, table in helper.entities:
                with helper.dao(cls, table) as dao:
                    _, errors = partition_results(dao.fetch_each())
                for error in errors:
                    detail = error.to_dict() if isinstance(error, RowmapError) else {"message": str(error)}
                    failures.append(
                        {
                            "table": table,
                            "category": categorize_error(error).value,
                            "field": detail.get("context", {}).get("field_name", ""),
                            "message": detail["message"],
                        }
                    )
    except RowmapError as e:
        fail(e)

    if failures or json_out:
        print_rows(failures, title="Unreadable Rows", as_json=json_out)
    else:
        console.print("[green]All rows readable.[/green]")
    if failures:
        raise typer.Exit(code=1)


def _open_helper(entities: list[str], database: str | None, version: int | None) -> DatabaseHelper:
    from rowmap.core.helper import DatabaseHelper

    settings = load_settings()
    return DatabaseHelper.from_url(
        database or settings.database_url,
        version or settings.schema_version,
        load_entities(entities),
        data_dir=settings.data_dir,
    )
