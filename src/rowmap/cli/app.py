"""
Root Typer application for the rowmap CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from rowmap.cli.db import app as db_app

app = Typer(
    name="rowmap",
    help="rowmap: map dataclasses to SQL tables.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from rowmap import __version__

        typer.echo(f"rowmap {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for rowmap events."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Render log events as JSON."),
) -> None:
    """rowmap CLI: preview DDL, create and inspect entity tables."""
    from rowmap.core.logging import configure_logging

    configure_logging(level=log_level, json_format=json_logs, service="rowmap-cli")


app.add_typer(db_app, name="db", help="Database operations.")


if __name__ == "__main__":
    app()
