"""
CLI utility helpers: entity loading and output formatting.
"""

from __future__ import annotations

import importlib
import json
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from rowmap.core.errors import RowmapError
from rowmap.core.markers import is_entity
from rowmap.core.settings import RowmapSettings

console = Console()
err_console = Console(stderr=True)


# ── Entity loading ───────────────────────────────────────────────────────


def parse_entity_spec(spec: str) -> tuple[type, str]:
    """Resolve ``package.module:ClassName[=table]`` to ``(class, table)``.

    The table name defaults to the lower-cased class name.
    """
    target, _, table = spec.partition("=")
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"Expected package.module:ClassName[=table], got {spec!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import module {module_name!r}: {e}") from e

    obj: Any = module
    for part in attr.split("."):
        obj = getattr(obj, part, None)
        if obj is None:
            raise typer.BadParameter(f"Module {module_name!r} has no attribute {attr!r}")

    if not isinstance(obj, type) or not is_entity(obj):
        raise typer.BadParameter(f"{target} is not an @entity class")

    return obj, table or obj.__name__.lower()


def load_entities(specs: list[str]) -> list[tuple[type, str]]:
    return [parse_entity_spec(spec) for spec in specs]


def load_settings() -> RowmapSettings:
    return RowmapSettings()


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: RowmapError | str) -> None:
    """Print an error and exit with status 1."""
    if isinstance(error, RowmapError):
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
    raise typer.Exit(code=1)


def print_rows(rows: list[dict[str, Any]], *, title: str = "", as_json: bool = False) -> None:
    """Render a list of dicts as a Rich table (or JSON)."""
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in row.values()))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
