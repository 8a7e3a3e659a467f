"""
CLI layer for rowmap.

Provides a Typer application for previewing and creating the tables of
entity classes. All mapping logic lives in ``rowmap.core``; this package
handles only terminal transport: argument parsing, coloured output and
table formatting.

Entry point::

    rowmap --help
"""

from rowmap.cli.app import app

__all__ = ["app"]
