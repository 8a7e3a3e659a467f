"""SQL dialect abstraction for the table definition generator.

The mapping engine emits portable SQL except for a handful of fragments that
differ between backends: the auto-incrementing primary key type, the
placeholder style, and the catalog query that tells whether a table exists.
``Dialect`` captures those fragments; each store reports which dialect it
speaks through ``dialect_name`` and ``get_dialect`` maps that back to an
implementation.

Examples:
    >>> from rowmap.core.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.auto_increment()
    'INTEGER PRIMARY KEY AUTOINCREMENT'
    >>> d.placeholders(3)
    '?, ?, ?'
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract. Every method returns a SQL fragment."""

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def auto_increment(self) -> str:
        """Full column type for an auto-incrementing integer primary key."""
        ...

    def table_exists_query(self) -> str:
        """Query taking one placeholder (table name), returning rows if it exists."""
        ...


class SQLiteDialect:
    """SQLite dialect: ``?`` placeholders, ``AUTOINCREMENT`` keys."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def auto_increment(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table' AND name = ?"


class PostgreSQLDialect:
    """PostgreSQL dialect: ``SERIAL`` keys.

    Placeholders stay ``?``: the SQLAlchemy store rewrites them into bind
    parameters before anything reaches the driver.
    """

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def auto_increment(self) -> str:
        return "SERIAL PRIMARY KEY"

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = ?"
        )


_DIALECTS: dict[str, type] = {
    "sqlite": SQLiteDialect,
    "postgresql": PostgreSQLDialect,
}


def get_dialect(name: str) -> Dialect:
    """Return the dialect for a backend name, defaulting to SQLite."""
    return _DIALECTS.get(name, SQLiteDialect)()


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
]
