"""
Canonical protocol definitions for rowmap.

Manifesto:
    The mapping engine never talks to a database driver directly. It depends
    on the *shape* of a relational store and of a result cursor, so the same
    DAO runs over ``sqlite3`` or SQLAlchemy without modification, and tests
    can hand it any object with the right methods.

Architecture:
    ::

        protocols.py
        ├── RelationalStore  table-level DML + DDL + raw queries
        ├── Cursor           positioned access to a materialized result set
        └── Referenceable    anything usable as a reference field target

    Implementations:
        sqlite_store.SqliteStore      (sqlite3)
        sa_store.SqlAlchemyStore      (SQLAlchemy Core)
        cursor.RowCursor              (shared by both stores)

Guardrails:
    ❌ DON'T: Add implementation logic to protocol classes
    ✅ DO: Keep protocols pure contracts; implementations live in adapters

Tags:
    protocol, store, cursor, reference, rowmap, contracts
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Cursor(Protocol):
    """
    Positioned view over the rows returned by a query.

    Mirrors the navigation contract of a database cursor: the caller moves to
    the first row, reads typed values for the current row by column name or
    index, and advances until ``is_after_last()``.

    Architecture:
        ::

            ┌────────────────────────────────────────────────────────┐
            │ move_to_first()     → bool  (False when empty)         │
            │ move_to_next()      → bool  (False past the last row)  │
            │ is_after_last()     → bool                             │
            │ count               → number of rows                   │
            │ column_index(name)  → int   (-1 when absent)           │
            │ get_value(col)      → raw value of current row         │
            │ get_int / get_float / get_string(col)                  │
            │ close()                                                │
            └────────────────────────────────────────────────────────┘
    """

    @property
    def columns(self) -> list[str]:
        ...

    @property
    def count(self) -> int:
        ...

    def move_to_first(self) -> bool:
        ...

    def move_to_next(self) -> bool:
        ...

    def is_after_last(self) -> bool:
        ...

    def column_index(self, name: str) -> int:
        ...

    def get_value(self, column: int | str) -> Any:
        ...

    def get_int(self, column: int | str) -> int | None:
        ...

    def get_float(self, column: int | str) -> float | None:
        ...

    def get_string(self, column: int | str) -> str | None:
        ...

    def close(self) -> None:
        ...

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        ...


@runtime_checkable
class RelationalStore(Protocol):
    """
    Minimal synchronous relational store used by the DAO and the helper.

    Predicates are SQL fragments with ``?`` placeholders; ``params`` binds
    them positionally. ``None`` as a predicate means "every row".

    Architecture:
        ::

            ┌────────────────────────────────────────────────────────────┐
            │ execute(sql)                          → None   (DDL)       │
            │ insert(table, values)                 → row id             │
            │ update(table, values, where, params)  → affected count     │
            │ delete(table, where, params)          → affected count     │
            │ query(table, columns, where, params)  → Cursor             │
            │ raw_query(sql, params)                → Cursor             │
            │ transaction()                         → context manager    │
            │ user_version                          → schema version     │
            │ close()                                                     │
            └────────────────────────────────────────────────────────────┘

    Errors raised by the underlying driver propagate unchanged.
    """

    @property
    def dialect_name(self) -> str:
        ...

    def execute(self, sql: str) -> None:
        ...

    def insert(self, table: str, values: Mapping[str, Any]) -> int:
        ...

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        where: str | None,
        params: Sequence[Any] = (),
    ) -> int:
        ...

    def delete(self, table: str, where: str | None, params: Sequence[Any] = ()) -> int:
        ...

    def query(
        self,
        table: str,
        columns: Sequence[str],
        where: str | None,
        params: Sequence[Any] = (),
    ) -> Cursor:
        ...

    def raw_query(self, sql: str, params: Sequence[Any] = ()) -> Cursor:
        ...

    def transaction(self) -> AbstractContextManager[None]:
        ...

    @property
    def user_version(self) -> int:
        ...

    @user_version.setter
    def user_version(self, version: int) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Referenceable(Protocol):
    """Anything that can sit in a reference field: it exposes its row id."""

    def get_id(self) -> int | None:
        ...


__all__ = [
    "Cursor",
    "RelationalStore",
    "Referenceable",
]
