"""SQLite relational store.

Wraps a :class:`sqlite3.Connection` to satisfy the
:class:`~rowmap.core.protocols.RelationalStore` protocol.

The connection runs in autocommit mode (``isolation_level=None``); every
statement is its own transaction unless it runs inside
:meth:`SqliteStore.transaction`, which issues an explicit ``BEGIN`` and
``COMMIT`` (or ``ROLLBACK``). Statements are serialized through a
re-entrant lock so one store may be shared between threads.

Usage::

    from rowmap.core.sqlite_store import SqliteStore

    store = SqliteStore(":memory:")
    store.execute("CREATE TABLE t (_id_id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT)")
    row_id = store.insert("t", {"name": "bolt"})
    cursor = store.query("t", ["_id_id", "name"], "_id_id = ?", (row_id,))
    store.close()
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from rowmap.core.cursor import RowCursor


class SqliteStore:
    """Adapter: ``sqlite3.Connection`` → ``RelationalStore`` protocol."""

    dialect_name = "sqlite"

    def __init__(self, path: str = ":memory:") -> None:
        self._path = path
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        self._lock = threading.RLock()
        self._depth = 0

    # -- RelationalStore protocol ------------------------------------------

    def execute(self, sql: str) -> None:
        with self._lock:
            self._conn.execute(sql)

    def insert(self, table: str, values: Mapping[str, Any]) -> int:
        if values:
            columns = ", ".join(values)
            marks = ", ".join("?" for _ in values)
            sql = f"INSERT INTO {table} ({columns}) VALUES ({marks})"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        with self._lock:
            cursor = self._conn.execute(sql, tuple(values.values()))
            return int(cursor.lastrowid)

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        where: str | None,
        params: Sequence[Any] = (),
    ) -> int:
        assignments = ", ".join(f"{column} = ?" for column in values)
        sql = f"UPDATE {table} SET {assignments}" + _where(where)
        with self._lock:
            cursor = self._conn.execute(sql, (*values.values(), *params))
            return cursor.rowcount

    def delete(self, table: str, where: str | None, params: Sequence[Any] = ()) -> int:
        with self._lock:
            cursor = self._conn.execute(f"DELETE FROM {table}" + _where(where), tuple(params))
            return cursor.rowcount

    def query(
        self,
        table: str,
        columns: Sequence[str],
        where: str | None,
        params: Sequence[Any] = (),
    ) -> RowCursor:
        sql = f"SELECT {', '.join(columns)} FROM {table}" + _where(where)
        return self.raw_query(sql, params)

    def raw_query(self, sql: str, params: Sequence[Any] = ()) -> RowCursor:
        with self._lock:
            cursor = self._conn.execute(sql, tuple(params))
            names = [d[0] for d in cursor.description or ()]
            rows = cursor.fetchall()
        return RowCursor(names, rows)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the block in one transaction; nested blocks join the outer one."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            self._conn.execute("BEGIN")
            self._depth = 1
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._depth = 0

    @property
    def user_version(self) -> int:
        with self._lock:
            return int(self._conn.execute("PRAGMA user_version").fetchone()[0])

    @user_version.setter
    def user_version(self, version: int) -> None:
        with self._lock:
            self._conn.execute(f"PRAGMA user_version = {int(version)}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # -- convenience -------------------------------------------------------

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    @property
    def path(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"SqliteStore({self._path!r})"


def _where(clause: str | None) -> str:
    return f" WHERE {clause}" if clause else ""


__all__ = ["SqliteStore"]
