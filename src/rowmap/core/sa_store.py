"""SQLAlchemy relational store.

Manifesto:
    The DAO speaks ``?``-placeholder SQL fragments and table-level DML.
    ``SqlAlchemyStore`` maps that contract onto SQLAlchemy Core so the same
    entity code runs against PostgreSQL (or any engine SQLAlchemy drives)
    without change.

This module provides:

* ``create_rowmap_engine`` -- Create a SA engine with per-backend defaults.
* ``SqlAlchemyStore``      -- Wraps one SA ``Connection`` to satisfy the
  ``rowmap.core.protocols.RelationalStore`` protocol.

Inserts go through reflected ``Table`` objects (cached per name, dropped
on any DDL) so generated keys come back via ``inserted_primary_key`` on
every backend. Everything else is ``text()`` with positional ``?``
placeholders rewritten to named bind parameters. The schema version lives
in a ``_rowmap_meta`` table.

Tags:
    rowmap, sqlalchemy, store, engine, postgresql
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import MetaData, Table, text
from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy.engine import Connection, Engine

from rowmap.core.cursor import RowCursor

META_TABLE = "_rowmap_meta"
VERSION_KEY = "user_version"


def create_rowmap_engine(
    url: str,
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite://``, ``postgresql://…``, etc.)
    echo:
        If ``True``, log all SQL.
    pool_size, max_overflow:
        Connection pool parameters (ignored for SQLite).
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        return _sa_create_engine(url, echo=echo, **kwargs)

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow

    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


def _bind_positional(sql: str, params: Sequence[Any], prefix: str = "p") -> tuple[str, dict[str, Any]]:
    """Rewrite ``?`` placeholders into ``:p0, :p1, …`` for ``text()``."""
    rewritten: list[str] = []
    idx = 0
    for ch in sql:
        if ch == "?":
            rewritten.append(f":{prefix}{idx}")
            idx += 1
        else:
            rewritten.append(ch)
    if idx != len(params):
        raise ValueError(f"SQL has {idx} placeholders but {len(params)} parameters were given")
    return "".join(rewritten), {f"{prefix}{i}": v for i, v in enumerate(params)}


class SqlAlchemyStore:
    """Adapter: SQLAlchemy ``Engine`` → ``RelationalStore`` protocol.

    Holds one connection for its lifetime. Statements outside
    :meth:`transaction` are committed immediately.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._conn: Connection = engine.connect()
        self._metadata = MetaData()
        self._tables: dict[str, Table] = {}
        self._lock = threading.RLock()
        self._depth = 0

    @classmethod
    def from_url(cls, url: str, **engine_kwargs: Any) -> SqlAlchemyStore:
        return cls(create_rowmap_engine(url, **engine_kwargs))

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    # -- RelationalStore protocol ------------------------------------------

    def execute(self, sql: str) -> None:
        with self._statement() as conn:
            self._forget_tables()
            conn.execute(text(sql))

    def insert(self, table: str, values: Mapping[str, Any]) -> int:
        with self._statement() as conn:
            stmt = self._table(table).insert()
            if values:
                stmt = stmt.values(dict(values))
            key = conn.execute(stmt).inserted_primary_key
        return int(key[0]) if key and key[0] is not None else -1

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        where: str | None,
        params: Sequence[Any] = (),
    ) -> int:
        assignments = ", ".join(f"{column} = :v{i}" for i, column in enumerate(values))
        bound = {f"v{i}": v for i, v in enumerate(values.values())}
        sql = f"UPDATE {table} SET {assignments}"
        if where:
            clause, where_params = _bind_positional(where, params)
            sql += f" WHERE {clause}"
            bound.update(where_params)
        return self._rowcount(sql, bound)

    def delete(self, table: str, where: str | None, params: Sequence[Any] = ()) -> int:
        sql = f"DELETE FROM {table}"
        bound: dict[str, Any] = {}
        if where:
            clause, bound = _bind_positional(where, params)
            sql += f" WHERE {clause}"
        return self._rowcount(sql, bound)

    def query(
        self,
        table: str,
        columns: Sequence[str],
        where: str | None,
        params: Sequence[Any] = (),
    ) -> RowCursor:
        sql = f"SELECT {', '.join(columns)} FROM {table}"
        if where:
            sql += f" WHERE {where}"
        return self.raw_query(sql, params)

    def raw_query(self, sql: str, params: Sequence[Any] = ()) -> RowCursor:
        statement, bound = _bind_positional(sql, params)
        with self._statement() as conn:
            result = conn.execute(text(statement), bound)
            names = list(result.keys())
            rows = [tuple(r) for r in result.fetchall()]
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

            if self._conn.in_transaction():
                self._conn.commit()
            self._depth = 1
            try:
                yield
            except BaseException:
                self._conn.rollback()
                self._forget_tables()
                raise
            else:
                self._conn.commit()
            finally:
                self._depth = 0

    @property
    def user_version(self) -> int:
        with self._statement() as conn:
            self._ensure_meta()
            row = conn.execute(
                text(f"SELECT value FROM {META_TABLE} WHERE key = :key"), {"key": VERSION_KEY}
            ).fetchone()
        return int(row[0]) if row is not None else 0

    @user_version.setter
    def user_version(self, version: int) -> None:
        with self._statement() as conn:
            self._ensure_meta()
            conn.execute(text(f"DELETE FROM {META_TABLE} WHERE key = :key"), {"key": VERSION_KEY})
            conn.execute(
                text(f"INSERT INTO {META_TABLE} (key, value) VALUES (:key, :value)"),
                {"key": VERSION_KEY, "value": int(version)},
            )

    def close(self) -> None:
        with self._lock:
            self._conn.close()
            self._engine.dispose()

    # -- internals ---------------------------------------------------------

    def _table(self, name: str) -> Table:
        table = self._tables.get(name)
        if table is None:
            table = Table(name, self._metadata, autoload_with=self._conn)
            self._tables[name] = table
        return table

    def _forget_tables(self) -> None:
        self._tables.clear()
        self._metadata.clear()

    def _ensure_meta(self) -> None:
        self._conn.execute(
            text(f"CREATE TABLE IF NOT EXISTS {META_TABLE} (key VARCHAR(64) PRIMARY KEY, value INTEGER NOT NULL)")
        )

    def _rowcount(self, sql: str, bound: dict[str, Any]) -> int:
        with self._statement() as conn:
            return conn.execute(text(sql), bound).rowcount

    @contextmanager
    def _statement(self) -> Iterator[Connection]:
        """Run statements outside transaction() as their own transaction."""
        with self._lock:
            try:
                yield self._conn
            except BaseException:
                if not self._depth:
                    self._conn.rollback()
                raise
            else:
                if not self._depth:
                    self._conn.commit()

    @property
    def engine(self) -> Engine:
        return self._engine

    def __repr__(self) -> str:
        return f"SqlAlchemyStore({self._engine.url!r})"


__all__ = [
    "create_rowmap_engine",
    "SqlAlchemyStore",
]
