"""
Database helper: shared store lifecycle, table creation and versioning.

Manifesto:
    Several DAOs, possibly on several threads, share one store. Each DAO
    ``open()``s and ``close()``s independently; the helper counts live
    sessions and only opens the store for the first and closes it after
    the last. The first open also reconciles the stored schema version
    with the requested one, creating or (destructively) upgrading every
    managed table.

Architecture:
    ::

        acquire() ──► count == 0 ? open store ──► user_version
                                                   │
                               ┌───────────────────┼────────────────────┐
                               ▼                   ▼                    ▼
                         0: on_create()    < version: on_upgrade()   > version:
                                            (drop all, recreate)     SchemaVersionError
                               └───────────────────┬────────────────────┘
                                                   ▼
                                        user_version = version
                  count += 1, return store

        release() ──► count -= 1 ──► count == 0 ? close store

    ``acquire``/``release`` are serialized by one lock. CRUD calls on the
    returned store are not; the store serializes its own statements.

Guardrails:
    ❌ DON'T: Pair acquire() and release() by hand across code paths
    ✅ DO: Use ``with helper.session() as store:`` or a DAO context manager

    ❌ DON'T: Expect an in-memory store to keep rows after the last release
    ✅ DO: Use a file or server URL when data must outlive the sessions

Tags:
    lifecycle, reference-counting, schema-version, upgrade, rowmap
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from rowmap.core.connection import create_store
from rowmap.core.ddl import create_table_sql, drop_table_sql
from rowmap.core.dialect import get_dialect
from rowmap.core.errors import DatabaseError, InvalidConfigError, SchemaStructureError, SchemaVersionError
from rowmap.core.inspector import inspect_entity
from rowmap.core.logging import LogContext, get_logger
from rowmap.core.protocols import RelationalStore

if TYPE_CHECKING:
    from rowmap.core.dao import EntityDAO
    from rowmap.core.settings import RowmapSettings

logger = get_logger(__name__)

T = TypeVar("T")

StoreFactory = Callable[[], RelationalStore]


class DatabaseHelper:
    """Reference-counted owner of one relational store.

    Args:
        store_factory: Zero-argument callable opening a new store.
        version: Schema version the managed tables must be at (``>= 1``).
        entities: ``(entity class, table name)`` pairs, in creation order.
    """

    def __init__(
        self,
        store_factory: StoreFactory,
        version: int,
        entities: Sequence[tuple[type, str]],
    ) -> None:
        if version < 1:
            raise InvalidConfigError("schema_version", version, "Schema version must be >= 1")
        self._factory = store_factory
        self._version = version
        self._entities = list(entities)
        self._lock = threading.Lock()
        self._store: RelationalStore | None = None
        self._count = 0

    @classmethod
    def from_url(
        cls,
        url: str | None,
        version: int,
        entities: Sequence[tuple[type, str]],
        *,
        data_dir: str | Path | None = None,
    ) -> DatabaseHelper:
        """Helper whose store is created by :func:`create_store` from ``url``."""
        return cls(lambda: create_store(url, data_dir=data_dir)[0], version, entities)

    @classmethod
    def from_settings(
        cls, settings: RowmapSettings, entities: Sequence[tuple[type, str]]
    ) -> DatabaseHelper:
        return cls.from_url(
            settings.database_url,
            settings.schema_version,
            entities,
            data_dir=settings.data_dir,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def version(self) -> int:
        return self._version

    @property
    def entities(self) -> list[tuple[type, str]]:
        return list(self._entities)

    @property
    def table_names(self) -> list[str]:
        return [table for _, table in self._entities]

    @property
    def ref_count(self) -> int:
        return self._count

    @property
    def is_open(self) -> bool:
        return self._store is not None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def acquire(self) -> RelationalStore:
        """Open the store if needed and register one more session."""
        with self._lock:
            if self._store is None:
                store = self._factory()
                try:
                    self._prepare(store)
                except BaseException:
                    store.close()
                    raise
                self._store = store
                logger.debug("store_opened", version=self._version)
            self._count += 1
            return self._store

    def release(self) -> None:
        """Unregister one session; the last release closes the store."""
        with self._lock:
            if self._count == 0 or self._store is None:
                raise DatabaseError("release() called without a matching acquire()")
            self._count -= 1
            if self._count == 0:
                self._store.close()
                self._store = None
                logger.debug("store_closed")

    @contextmanager
    def session(self) -> Iterator[RelationalStore]:
        """Acquire for the duration of a ``with`` block."""
        store = self.acquire()
        try:
            yield store
        finally:
            self.release()

    def dao(self, cls: type[T], table: str | None = None) -> EntityDAO[T]:
        """Build a DAO for a managed entity (table looked up when omitted)."""
        from rowmap.core.dao import EntityDAO

        if table is None:
            table = self.table_for(cls)
        return EntityDAO(cls, self, inspect_entity(cls), table)

    def table_for(self, cls: type) -> str:
        for entity, table in self._entities:
            if entity is cls:
                return table
        raise InvalidConfigError("entities", cls.__qualname__, f"{cls.__qualname__} is not managed by this helper")

    # =========================================================================
    # CREATE / UPGRADE
    # =========================================================================

    def _prepare(self, store: RelationalStore) -> None:
        current = store.user_version
        if current == self._version:
            return
        if current > self._version:
            raise SchemaVersionError(current, self._version)

        with LogContext(stored_version=current, schema_version=self._version), store.transaction():
            if current == 0:
                self.on_create(store)
            else:
                self.on_upgrade(store, current, self._version)
            store.user_version = self._version

    def on_create(self, store: RelationalStore) -> None:
        """Create one table per managed entity.

        An entity that fails inspection is logged and skipped; the
        remaining tables are still created.
        """
        dialect = get_dialect(store.dialect_name)
        for cls, table in self._entities:
            with LogContext(table=table, entity=cls.__qualname__):
                try:
                    schema = inspect_entity(cls)
                except SchemaStructureError as e:
                    logger.error("table_skipped", error=e.message)
                    continue
                sql = create_table_sql(schema, table, dialect)
                logger.info("table_created", sql=sql)
                store.execute(sql)

    def on_upgrade(self, store: RelationalStore, old_version: int, new_version: int) -> None:
        """Drop every managed table and recreate it. All rows are lost."""
        logger.warning(
            "database_upgrade",
            old_version=old_version,
            new_version=new_version,
            tables=self.table_names,
            data_loss=True,
        )
        for table in self.table_names:
            with LogContext(table=table):
                logger.debug("table_dropped")
                store.execute(drop_table_sql(table))
        self.on_create(store)

    def __repr__(self) -> str:
        return f"DatabaseHelper(version={self._version}, tables={self.table_names!r}, sessions={self._count})"


__all__ = ["DatabaseHelper", "StoreFactory"]
