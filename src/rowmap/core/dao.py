"""
Entity data access object.

Manifesto:
    One DAO per (entity type, table). It owns no row data: it holds the
    entity's classification, the column list derived from it once, and a
    handle to the shared store while open. Every CRUD call reuses that
    classification, so no call re-inspects the class.

    Conversion failures are values, not exceptions: ``insert``, ``update``
    and the ``fetch`` family return a :class:`~rowmap.core.result.Result`
    and log the failure. Storage engine errors propagate untouched.

Architecture:
    ::

        EntityDAO(Item, helper, inspect_entity(Item), "items")
            │
            │ columns = ("_id_id", "name", "weight", "_rid_owner")
            │
            ├── open()  / close()           helper.acquire() / release()
            │
            ├── insert(item, generate_id)   build_values ─► store.insert   → Ok(row_id)
            ├── update(item, row_id)        build_values ─► store.update   → Ok(bool)
            ├── delete(row_id)              store.delete                   → bool
            ├── delete_where(clause, ...)   store.delete                   → int
            │
            ├── fetch(row_id)               store.query ─► build_object    → Ok(Item | None)
            ├── fetch_all(where, ...)       fetch_each ─► collect_results  → Ok(list[Item])
            ├── fetch_each(where, ...)      store.query ─► build_object*   → list[Result]
            ├── fetch_cursor(row_id)        store.query                    → RowCursor | None
            ├── fetch_cursor_where(...)     store.query                    → RowCursor
            ├── count_entries(where, ...)   SELECT COUNT(*)                → int
            └── get_reference_id(cur, f)    cursor["_rid_" + f]            → int | None

Guardrails:
    ❌ DON'T: Build SQL predicates from untrusted input with string formatting
    ✅ DO: Pass ``?`` placeholders and ``params``; clauses are not validated

    ❌ DON'T: Expect reference fields to be populated by fetch()
    ✅ DO: Read the foreign id with get_reference_id() and fetch the target

Tags:
    dao, crud, marshalling, result, rowmap
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from rowmap.core.cursor import RowCursor
from rowmap.core.errors import (
    ColumnNotFoundError,
    MarshallingError,
    RowmapError,
    SchemaStructureError,
    StoreNotOpenError,
)
from rowmap.core.inspector import REFERENCE_PREFIX, EntitySchema, inspect_entity
from rowmap.core.logging import get_logger
from rowmap.core.protocols import Cursor, RelationalStore
from rowmap.core.result import Err, Ok, Result, collect_results
from rowmap.core.values import ValueKind, box, unbox

if TYPE_CHECKING:
    from rowmap.core.helper import DatabaseHelper

logger = get_logger(__name__)

T = TypeVar("T")


class EntityDAO(Generic[T]):
    """CRUD operations for one entity type stored in one table.

    Args:
        cls: The entity class.
        helper: Helper owning the shared store.
        schema: Classification of ``cls``; inspected when ``None``.
        table_name: Table holding the rows.

    Example:
        >>> with EntityDAO(Item, helper, inspect_entity(Item), "items") as dao:
        ...     row_id = dao.insert(Item(name="bolt", weight=2.5), True).unwrap()
        ...     dao.fetch(row_id).unwrap().name
        'bolt'
    """

    def __init__(
        self,
        cls: type[T],
        helper: DatabaseHelper,
        schema: EntitySchema | None,
        table_name: str,
    ) -> None:
        if schema is None:
            schema = inspect_entity(cls)
        elif schema.entity is not cls:
            raise SchemaStructureError(
                f"Schema describes {schema.entity.__qualname__}, not {cls.__qualname__}", entity=cls
            )
        self._cls = cls
        self._helper = helper
        self._schema = schema
        self._table = table_name
        self._columns: tuple[str, ...] = schema.column_names
        self._id_predicate = f"{schema.id_column} = ?"
        self._store: RelationalStore | None = None
        self._log = logger.bind(table=table_name, entity=cls.__qualname__)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def entity(self) -> type[T]:
        return self._cls

    @property
    def table_name(self) -> str:
        return self._table

    @property
    def schema(self) -> EntitySchema:
        return self._schema

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    @property
    def is_open(self) -> bool:
        return self._store is not None

    @property
    def store(self) -> RelationalStore:
        """The open store, for queries the DAO does not cover."""
        return self._require_store()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def open(self) -> EntityDAO[T]:
        """Acquire the shared store. Calling it again while open is a no-op."""
        if self._store is None:
            self._store = self._helper.acquire()
        return self

    def close(self) -> None:
        if self._store is None:
            return
        self._store = None
        self._helper.release()

    def __enter__(self) -> EntityDAO[T]:
        return self.open()

    def __exit__(self, *args: Any) -> None:
        self.close()

    # =========================================================================
    # WRITE
    # =========================================================================

    def insert(self, instance: T, generate_id: bool = True) -> Result[int]:
        """Insert ``instance`` and return the new row id.

        With ``generate_id`` the store assigns the id and the identifier
        column is left out; otherwise the instance's own id is written and
        the caller is responsible for its uniqueness. The instance's id
        field is not updated.
        """
        store = self._require_store()
        try:
            values = self.build_values(instance, set_id=not generate_id)
        except RowmapError as e:
            self._log.error("entity_insert_failed", error=e.message, field=e.context.field_name)
            return Err(e)

        self._log.debug("entity_insert", values=values)
        return Ok(store.insert(self._table, values))

    def update(self, instance: T, row_id: int) -> Result[bool]:
        """Overwrite row ``row_id`` with ``instance``; ``Ok(True)`` if a row changed."""
        store = self._require_store()
        try:
            values = self.build_values(instance, set_id=True)
        except RowmapError as e:
            self._log.error("entity_update_failed", row_id=row_id, error=e.message, field=e.context.field_name)
            return Err(e)

        return Ok(store.update(self._table, values, self._id_predicate, (row_id,)) > 0)

    def delete(self, row_id: int) -> bool:
        return self._require_store().delete(self._table, self._id_predicate, (row_id,)) > 0

    def delete_where(self, clause: str | None, params: Sequence[Any] = ()) -> int:
        """Delete every row matching ``clause``; returns the number deleted."""
        return self._require_store().delete(self._table, clause, params)

    # =========================================================================
    # READ
    # =========================================================================

    def fetch(self, row_id: int) -> Result[T | None]:
        """Entity stored under ``row_id``; ``Ok(None)`` when there is none."""
        cursor = self._query(self._id_predicate, (row_id,))
        try:
            if not cursor.move_to_first():
                return Ok(None)
            return Ok(self.build_object(cursor))
        except RowmapError as e:
            self._log.error("entity_build_failed", row_id=row_id, error=e.message)
            return Err(e)
        finally:
            cursor.close()

    def fetch_all(self, where: str | None = None, params: Sequence[Any] = ()) -> Result[list[T]]:
        """All matching entities in result order, or the first failure.

        Use :meth:`fetch_each` to keep the rows that did convert.
        """
        return collect_results(self.fetch_each(where, params)).inspect_err(
            lambda e: self._log.error("entity_fetch_all_failed", where=where, error=str(e))
        )

    def fetch_each(self, where: str | None = None, params: Sequence[Any] = ()) -> list[Result[T]]:
        """One result per matching row, so a bad row does not hide the rest."""
        results: list[Result[T]] = []
        cursor = self._query(where, params)
        try:
            if cursor.move_to_first():
                while not cursor.is_after_last():
                    try:
                        results.append(Ok(self.build_object(cursor)))
                    except RowmapError as e:
                        self._log.warning("entity_build_failed", row=cursor.position, error=e.message)
                        results.append(Err(e))
                    cursor.move_to_next()
        finally:
            cursor.close()
        return results

    def fetch_cursor(self, row_id: int) -> RowCursor | None:
        """Cursor positioned on row ``row_id``, or ``None`` when absent."""
        cursor = self._query(self._id_predicate, (row_id,))
        if not cursor.move_to_first():
            cursor.close()
            return None
        return cursor

    def fetch_cursor_where(self, clause: str | None, params: Sequence[Any] = ()) -> RowCursor:
        """Cursor over every matching row, positioned on the first."""
        cursor = self._query(clause, params)
        cursor.move_to_first()
        return cursor

    def count_entries(self, where: str | None = None, params: Sequence[Any] = ()) -> int:
        sql = f"SELECT COUNT(*) FROM {self._table}"
        if where:
            sql += f" WHERE {where}"
        cursor = self._require_store().raw_query(sql, params)
        try:
            cursor.move_to_first()
            return cursor.get_int(0) or 0
        finally:
            cursor.close()

    def get_reference_id(self, cursor: Cursor, field_name: str) -> int | None:
        """Foreign id held in the current row for reference field ``field_name``.

        ``field_name`` is the attribute name, without the column prefix.
        Returns ``None`` when the reference was unset at write time.
        """
        column = REFERENCE_PREFIX + field_name
        index = cursor.column_index(column)
        if index == -1:
            raise ColumnNotFoundError(column, list(cursor.columns))
        return cursor.get_int(index)

    # =========================================================================
    # MARSHALLING
    # =========================================================================

    def build_values(self, instance: T, set_id: bool) -> dict[str, str]:
        """Column payload for ``instance``, in column order.

        Raises:
            MarshallingError: a field value cannot be stored.
        """
        if not isinstance(instance, self._cls):
            raise MarshallingError(
                f"Expected {self._cls.__qualname__}, got {type(instance).__qualname__}", value=instance
            )

        values: dict[str, str] = {}
        id_spec = self._schema.id_field
        if set_id:
            row_id = getattr(instance, id_spec.name)
            if row_id is None:
                raise MarshallingError(
                    "Id field is None; insert with generate_id=True or set the id",
                    field=id_spec.name,
                )
            values[id_spec.column_name] = self._box(ValueKind.INTEGER, id_spec.name, row_id)

        for spec in self._schema.stored_fields:
            value = getattr(instance, spec.name)
            values[spec.column_name] = self._box(spec.kind, spec.name, value, spec.enum_type)

        for spec in self._schema.reference_fields:
            target = getattr(instance, spec.name)
            if target is None:
                continue
            get_id = getattr(target, "get_id", None)
            if not callable(get_id):
                raise MarshallingError(
                    f"Referenced {type(target).__qualname__} has no get_id()", field=spec.name, value=target
                )
            try:
                target_id = get_id()
            except Exception as e:
                raise MarshallingError(
                    f"get_id() of referenced {type(target).__qualname__} failed: {e}",
                    field=spec.name,
                    value=target,
                    cause=e,
                ) from e
            values[spec.column_name] = self._box(ValueKind.INTEGER, spec.name, target_id)

        return values

    def build_object(self, cursor: Cursor) -> T:
        """Entity for the cursor's current row. Reference fields are left unset.

        Raises:
            MarshallingError: a column cannot be converted, or the class
                cannot be constructed without arguments.
            ColumnNotFoundError: the cursor lacks a classified column.
        """
        try:
            instance = self._cls()
        except TypeError as e:
            raise MarshallingError(
                f"{self._cls.__qualname__} cannot be constructed without arguments", cause=e
            ) from e

        id_spec = self._schema.id_field
        row_id = unbox(ValueKind.INTEGER, cursor.get_value(id_spec.column_name))
        self._assign(instance, id_spec.name, None if row_id is None else row_id.value)

        for spec in self._schema.stored_fields:
            raw = cursor.get_value(spec.column_name)
            try:
                value = unbox(spec.kind, raw, spec.enum_type)
            except MarshallingError as e:
                raise e.with_context(field_name=spec.name, column=spec.column_name)
            if value is not None:
                self._assign(instance, spec.name, value.value)

        return instance

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_store(self) -> RelationalStore:
        if self._store is None:
            raise StoreNotOpenError(self._table)
        return self._store

    def _query(self, where: str | None, params: Sequence[Any]) -> RowCursor:
        return self._require_store().query(self._table, self._columns, where, params)

    def _box(self, kind: ValueKind | None, name: str, value: Any, enum_type: Any = None) -> str:
        if kind is None:
            raise SchemaStructureError(f"Field {name!r} has no value kind", entity=self._cls)
        try:
            return box(kind, value, enum_type).to_column()
        except MarshallingError as e:
            raise e.with_context(field_name=name, entity=self._cls.__qualname__)

    def _assign(self, instance: T, name: str, value: Any) -> None:
        try:
            setattr(instance, name, value)
        except AttributeError as e:
            raise MarshallingError(f"Cannot set field {name!r}", field=name, value=value, cause=e) from e

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"EntityDAO({self._cls.__qualname__}, table={self._table!r}, {state})"


__all__ = ["EntityDAO"]
