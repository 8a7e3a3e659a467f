"""
Schema inspector: classify an entity's fields once and cache the result.

Manifesto:
    The DAO and the table definition generator must agree on exactly which
    fields are persisted, under which column names and in which order. Both
    read the same :class:`EntitySchema`, built once per type and immutable
    afterwards, so they cannot drift apart and no CRUD call pays for
    re-introspection.

Architecture:
    ::

        inspect_entity(Item)
            │
            ├── Item is @entity and a dataclass?        else SchemaStructureError
            ├── walk Item.__mro__ while each level is @entity
            │     └── own annotations, declaration order
            │           identifier > stored > reference > (ignored)
            ├── exactly one identifier found?           else SchemaStructureError
            ▼
        EntitySchema(
            id_field         = FieldSpec("id", IDENTIFIER)      → "_id_id"
            stored_fields    = (FieldSpec("name", STORED), ...) → "name"
            reference_fields = (FieldSpec("owner", REFERENCE),) → "_rid_owner"
        )

    Discovery order: the decorated class first, then each marked ancestor.
    A field redeclared in a subclass is classified once, by the subclass.

Guardrails:
    ❌ DON'T: Mutate an EntitySchema or cache a modified copy
    ✅ DO: Treat it as a read-only view of the class definition

    ❌ DON'T: Inspect per CRUD call
    ✅ DO: Build the schema once and hand it to the DAO constructor

Tags:
    schema, inspection, classification, dataclass, rowmap
"""

from __future__ import annotations

import dataclasses
import inspect
import threading
import typing
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any

from rowmap.core.errors import SchemaStructureError
from rowmap.core.markers import KIND_KEY, FieldRole, field_role, is_entity
from rowmap.core.values import ValueKind, kind_for, unwrap_optional

ID_PREFIX = "_id_"
REFERENCE_PREFIX = "_rid_"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One classified field of an entity."""

    name: str
    role: FieldRole
    annotation: Any
    owner: type
    kind: ValueKind | None = None
    enum_type: type[Enum] | None = None

    @property
    def column_name(self) -> str:
        match self.role:
            case FieldRole.IDENTIFIER:
                return ID_PREFIX + self.name
            case FieldRole.REFERENCE:
                return REFERENCE_PREFIX + self.name
            case _:
                return self.name


@dataclass(frozen=True)
class EntitySchema:
    """Classification of an entity type's persisted fields."""

    entity: type
    id_field: FieldSpec
    stored_fields: tuple[FieldSpec, ...]
    reference_fields: tuple[FieldSpec, ...]
    levels: tuple[type, ...]

    @cached_property
    def column_names(self) -> tuple[str, ...]:
        """Identifier column, then stored columns, then reference columns."""
        return (
            self.id_field.column_name,
            *(f.column_name for f in self.stored_fields),
            *(f.column_name for f in self.reference_fields),
        )

    @property
    def id_column(self) -> str:
        return self.id_field.column_name

    def reference_field(self, name: str) -> FieldSpec | None:
        for spec in self.reference_fields:
            if spec.name == name:
                return spec
        return None

    def stored_field(self, name: str) -> FieldSpec | None:
        for spec in self.stored_fields:
            if spec.name == name:
                return spec
        return None


class SchemaInspector:
    """Builds and caches :class:`EntitySchema` objects, one per type."""

    def __init__(self) -> None:
        self._cache: dict[type, EntitySchema] = {}
        self._lock = threading.Lock()

    def inspect(self, cls: type) -> EntitySchema:
        """Return the cached schema for ``cls``, building it on first use.

        Raises:
            SchemaStructureError: ``cls`` is not a valid entity.
        """
        if not isinstance(cls, type):
            return _build_schema(cls)
        schema = self._cache.get(cls)
        if schema is not None:
            return schema
        with self._lock:
            schema = self._cache.get(cls)
            if schema is None:
                schema = _build_schema(cls)
                self._cache[cls] = schema
        return schema

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __contains__(self, cls: object) -> bool:
        return cls in self._cache


_default_inspector = SchemaInspector()


def inspect_entity(cls: type) -> EntitySchema:
    """Schema for ``cls`` from the process-wide inspector."""
    return _default_inspector.inspect(cls)


def _build_schema(cls: type) -> EntitySchema:
    if not isinstance(cls, type) or not is_entity(cls):
        raise SchemaStructureError(
            f"Class {_name(cls)} is not an entity. Check for the required decorator: @entity",
            entity=cls if isinstance(cls, type) else None,
        )
    if not dataclasses.is_dataclass(cls):
        raise SchemaStructureError(
            f"Class {_name(cls)} is not a dataclass; decorate it with @dataclass below @entity",
            entity=cls,
        )

    try:
        hints = typing.get_type_hints(cls)
    except Exception as e:
        raise SchemaStructureError(
            f"Cannot resolve annotations of class {_name(cls)}: {e}", entity=cls, cause=e
        ) from e

    declared = {f.name: f for f in dataclasses.fields(cls)}
    id_spec: FieldSpec | None = None
    stored: list[FieldSpec] = []
    references: list[FieldSpec] = []
    levels: list[type] = []
    seen: set[str] = set()

    for level in cls.__mro__:
        if not is_entity(level):
            break
        levels.append(level)

        for name in inspect.get_annotations(level):
            f = declared.get(name)
            if f is None or name in seen:
                continue
            seen.add(name)
            role = field_role(f)
            annotation = hints.get(name)

            match role:
                case FieldRole.IDENTIFIER:
                    if id_spec is not None:
                        raise SchemaStructureError(
                            f"Class {_name(cls)} declares more than one id field: "
                            f"{id_spec.name!r} and {name!r}",
                            entity=cls,
                        )
                    _check_identifier(cls, name, annotation)
                    id_spec = FieldSpec(
                        name, role, annotation, level, kind=ValueKind.INTEGER
                    )
                case FieldRole.STORED:
                    stored.append(_stored_spec(cls, level, f, annotation))
                case FieldRole.REFERENCE:
                    _check_reference(cls, name, annotation)
                    references.append(FieldSpec(name, role, annotation, level))
                case _:
                    continue

    if id_spec is None:
        raise SchemaStructureError(
            f"Class {_name(cls)} does not have an id field. Check for the required marker: id_field()",
            entity=cls,
        )

    return EntitySchema(
        entity=cls,
        id_field=id_spec,
        stored_fields=tuple(stored),
        reference_fields=tuple(references),
        levels=tuple(levels),
    )


def _check_identifier(cls: type, name: str, annotation: Any) -> None:
    tp = unwrap_optional(annotation)
    if not (isinstance(tp, type) and issubclass(tp, int) and not issubclass(tp, bool)):
        raise SchemaStructureError(
            f"Id field {name!r} of class {_name(cls)} must be an integer, got {annotation!r}",
            entity=cls,
        )


def _stored_spec(cls: type, level: type, f: dataclasses.Field, annotation: Any) -> FieldSpec:
    kind = f.metadata.get(KIND_KEY) or kind_for(annotation)
    if kind is None:
        raise SchemaStructureError(
            f"Field {f.name!r} of class {_name(cls)} has unsupported type {annotation!r}",
            entity=cls,
        )

    enum_type = None
    if kind is ValueKind.ENUM:
        tp = unwrap_optional(annotation)
        if not (isinstance(tp, type) and issubclass(tp, Enum)):
            raise SchemaStructureError(
                f"Enum field {f.name!r} of class {_name(cls)} is not annotated with an Enum type",
                entity=cls,
            )
        enum_type = tp

    return FieldSpec(f.name, FieldRole.STORED, annotation, level, kind=kind, enum_type=enum_type)


def _check_reference(cls: type, name: str, annotation: Any) -> None:
    target = unwrap_optional(annotation)
    if isinstance(target, type) and not callable(getattr(target, "get_id", None)):
        raise SchemaStructureError(
            f"Reference field {name!r} of class {_name(cls)} has type {target.__qualname__}, "
            "which does not expose get_id()",
            entity=cls,
        )


def _name(cls: Any) -> str:
    if isinstance(cls, type):
        return f"{cls.__module__}.{cls.__qualname__}"
    return repr(cls)


__all__ = [
    "ID_PREFIX",
    "REFERENCE_PREFIX",
    "FieldSpec",
    "EntitySchema",
    "SchemaInspector",
    "inspect_entity",
]
