"""Declarative entity markers.

An entity is a dataclass decorated with :func:`entity` whose persisted
fields are declared with :func:`id_field`, :func:`stored` or
:func:`reference`. The markers only record a role (and optionally an
explicit value kind) in the dataclass field metadata; the schema inspector
reads them once per type.

Example::

    from dataclasses import dataclass
    from datetime import UTC, datetime

    from rowmap import entity, id_field, reference, stored

    @entity
    @dataclass
    class Owner:
        id: int | None = id_field()
        name: str = stored(default="")

    @entity
    @dataclass
    class Item:
        id: int | None = id_field()
        name: str = stored(default="")
        weight: float = stored(default=0.0)
        created_at: datetime = stored(default_factory=lambda: datetime.now(UTC))
        owner: Owner | None = reference()
        notes: str = ""                     # unmarked: never persisted

Every field needs a default: rows are rebuilt by calling the class with no
arguments and then assigning each column.
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, TypeVar

from rowmap.core.values import ValueKind

ENTITY_MARKER = "__rowmap_entity__"
ROLE_KEY = "rowmap.role"
KIND_KEY = "rowmap.kind"

T = TypeVar("T", bound=type)


class FieldRole(str, Enum):
    """How a marked field is persisted."""

    IDENTIFIER = "identifier"
    STORED = "stored"
    REFERENCE = "reference"


def entity(cls: T) -> T:
    """Mark a class as a storable entity.

    The marker is set on the class itself, not inherited: a subclass of an
    entity must be decorated again to take part in classification.

    A ``get_id()`` accessor returning the identifier field is added unless
    the class (or a base) already defines one, so every entity can be the
    target of a reference field.
    """
    setattr(cls, ENTITY_MARKER, True)
    if not callable(getattr(cls, "get_id", None)):
        cls.get_id = _entity_get_id  # type: ignore[attr-defined]
    return cls


def is_entity(cls: type) -> bool:
    """True if ``cls`` itself (not a base) carries the entity marker."""
    return bool(cls.__dict__.get(ENTITY_MARKER, False))


def _entity_get_id(self: Any) -> int | None:
    from rowmap.core.inspector import inspect_entity

    return getattr(self, inspect_entity(type(self)).id_field.name)


def _marked(role: FieldRole, kind: ValueKind | None, kwargs: dict[str, Any]) -> Any:
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[ROLE_KEY] = role
    if kind is not None:
        metadata[KIND_KEY] = kind
    return dataclasses.field(metadata=metadata, **kwargs)


def id_field(*, default: int | None = None, **kwargs: Any) -> Any:
    """Declare the identifier field (``_id_<name>`` column).

    Defaults to ``None``: an unsaved instance has no id until the store
    assigns one.
    """
    return _marked(FieldRole.IDENTIFIER, None, {"default": default, **kwargs})


def stored(*, kind: ValueKind | None = None, **kwargs: Any) -> Any:
    """Declare a stored field (column named after the field).

    ``kind`` overrides the value kind derived from the annotation.
    Remaining keyword arguments go to :func:`dataclasses.field`.
    """
    return _marked(FieldRole.STORED, kind, kwargs)


def reference(*, default: Any = None, **kwargs: Any) -> Any:
    """Declare a reference field (``_rid_<name>`` column holding the target's id)."""
    return _marked(FieldRole.REFERENCE, None, {"default": default, **kwargs})


def field_role(f: dataclasses.Field) -> FieldRole | None:
    """Role recorded on a dataclass field, or ``None`` when unmarked."""
    return f.metadata.get(ROLE_KEY)


__all__ = [
    "ENTITY_MARKER",
    "FieldRole",
    "entity",
    "is_entity",
    "id_field",
    "stored",
    "reference",
    "field_role",
]
