"""
Table definition generator.

Manifesto:
    Table layout is a pure function of an entity's classification. The
    same :class:`~rowmap.core.inspector.EntitySchema` that drives the DAO's
    column list drives the CREATE TABLE statement, so the two can never
    disagree about a column's name or position.

Architecture:
    ::

        ┌──────────────────────────┬──────────────────────────────────────┐
        │ Field                    │ Column definition                    │
        ├──────────────────────────┼──────────────────────────────────────┤
        │ identifier               │ _id_<name> <dialect auto-increment>  │
        │ stored, float            │ <name> REAL                          │
        │ stored, integer          │ <name> INTEGER                       │
        │ stored, boolean          │ <name> TEXT NOT NULL                 │
        │ stored, text/temporal    │ <name> TEXT NOT NULL                 │
        │ stored, enum             │ <name> TEXT NOT NULL                 │
        │ reference                │ _rid_<name> INTEGER                  │
        └──────────────────────────┴──────────────────────────────────────┘

    Upgrades are destructive: every managed table is dropped and recreated.

Guardrails:
    ❌ DON'T: Hand-write CREATE TABLE for entity tables
    ✅ DO: Call create_table_sql() so the layout follows the classification

    ❌ DON'T: Expect data to survive a version bump
    ✅ DO: Export rows before raising the schema version

Tags:
    ddl, create-table, schema, upgrade, rowmap
"""

from __future__ import annotations

from rowmap.core.dialect import Dialect, SQLiteDialect
from rowmap.core.errors import SchemaStructureError
from rowmap.core.inspector import EntitySchema, FieldSpec
from rowmap.core.values import ValueKind


def column_type(spec: FieldSpec) -> str:
    """SQL type of a stored field's column."""
    match spec.kind:
        case ValueKind.FLOAT:
            return "REAL"
        case ValueKind.INTEGER:
            return "INTEGER"
        case ValueKind.BOOLEAN | ValueKind.TEXT | ValueKind.TEMPORAL | ValueKind.ENUM:
            return "TEXT NOT NULL"
        case _:
            raise SchemaStructureError(f"Field {spec.name!r} has no column type for kind {spec.kind!r}")


def column_definitions(schema: EntitySchema, dialect: Dialect | None = None) -> list[str]:
    """Column definitions in column order."""
    dialect = dialect or SQLiteDialect()
    columns = [f"{schema.id_column} {dialect.auto_increment()}"]
    columns.extend(f"{spec.column_name} {column_type(spec)}" for spec in schema.stored_fields)
    columns.extend(f"{spec.column_name} INTEGER" for spec in schema.reference_fields)
    return columns


def create_table_sql(schema: EntitySchema, table: str, dialect: Dialect | None = None) -> str:
    """CREATE TABLE statement for ``schema`` under the name ``table``.

    Example:
        >>> create_table_sql(inspect_entity(Item), "items")
        'CREATE TABLE items (_id_id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, ...)'
    """
    return f"CREATE TABLE {table} ({', '.join(column_definitions(schema, dialect))})"


def drop_table_sql(table: str) -> str:
    return f"DROP TABLE IF EXISTS {table}"


__all__ = [
    "column_type",
    "column_definitions",
    "create_table_sql",
    "drop_table_sql",
]
