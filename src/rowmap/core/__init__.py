"""rowmap core -- declarative object/row mapping over a relational store.

Manifesto:
    Plain dataclasses become table rows without hand-written mapping code.
    A class is inspected once, its fields are classified as identifier,
    stored or reference, and that classification drives both the table
    layout and every conversion between objects and rows.

    - **Classify once:** inspection is cached per type and immutable
    - **Values, not sentinels:** CRUD reports failures as ``Result``
    - **Protocol-first:** stores and cursors are protocols, not classes
    - **Fixed encodings:** ``#t``/``#f`` booleans, epoch-ms temporals

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Structured error hierarchy (RowmapError)
        result.py          Ok / Err results returned by the DAO
        protocols.py       RelationalStore, Cursor, Referenceable
        values.py          Column value codec (closed tagged union)

    Layer 2 -- Schema
        markers.py         @entity, id_field(), stored(), reference()
        inspector.py       EntitySchema / FieldSpec, inspect_entity()
        ddl.py             CREATE / DROP TABLE generation
        dialect.py         SQLite / PostgreSQL fragments

    Layer 3 -- Storage
        cursor.py          RowCursor (materialized result set)
        sqlite_store.py    sqlite3 store
        sa_store.py        SQLAlchemy Core store
        connection.py      create_store() URL factory
        helper.py          DatabaseHelper (ref-counted lifecycle, versioning)
        dao.py             EntityDAO (CRUD)

    Ambient
        logging.py         structlog configuration
        settings.py        RowmapSettings (pydantic-settings)

Tags:
    orm, mapping, dataclass, sqlite, sqlalchemy, rowmap
"""

from rowmap.core.connection import StoreInfo, create_store
from rowmap.core.cursor import RowCursor
from rowmap.core.dao import EntityDAO
from rowmap.core.ddl import create_table_sql, drop_table_sql
from rowmap.core.dialect import Dialect, PostgreSQLDialect, SQLiteDialect, get_dialect
from rowmap.core.errors import (
    ColumnNotFoundError,
    ConfigError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    MarshallingError,
    MissingConfigError,
    RowmapError,
    SchemaStructureError,
    SchemaVersionError,
    StoreNotOpenError,
)
from rowmap.core.helper import DatabaseHelper
from rowmap.core.inspector import (
    ID_PREFIX,
    REFERENCE_PREFIX,
    EntitySchema,
    FieldSpec,
    SchemaInspector,
    inspect_entity,
)
from rowmap.core.markers import FieldRole, entity, id_field, is_entity, reference, stored
from rowmap.core.protocols import Cursor, Referenceable, RelationalStore
from rowmap.core.result import (
    Err,
    Ok,
    Result,
    collect_results,
    partition_results,
)
from rowmap.core.settings import RowmapSettings
from rowmap.core.values import BOOLEAN_FALSE_VALUE, BOOLEAN_TRUE_VALUE, ValueKind

__all__ = [
    # errors
    "RowmapError",
    "ErrorCategory",
    "ErrorContext",
    "SchemaStructureError",
    "MarshallingError",
    "DatabaseError",
    "StoreNotOpenError",
    "ColumnNotFoundError",
    "SchemaVersionError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    # result
    "Ok",
    "Err",
    "Result",
    "collect_results",
    "partition_results",
    # protocols
    "RelationalStore",
    "Cursor",
    "Referenceable",
    # schema
    "entity",
    "id_field",
    "stored",
    "reference",
    "is_entity",
    "FieldRole",
    "ValueKind",
    "BOOLEAN_TRUE_VALUE",
    "BOOLEAN_FALSE_VALUE",
    "ID_PREFIX",
    "REFERENCE_PREFIX",
    "EntitySchema",
    "FieldSpec",
    "SchemaInspector",
    "inspect_entity",
    "create_table_sql",
    "drop_table_sql",
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
    # storage
    "RowCursor",
    "StoreInfo",
    "create_store",
    "DatabaseHelper",
    "EntityDAO",
    # config
    "RowmapSettings",
]
