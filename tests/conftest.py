"""
Shared pytest fixtures for the rowmap tests.

This module provides:
- In-memory and file-backed SQLite stores
- A DatabaseHelper managing the sample entity tables
- Ready-opened DAOs for the sample entities
- A recording store that captures write payloads
"""

import sys
from pathlib import Path

import pytest

# Ensure rowmap and the sample entities are importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from rowmap.core.helper import DatabaseHelper
from rowmap.core.sqlite_store import SqliteStore
from sample_entities import ENTITIES, Item, Owner, Part


class RecordingStore(SqliteStore):
    """SQLite store that remembers every insert/update payload."""

    def __init__(self, path: str = ":memory:") -> None:
        super().__init__(path)
        self.inserts: list[tuple[str, dict]] = []
        self.updates: list[tuple[str, dict]] = []

    def insert(self, table, values):
        self.inserts.append((table, dict(values)))
        return super().insert(table, values)

    def update(self, table, values, where, params=()):
        self.updates.append((table, dict(values)))
        return super().update(table, values, where, params)


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def memory_store():
    store = SqliteStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "rowmap.db")


# =============================================================================
# Helper and DAOs
# =============================================================================


@pytest.fixture
def helper() -> DatabaseHelper:
    return DatabaseHelper.from_url("memory", 1, ENTITIES)


@pytest.fixture
def recording_helper():
    stores: list[RecordingStore] = []

    def factory() -> RecordingStore:
        store = RecordingStore()
        stores.append(store)
        return store

    helper = DatabaseHelper(factory, 1, ENTITIES)
    helper.stores = stores
    return helper


@pytest.fixture
def item_dao(helper):
    with helper.dao(Item) as dao:
        yield dao


@pytest.fixture
def part_dao(helper):
    with helper.dao(Part) as dao:
        yield dao


@pytest.fixture
def owner_dao(helper):
    with helper.dao(Owner) as dao:
        yield dao
