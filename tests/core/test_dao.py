"""Tests for rowmap.core.dao.EntityDAO."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone

import pytest

from rowmap.core.cursor import RowCursor
from rowmap.core.dao import EntityDAO
from rowmap.core.errors import ColumnNotFoundError, MarshallingError, SchemaStructureError, StoreNotOpenError
from rowmap.core.helper import DatabaseHelper
from rowmap.core.inspector import inspect_entity
from rowmap.core.markers import entity, id_field, stored
from rowmap.core.result import Err, Ok, partition_results
from rowmap.core.sa_store import SqlAlchemyStore
from sample_entities import ENTITIES, T0, Item, Owner, Part, Status


@entity
@dataclass
class NeedsArgs:
    name: str = stored()
    id: int | None = id_field()


@dataclass
class UnregisteredOwner(Owner):
    """Inherits get_id() from Owner but is not an entity itself."""


class FailingOwner:
    def get_id(self):
        raise RuntimeError("owner lookup failed")


def raw_value(dao, row_id, column):
    cursor = dao.store.raw_query(f"SELECT {column} FROM {dao.table_name} WHERE _id_id = ?", (row_id,))
    cursor.move_to_first()
    return cursor.get_value(column)


# =============================================================================
# Example scenario
# =============================================================================


class TestItemScenario:
    def test_insert_then_fetch(self, item_dao):
        result = item_dao.insert(Item(name="bolt", weight=2.5, created_at=T0, active=True), True)
        assert isinstance(result, Ok)
        row_id = result.unwrap()

        fetched = item_dao.fetch(row_id).unwrap()
        assert fetched == Item(id=row_id, name="bolt", weight=2.5, created_at=T0, active=True)


# =============================================================================
# Insert
# =============================================================================


class TestInsert:
    def test_generated_ids(self, item_dao):
        assert item_dao.insert(Item(name="a"), True) == Ok(1)
        assert item_dao.insert(Item(name="b"), True) == Ok(2)

    def test_generated_id_ignores_instance_id(self, recording_helper):
        with recording_helper.dao(Item) as dao:
            row_id = dao.insert(Item(id=500, name="a"), True).unwrap()
        table, values = recording_helper.stores[0].inserts[-1]
        assert table == "items"
        assert "_id_id" not in values
        assert row_id == 1

    def test_explicit_id_written(self, recording_helper):
        with recording_helper.dao(Item) as dao:
            assert dao.insert(Item(id=42, name="a"), False) == Ok(42)
            assert dao.fetch(42).unwrap().name == "a"
        _, values = recording_helper.stores[0].inserts[-1]
        assert values["_id_id"] == "42"

    def test_explicit_id_missing(self, item_dao):
        result = item_dao.insert(Item(name="a"), False)
        assert isinstance(result, Err)
        assert isinstance(result.error, MarshallingError)
        assert item_dao.count_entries() == 0

    def test_instance_id_not_updated(self, item_dao):
        item = Item(name="a")
        item_dao.insert(item, True)
        assert item.id is None

    def test_none_in_stored_field(self, item_dao):
        result = item_dao.insert(Item(name=None), True)
        assert result.is_err()
        assert result.error.context.field_name == "name"
        assert item_dao.count_entries() == 0

    def test_wrong_type(self, item_dao):
        result = item_dao.insert(Item(weight="heavy"), True)
        match result:
            case Err(MarshallingError() as error):
                assert error.context.field_name == "weight"
            case _:
                pytest.fail(f"expected marshalling error, got {result!r}")

    def test_wrong_instance_type(self, item_dao):
        assert item_dao.insert(Owner(name="ada"), True).is_err()

    def test_payload_in_column_order(self, item_dao):
        values = item_dao.build_values(Item(id=3, name="a"), set_id=True)
        assert tuple(values) == item_dao.columns

    def test_integer_outside_64_bits(self, part_dao):
        result = part_dao.insert(Part(quantity=2**63 + 5), True)
        assert isinstance(result, Err)
        assert result.error.context.field_name == "quantity"
        assert part_dao.count_entries() == 0

    def test_integer_at_64_bit_limit(self, part_dao):
        row_id = part_dao.insert(Part(quantity=2**63 - 1), True).unwrap()
        assert part_dao.fetch(row_id).unwrap().quantity == 2**63 - 1

    def test_explicit_id_outside_64_bits(self, item_dao):
        assert item_dao.insert(Item(id=2**63, name="a"), False).is_err()

    def test_reference_id_outside_64_bits(self, part_dao):
        result = part_dao.insert(Part(owner=Owner(id=-(2**63) - 1)), True)
        assert result.is_err()
        assert result.error.context.field_name == "owner"


# =============================================================================
# Encoding
# =============================================================================


class TestEncoding:
    def test_booleans_stored_as_tokens(self, item_dao):
        yes = item_dao.insert(Item(active=True), True).unwrap()
        no = item_dao.insert(Item(active=False), True).unwrap()
        assert raw_value(item_dao, yes, "active") == "#t"
        assert raw_value(item_dao, no, "active") == "#f"
        assert item_dao.fetch(yes).unwrap().active is True
        assert item_dao.fetch(no).unwrap().active is False

    def test_boolean_read_case_insensitive(self, item_dao):
        row_id = item_dao.insert(Item(active=False), True).unwrap()
        item_dao.store.execute(f"UPDATE items SET active = '#T' WHERE _id_id = {row_id}")
        assert item_dao.fetch(row_id).unwrap().active is True

    def test_temporal_stored_as_epoch_millis(self, item_dao):
        row_id = item_dao.insert(Item(created_at=T0), True).unwrap()
        assert int(raw_value(item_dao, row_id, "created_at")) == int(T0.timestamp() * 1000)

    def test_datetime_without_timezone_rejected(self, item_dao):
        result = item_dao.insert(Item(created_at=datetime(2024, 1, 1, 10, 0)), True)
        assert result.is_err()
        assert result.error.context.field_name == "created_at"
        assert item_dao.count_entries() == 0

    def test_aware_datetime_round_trip(self, item_dao):
        created = datetime(2024, 1, 1, 10, 0, tzinfo=timezone(timedelta(hours=-5)))
        row_id = item_dao.insert(Item(created_at=created), True).unwrap()
        fetched = item_dao.fetch(row_id).unwrap().created_at
        assert fetched == created
        assert fetched.tzinfo is UTC

    def test_enum_stored_by_name(self, part_dao):
        row_id = part_dao.insert(Part(status=Status.RETIRED), True).unwrap()
        assert raw_value(part_dao, row_id, "status") == "RETIRED"

    def test_round_trip_every_kind(self, part_dao):
        part = Part(
            id=7,
            label="hinge",
            quantity=-3,
            price=19.99,
            fragile=True,
            received_at=datetime(2001, 9, 9, 1, 46, 40, 250000, tzinfo=UTC),
            status=Status.ACTIVE,
            note="not persisted",
        )
        part_dao.insert(part, False).unwrap()

        fetched = part_dao.fetch(7).unwrap()
        assert fetched.id == 7
        assert fetched.label == "hinge"
        assert fetched.quantity == -3
        assert fetched.price == 19.99
        assert fetched.fragile is True
        assert fetched.received_at == part.received_at
        assert fetched.status is Status.ACTIVE
        assert fetched.note == ""
        assert fetched.owner is None


# =============================================================================
# References
# =============================================================================


class TestReferences:
    def test_unset_reference_column_omitted(self, recording_helper):
        with recording_helper.dao(Part) as dao:
            dao.insert(Part(label="loose"), True).unwrap()
        _, values = recording_helper.stores[0].inserts[-1]
        assert "_rid_owner" not in values

    def test_set_reference_writes_foreign_id(self, recording_helper):
        with recording_helper.dao(Owner) as owners, recording_helper.dao(Part) as parts:
            owner = Owner(name="ada")
            owner.id = owners.insert(owner, True).unwrap()
            row_id = parts.insert(Part(label="gear", owner=owner), True).unwrap()

            _, values = recording_helper.stores[0].inserts[-1]
            assert values["_rid_owner"] == str(owner.id)

            cursor = parts.fetch_cursor(row_id)
            assert parts.get_reference_id(cursor, "owner") == owner.id
            assert parts.fetch(row_id).unwrap().owner is None

    def test_reference_id_none_when_unset(self, part_dao):
        row_id = part_dao.insert(Part(label="loose"), True).unwrap()
        cursor = part_dao.fetch_cursor(row_id)
        assert part_dao.get_reference_id(cursor, "owner") is None

    def test_reference_without_id_fails(self, part_dao):
        result = part_dao.insert(Part(owner=Owner(name="unsaved")), True)
        assert result.is_err()
        assert result.error.context.field_name == "owner"

    def test_reference_to_non_entity_subclass(self, part_dao):
        result = part_dao.insert(Part(owner=UnregisteredOwner(id=3)), True)
        assert isinstance(result, Err)
        assert isinstance(result.error, MarshallingError)
        assert isinstance(result.error.cause, SchemaStructureError)
        assert result.error.context.field_name == "owner"
        assert part_dao.count_entries() == 0

    def test_failing_get_id(self, part_dao):
        result = part_dao.insert(Part(owner=FailingOwner()), True)
        assert result.is_err()
        assert isinstance(result.error.cause, RuntimeError)
        assert "owner lookup failed" in result.error.message

    def test_update_with_failing_get_id(self, part_dao):
        row_id = part_dao.insert(Part(label="gear"), True).unwrap()
        result = part_dao.update(Part(id=row_id, label="cog", owner=FailingOwner()), row_id)
        assert result.is_err()
        assert part_dao.fetch(row_id).unwrap().label == "gear"

    def test_get_reference_id_unknown_field(self, part_dao):
        part_dao.insert(Part(), True)
        cursor = part_dao.fetch_cursor(1)
        with pytest.raises(ColumnNotFoundError):
            part_dao.get_reference_id(cursor, "supplier")


# =============================================================================
# Update / delete
# =============================================================================


class TestUpdateDelete:
    def test_update_existing(self, item_dao):
        first = item_dao.insert(Item(name="a"), True).unwrap()
        second = item_dao.insert(Item(name="b"), True).unwrap()

        assert item_dao.update(Item(id=first, name="z", weight=1.5), first) == Ok(True)
        assert item_dao.fetch(first).unwrap().name == "z"
        assert item_dao.fetch(second).unwrap().name == "b"

    def test_update_missing(self, item_dao):
        assert item_dao.update(Item(id=99, name="z"), 99) == Ok(False)

    def test_update_marshalling_error(self, item_dao):
        row_id = item_dao.insert(Item(name="a"), True).unwrap()
        assert item_dao.update(Item(id=row_id, name=None), row_id).is_err()
        assert item_dao.fetch(row_id).unwrap().name == "a"

    def test_update_without_id_is_error(self, item_dao):
        row_id = item_dao.insert(Item(name="a"), True).unwrap()
        assert item_dao.update(Item(name="b"), row_id).is_err()

    def test_delete(self, item_dao):
        first = item_dao.insert(Item(name="a"), True).unwrap()
        second = item_dao.insert(Item(name="b"), True).unwrap()
        assert item_dao.delete(first) is True
        assert item_dao.delete(first) is False
        assert item_dao.fetch(second).unwrap() is not None

    def test_delete_where(self, item_dao):
        for name in ["a", "a", "b"]:
            item_dao.insert(Item(name=name), True)
        assert item_dao.delete_where("name = ?", ("a",)) == 2
        assert item_dao.delete_where("name = ?", ("a",)) == 0
        assert item_dao.count_entries() == 1


# =============================================================================
# Fetch
# =============================================================================


def insert_corrupt_item(dao):
    dao.store.execute(
        "INSERT INTO items (name, weight, created_at, active) VALUES ('bad', 1.0, 'yesterday', '#t')"
    )


class TestFetch:
    def test_fetch_missing(self, item_dao):
        assert item_dao.fetch(1) == Ok(None)

    def test_fetch_corrupt_row(self, item_dao):
        insert_corrupt_item(item_dao)
        result = item_dao.fetch(1)
        assert result.is_err()
        assert result.error.context.field_name == "created_at"

    def test_fetch_all(self, item_dao):
        for name in ["a", "b", "c"]:
            item_dao.insert(Item(name=name), True)
        assert [i.name for i in item_dao.fetch_all().unwrap()] == ["a", "b", "c"]

    def test_fetch_all_where(self, item_dao):
        item_dao.insert(Item(name="light", weight=1.0), True)
        item_dao.insert(Item(name="heavy", weight=9.0), True)
        items = item_dao.fetch_all("weight > ?", (5,)).unwrap()
        assert [i.name for i in items] == ["heavy"]

    def test_fetch_all_empty_is_ok(self, item_dao):
        assert item_dao.fetch_all() == Ok([])

    def test_fetch_all_is_all_or_nothing(self, item_dao):
        item_dao.insert(Item(name="good"), True)
        insert_corrupt_item(item_dao)
        result = item_dao.fetch_all()
        assert isinstance(result, Err)
        assert result.error.context.field_name == "created_at"

    def test_fetch_each_reports_per_row(self, item_dao):
        item_dao.insert(Item(name="good"), True)
        insert_corrupt_item(item_dao)
        item_dao.insert(Item(name="also good"), True)

        items, errors = partition_results(item_dao.fetch_each())
        assert [i.name for i in items] == ["good", "also good"]
        assert len(errors) == 1
        assert isinstance(errors[0], MarshallingError)

    def test_fetch_cursor(self, item_dao):
        row_id = item_dao.insert(Item(name="a"), True).unwrap()
        cursor = item_dao.fetch_cursor(row_id)
        assert cursor.get_string("name") == "a"
        assert cursor.columns == list(item_dao.columns)
        assert item_dao.fetch_cursor(99) is None

    def test_fetch_cursor_where(self, item_dao):
        for name in ["a", "b"]:
            item_dao.insert(Item(name=name), True)
        cursor = item_dao.fetch_cursor_where("name != ?", ("zzz",))
        assert cursor.count == 2
        assert cursor.get_string("name") == "a"
        cursor.move_to_next()
        assert cursor.get_string("name") == "b"

    def test_count_entries(self, item_dao):
        item_dao.insert(Item(active=True), True)
        item_dao.insert(Item(active=False), True)
        assert item_dao.count_entries() == 2
        assert item_dao.count_entries("active = ?", ("#t",)) == 1


# =============================================================================
# Reconstruction
# =============================================================================


class TestBuildObject:
    def test_null_enum_leaves_default(self, part_dao):
        cursor = RowCursor(part_dao.columns, [(1, "x", 0, 0.0, "#f", 0, None, None)])
        cursor.move_to_first()
        assert part_dao.build_object(cursor).status is Status.DRAFT

    def test_requires_zero_argument_constructor(self, helper):
        dao = EntityDAO(NeedsArgs, helper, None, "needs_args")
        cursor = RowCursor(["_id_id", "name"], [(1, "a")])
        cursor.move_to_first()
        with pytest.raises(MarshallingError, match="without arguments"):
            dao.build_object(cursor)

    def test_missing_column(self, item_dao):
        cursor = RowCursor(["_id_id"], [(1,)])
        cursor.move_to_first()
        with pytest.raises(ColumnNotFoundError):
            item_dao.build_object(cursor)


# =============================================================================
# Construction & lifecycle
# =============================================================================


class TestLifecycle:
    def test_column_order_stable(self, helper):
        first = EntityDAO(Part, helper, inspect_entity(Part), "parts")
        second = EntityDAO(Part, helper, inspect_entity(Part), "parts")
        assert first.columns == second.columns == inspect_entity(Part).column_names

    def test_schema_for_other_type_rejected(self, helper):
        with pytest.raises(SchemaStructureError):
            EntityDAO(Item, helper, inspect_entity(Owner), "items")

    def test_closed_dao_refuses_crud(self, helper):
        dao = helper.dao(Item)
        with pytest.raises(StoreNotOpenError):
            dao.fetch(1)
        with pytest.raises(StoreNotOpenError):
            dao.insert(Item(), True)
        with pytest.raises(StoreNotOpenError):
            dao.store

    def test_open_is_idempotent(self, helper):
        dao = helper.dao(Item)
        dao.open()
        dao.open()
        assert helper.ref_count == 1
        dao.close()
        dao.close()
        assert helper.ref_count == 0
        assert not helper.is_open

    def test_daos_share_one_store(self, helper):
        with helper.dao(Item) as items, helper.dao(Owner) as owners:
            assert items.store is owners.store
            assert helper.ref_count == 2


class TestSqlAlchemyBackend:
    def test_round_trip(self):
        helper = DatabaseHelper(lambda: SqlAlchemyStore.from_url("sqlite://"), 1, ENTITIES)
        with helper.dao(Item) as dao:
            row_id = dao.insert(Item(name="bolt", weight=2.5, created_at=T0, active=True), True).unwrap()
            assert dao.fetch(row_id).unwrap() == Item(
                id=row_id, name="bolt", weight=2.5, created_at=T0, active=True
            )
            assert dao.update(Item(id=row_id, name="nut"), row_id) == Ok(True)
            assert dao.count_entries("name = ?", ("nut",)) == 1
            assert dao.delete(row_id) is True
