"""
Unit tests for item grouping and the snapshot built on top of it.
"""

from models.order import OrderItem, normalize_order_id
from models.snapshot import WorkshopSnapshot
from modules.grouping import group_items


class TestNormalizeOrderId:

    def test_mixed_types(self):
        """Ints, numeric strings and integral floats all become ints."""
        assert normalize_order_id(42) == 42
        assert normalize_order_id("42") == 42
        assert normalize_order_id(" 42 ") == 42
        assert normalize_order_id(42.0) == 42

    def test_unusable_values(self):
        for value in (None, "", "abc", 4.5, True, float("nan")):
            assert normalize_order_id(value) is None


class TestGroupItems:

    def test_mixed_order_id_types_land_together(self):
        """The same order referenced as 7, "7" and 7.0 is one group."""
        items = [
            {"id": 1, "orderId": 7},
            {"id": 2, "orderId": "7"},
            {"id": 3, "orderId": 7.0},
        ]
        grouped = group_items(items)
        assert list(grouped) == [7]
        assert [item["id"] for item in grouped[7]] == [1, 2, 3]

    def test_duplicate_ids_are_dropped(self):
        """A repeated item id within one order is kept once, first wins."""
        items = [
            OrderItem(id=1, order_id=7, notes="first"),
            OrderItem(id=1, order_id=7, notes="second"),
        ]
        grouped = group_items(items)
        assert len(grouped[7]) == 1
        assert grouped[7][0].notes == "first"

    def test_identical_attributes_distinct_ids_are_kept(self):
        """Several units may share a serial number and every attribute."""
        items = [
            OrderItem(id=1, order_id=7, serial_number="1600-1", item_type="INNATO"),
            OrderItem(id=2, order_id=7, serial_number="1600-1", item_type="INNATO"),
        ]
        assert len(group_items(items)[7]) == 2

    def test_same_id_in_different_orders(self):
        """Dedup is per order."""
        items = [OrderItem(id=1, order_id=7), OrderItem(id=1, order_id=8)]
        grouped = group_items(items)
        assert len(grouped[7]) == 1
        assert len(grouped[8]) == 1

    def test_unusable_order_id_is_dropped(self):
        grouped = group_items([{"id": 1, "orderId": "n/a"}, {"id": 2, "orderId": 3}])
        assert list(grouped) == [3]

    def test_no_duplicate_ids_in_any_group(self):
        items = [{"id": i % 3, "orderId": i % 2} for i in range(12)]
        for group in group_items(items).values():
            ids = [item["id"] for item in group]
            assert len(ids) == len(set(ids))


class TestSnapshot:

    def test_from_raw_normalizes_and_attaches_owners(self):
        orders = [{"id": "10", "orderNumber": "SW-1600", "status": "building"}]
        items = [
            {"id": 1, "orderId": 10.0, "serialNumber": "SW-1600-1"},
            {"id": 1, "orderId": "10", "serialNumber": "SW-1600-1"},
            {"id": 2, "orderId": "bad"},
        ]
        snapshot = WorkshopSnapshot.from_raw(orders, items)

        assert len(snapshot.items) == 1
        item = snapshot.get_item(1)
        assert item.order_id == 10
        assert item.owner is snapshot.get_order(10)
        assert item.order_number == "SW-1600"

    def test_orphan_items_stay_without_owner(self):
        snapshot = WorkshopSnapshot.build([], [OrderItem(id=1, order_id=99)])
        assert snapshot.get_item(1).owner is None
        assert snapshot.items_for_order(99)[0].id == 1

    def test_with_item_replaces_by_id(self, two_item_snapshot):
        item = two_item_snapshot.get_item(2)
        updated = two_item_snapshot.with_item(OrderItem(id=2, order_id=1, notes="glazed"))

        assert updated.get_item(2).notes == "glazed"
        assert updated.get_item(2).owner is not None
        assert two_item_snapshot.get_item(2) is item

    def test_with_order_updates_item_owners(self, two_item_snapshot, make_order):
        updated = two_item_snapshot.with_order(make_order(order_id=1, order_number="SW-1600", notes="rush"))
        assert updated.get_item(1).owner.notes == "rush"

    def test_empty_snapshot_is_stale(self):
        snapshot = WorkshopSnapshot.create_empty()
        assert snapshot.is_empty
        assert snapshot.is_stale
