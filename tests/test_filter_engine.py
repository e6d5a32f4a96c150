"""
Unit tests for the item-first FilterEngine.
"""

import itertools

import pytest

from models.filters import FilterCriteria, ResellerKind, ResellerSelector
from models.order import OrderStatus
from models.snapshot import WorkshopSnapshot
from modules.filter_engine import FilterEngine


def matched_ids(engine, snapshot, criteria):
    return [item.id for item in engine.apply(snapshot, criteria)]


# Fixtures

@pytest.fixture
def workshop(make_order, make_item):
    """
    A small workshop:
    - order 1 (SW-1600, direct customer): catalogued INNATO, NATEY A4
    - order 2 (SW-1601, reseller "FluteShop"): smoke-fired NATEY, built
    - order 3 (SW-1602, shipping): INNATO, never shown
    - order 4 (SW-1603, archived): NATEY
    """
    orders = [
        make_order(1, "SW-1600", customer_name="Ana Flute", customer_email="ana@example.com"),
        make_order(2, "SW-1601", is_reseller=True, reseller_nickname="FluteShop"),
        make_order(3, "SW-1602", status=OrderStatus.SHIPPING),
        make_order(4, "SW-1603", archived=True),
    ]
    items = [
        make_item(1, 1, serial_number="SW-1600-1"),
        make_item(2, 1, serial_number="SW-1600-2", specifications={"type": "Natey A4"}),
        make_item(
            3, 2,
            item_type="NATEY",
            note_tuning="G4",
            color="Smokefired Blue",
            status_change_dates={"building": "2025-05-01T10:00:00Z"},
        ),
        make_item(4, 3, item_type="INNATO", note_tuning="A3"),
        make_item(5, 4, item_type="NATEY", note_tuning="C4"),
    ]
    return WorkshopSnapshot.build(orders, items)


class TestEndToEndScenario:
    """Catalogued INNATO plus a NATEY known only from its specifications."""

    def test_type_innato(self, filter_engine, two_item_snapshot):
        criteria = FilterCriteria(instrument_type="INNATO")
        assert matched_ids(filter_engine, two_item_snapshot, criteria) == [1]

    def test_type_natey_with_minor_tuning(self, filter_engine, two_item_snapshot):
        matches = filter_engine.matches(two_item_snapshot, FilterCriteria(instrument_type="NATEY"))
        assert [m.item.id for m in matches] == [2]
        assert matches[0].attributes.tuning_note == "Am4"

    def test_color_c_matches_neither(self, filter_engine, two_item_snapshot):
        criteria = FilterCriteria(colors=frozenset({"C"}))
        assert matched_ids(filter_engine, two_item_snapshot, criteria) == []

    def test_colors_are_ored(self, filter_engine, two_item_snapshot):
        criteria = FilterCriteria(colors=frozenset({"C", "B"}))
        assert matched_ids(filter_engine, two_item_snapshot, criteria) == [1]

    def test_project_to_orders(self, filter_engine, two_item_snapshot):
        items = filter_engine.apply(two_item_snapshot, FilterCriteria(instrument_type="NATEY"))
        assert FilterEngine.project_to_orders(items) == {1}


class TestExclusions:

    def test_default_view(self, filter_engine, workshop):
        """Shipping and archived orders are hidden by default."""
        assert matched_ids(filter_engine, workshop, FilterCriteria()) == [1, 2, 3]

    def test_include_archived_lifts_only_the_archive_gate(self, filter_engine, workshop):
        criteria = FilterCriteria(include_archived=True)
        assert matched_ids(filter_engine, workshop, criteria) == [1, 2, 3, 5]

    def test_archived_deleted_and_unfulfillable_items(self, filter_engine, make_order, make_item):
        snapshot = WorkshopSnapshot.build(
            [make_order()],
            [
                make_item(1, archived=True),
                make_item(2, deleted=True),
                make_item(3, specifications={"fulfillable_quantity": 0}),
                make_item(4, specifications={"fulfillable_quantity": "1"}),
            ],
        )
        assert matched_ids(filter_engine, snapshot, FilterCriteria(include_archived=True)) == [4]

    def test_orphans(self, filter_engine, make_item):
        snapshot = WorkshopSnapshot.build([], [make_item(1, order_id=42)])
        assert matched_ids(filter_engine, snapshot, FilterCriteria()) == []

    def test_order_number_range(self, filter_engine, workshop):
        criteria = FilterCriteria(min_order_number=1601, max_order_number=1700)
        assert matched_ids(filter_engine, workshop, criteria) == [3]


class TestPredicates:

    def test_search_customer_name_case_insensitive(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(search="  ANA ")) == [1, 2]

    def test_search_specification_values(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(search="natey a4")) == [2]

    def test_search_resolved_type(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(search="innato")) == [1]

    def test_tuning_uses_item_line(self, filter_engine, workshop):
        """A4 and Am4 both find the NATEY stored as 'Natey A4'."""
        assert matched_ids(filter_engine, workshop, FilterCriteria(tuning_note="Am4")) == [2]
        assert matched_ids(filter_engine, workshop, FilterCriteria(tuning_note="A4")) == [2]
        assert matched_ids(filter_engine, workshop, FilterCriteria(tuning_note="A3")) == [1]

    def test_frequency(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(frequency="440")) == [1, 2, 3]
        assert matched_ids(filter_engine, workshop, FilterCriteria(frequency="432")) == []

    def test_reseller_selectors(self, filter_engine, workshop):
        direct = FilterCriteria(reseller=ResellerSelector(ResellerKind.DIRECT))
        any_reseller = FilterCriteria(reseller=ResellerSelector(ResellerKind.ANY))
        named = FilterCriteria(reseller=ResellerSelector.parse("fluteshop"))
        other = FilterCriteria(reseller=ResellerSelector.parse("OtherShop"))

        assert matched_ids(filter_engine, workshop, direct) == [1, 2]
        assert matched_ids(filter_engine, workshop, any_reseller) == [3]
        assert matched_ids(filter_engine, workshop, named) == [3]
        assert matched_ids(filter_engine, workshop, other) == []

    def test_stage_manual(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(stage="building")) == [3]
        assert matched_ids(filter_engine, workshop, FilterCriteria(stage="ordered-building")) == [3]

    def test_stage_ordered_matches_everything(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(stage="ordered")) == [1, 2, 3]

    def test_stage_smoke_firing_is_derived(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(stage="smoothing")) == [3]

    def test_unknown_stage_matches_nothing(self, filter_engine, workshop):
        assert matched_ids(filter_engine, workshop, FilterCriteria(stage="polishing")) == []

    def test_restrict_to_ids(self, filter_engine, workshop):
        criteria = FilterCriteria(restrict_to_ids=frozenset({2, 4}))
        assert matched_ids(filter_engine, workshop, criteria) == [2]


class TestTypeOverrides:

    def test_cards_order_numbers(self, filter_engine, make_order, make_item):
        """Known card orders match CARDS whatever their items say."""
        snapshot = WorkshopSnapshot.build(
            [make_order(1, "SW-1583")],
            [make_item(1, item_type="NATEY", note_tuning="A4")],
        )
        assert matched_ids(filter_engine, snapshot, FilterCriteria(instrument_type="CARDS")) == [1]

    def test_double_sharp_in_large_size(self, filter_engine, make_order, make_item):
        """G# flutes in medium/large sizes count as DOUBLE."""
        snapshot = WorkshopSnapshot.build(
            [make_order()],
            [
                make_item(1, item_type="Medium flute", note_tuning="G#3", item_size="MEDIUM"),
                make_item(2, item_type="Medium flute", note_tuning="G3", item_size="MEDIUM"),
            ],
        )
        assert matched_ids(filter_engine, snapshot, FilterCriteria(instrument_type="DOUBLE")) == [1]


class TestMonotonicity:
    """Adding a predicate never adds items."""

    EXTRA_PREDICATES = [
        {"instrument_type": "NATEY"},
        {"tuning_note": "G4"},
        {"colors": frozenset({"SB"})},
        {"frequency": "440"},
        {"reseller": ResellerSelector(ResellerKind.ANY)},
        {"stage": "building"},
        {"search": "flute"},
        {"restrict_to_ids": frozenset({1, 3})},
    ]

    @pytest.mark.parametrize("first,second", list(itertools.combinations(range(len(EXTRA_PREDICATES)), 2)))
    def test_narrowing(self, filter_engine, workshop, first, second):
        base = FilterCriteria(include_archived=True).with_changes(**self.EXTRA_PREDICATES[first])
        narrowed = base.with_changes(**self.EXTRA_PREDICATES[second])

        base_ids = set(matched_ids(filter_engine, workshop, base))
        narrowed_ids = set(matched_ids(filter_engine, workshop, narrowed))
        assert narrowed_ids <= base_ids


class TestFromQuery:

    def test_parses_request_arguments(self):
        criteria = FilterCriteria.from_query(
            {"type": "natey", "frequency": "432Hz", "reseller": "direct", "ids": "1, 2,x", "minOrder": "1600"},
            colors=["sb,c", "T"],
            default_min=1500,
            default_max=99999,
        )
        assert criteria.instrument_type == "NATEY"
        assert criteria.frequency == "432"
        assert criteria.colors == frozenset({"SB", "C", "T"})
        assert criteria.reseller.kind == ResellerKind.DIRECT
        assert criteria.restrict_to_ids == frozenset({1, 2})
        assert criteria.min_order_number == 1600
        assert criteria.max_order_number == 99999

    def test_all_values_mean_no_constraint(self):
        criteria = FilterCriteria.from_query({"type": "all", "stage": "", "reseller": "all"}, colors=["all"])
        assert criteria.instrument_type is None
        assert criteria.stage is None
        assert not criteria.reseller.is_active
        assert criteria.colors == frozenset()


class TestNotStarted:
    """Items waiting to be built, oldest order first."""

    @pytest.fixture
    def backlog(self, make_order, make_item):
        orders = [
            make_order(1, "SW-1499"),
            make_order(2, "SW-1612"),
            make_order(3, "SW-1537", status=OrderStatus.ARCHIVED),
            make_order(4, "SW-1600"),
        ]
        items = [
            make_item(1, 1, serial_number="SW-1499-1"),
            make_item(2, 2, serial_number="SW-1612-1"),
            make_item(3, 2, serial_number="SW-1612-2", status_change_dates={"validated": "2025-05-01T10:00:00Z"}),
            make_item(4, 3, serial_number="SW-1537-1"),
            make_item(5, 4, serial_number="SW-1600-1", archived=True),
            make_item(6, 4, serial_number="SW-1600-2", status_change_dates={"waxing": None}),
            make_item(7, 4),
            make_item(8, 99, serial_number="SW-1700-1"),
        ]
        return WorkshopSnapshot.build(orders, items)

    def test_only_unstarted_items_of_recent_orders(self, filter_engine, backlog):
        matches = filter_engine.not_started(backlog)
        assert [match.item.id for match in matches] == [4, 6, 2]

    def test_next_instrument_is_oldest_order(self, filter_engine, backlog):
        first = filter_engine.not_started(backlog)[0]
        assert first.order.order_number == "SW-1537"
        assert first.item.serial_number == "SW-1537-1"

    def test_threshold_is_adjustable(self, filter_engine, backlog):
        matches = filter_engine.not_started(backlog, min_order_number=1600)
        assert [match.item.id for match in matches] == [6, 2]

    def test_attributes_are_resolved(self, filter_engine, two_item_snapshot):
        matches = filter_engine.not_started(two_item_snapshot)
        assert [(match.item.id, match.attributes.type) for match in matches] == [(1, "INNATO"), (2, "NATEY")]
