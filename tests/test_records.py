"""
Tests for record-level duplicate detection.
"""

import pytest

from receipt_dedup.core.models import Confidence, DuplicateReceiptGroup
from receipt_dedup.core.records import (amount_difference_percent, collapse_groups,
                                        compare_records, find_duplicates, flagged_indices,
                                        hours_apart, item_overlap_percent)
from receipt_dedup.core.settings import RecordThresholds

from conftest import make_items, make_record

GROCERIES = [("Milk", 1.20), ("Bread", 2.10), ("Eggs", 3.00), ("Butter", 2.50), ("Jam", 4.00)]


class TestExactAndNearTime:

    @pytest.mark.unit
    def test_exact_match(self):
        records = [make_record(), make_record()]
        (group,) = find_duplicates(records)
        assert group.indices == (0, 1)
        assert group.confidence == Confidence.HIGH
        assert group.reason == "Identical store, amount, and datetime"
        assert group.records == (records[0], records[1])

    @pytest.mark.unit
    def test_near_time_match(self):
        records = [make_record(when="2025.01.01 10:00:00"),
                   make_record(when="2025.01.01 10:45:00")]
        (group,) = find_duplicates(records)
        assert group.confidence == Confidence.HIGH
        assert group.reason == "Same store, amount, and time within 1 hour"

    @pytest.mark.unit
    def test_exactly_one_hour_counts(self):
        records = [make_record(when="2025.01.01 10:00:00"),
                   make_record(when="2025.01.01 11:00:00")]
        (group,) = find_duplicates(records)
        assert "within 1 hour" in group.reason

    @pytest.mark.unit
    def test_two_hours_apart_not_near_time(self):
        records = [make_record(when="2025.01.01 10:00:00"),
                   make_record(when="2025.01.01 12:00:00")]
        (group,) = find_duplicates(records)
        # Falls through to the same-store rule
        assert "within" not in group.reason
        assert group.reason == "Same store, amount differs by 0.0%"
        assert group.confidence == Confidence.MEDIUM

    @pytest.mark.unit
    def test_unparseable_timestamp_skips_near_time(self):
        records = [make_record(when="unknown"), make_record(when="2025.01.01 10:00:00")]
        (group,) = find_duplicates(records)
        assert group.confidence == Confidence.MEDIUM
        assert group.reason.startswith("Same store, amount differs by")

    @pytest.mark.unit
    def test_unparseable_identical_strings_still_exact(self):
        records = [make_record(when="unknown"), make_record(when="unknown")]
        (group,) = find_duplicates(records)
        assert group.reason == "Identical store, amount, and datetime"

    @pytest.mark.unit
    def test_custom_near_time_window(self):
        records = [make_record(when="2025.01.01 10:00:00"),
                   make_record(when="2025.01.01 12:30:00")]
        (group,) = find_duplicates(records, RecordThresholds(near_time_hours=3))
        assert group.reason == "Same store, amount, and time within 3 hours"
        assert group.confidence == Confidence.HIGH

    @pytest.mark.unit
    def test_hours_apart(self):
        a = make_record(when="2025.01.01 23:30:00")
        b = make_record(when="2025.01.02 00:15:00")
        assert hours_apart(a, b) == pytest.approx(0.75)
        assert hours_apart(a, make_record(when="")) is None


class TestFuzzyAmount:

    @pytest.mark.unit
    def test_within_five_percent(self):
        records = [make_record(total=100.0, when="2025.01.01 10:00:00"),
                   make_record(total=104.0, when="2025.01.03 10:00:00")]
        (group,) = find_duplicates(records)
        assert group.reason == "Same store, amount differs by 3.9%"
        assert group.confidence == Confidence.MEDIUM

    @pytest.mark.unit
    def test_beyond_five_percent(self):
        records = [make_record(total=100.0), make_record(total=110.0)]
        assert find_duplicates(records) == []

    @pytest.mark.unit
    def test_different_store(self):
        records = [make_record(store="Cafe X"), make_record(store="Cafe Y")]
        assert find_duplicates(records) == []

    @pytest.mark.unit
    def test_zero_amounts_do_not_divide_by_zero(self):
        assert amount_difference_percent(0.0, 0.0) is None
        records = [make_record(total=0.0, when="2025.01.01 10:00:00"),
                   make_record(total=0.0, when="2025.01.01 18:00:00")]
        assert find_duplicates(records) == []


class TestItemOverlap:

    @pytest.mark.unit
    def test_eighty_percent_is_medium(self):
        a = make_record(store="Shop A", total=10.0, items=make_items(GROCERIES))
        b = make_record(store="Shop B", total=50.0,
                        items=make_items(GROCERIES[:4] + [("Tea", 5.00)]))
        (group,) = find_duplicates([a, b])
        assert group.reason == "80% identical items"
        assert group.confidence == Confidence.MEDIUM

    @pytest.mark.unit
    def test_ninety_percent_is_high(self):
        ten = [(f"Item {n}", float(n)) for n in range(10)]
        a = make_record(store="Shop A", total=10.0, items=make_items(ten))
        b = make_record(store="Shop B", total=50.0, items=make_items(ten[:9] + [("Other", 99.0)]))
        (group,) = find_duplicates([a, b])
        assert group.reason == "90% identical items"
        assert group.confidence == Confidence.HIGH

    @pytest.mark.unit
    def test_names_compared_case_insensitively(self):
        a = make_record(items=make_items([("MILK", 1.20), ("bread", 2.10)]))
        b = make_record(items=make_items([("milk", 1.20), ("Bread", 2.10)]))
        assert item_overlap_percent(a, b) == 100

    @pytest.mark.unit
    def test_price_must_match(self):
        a = make_record(items=make_items([("Milk", 1.20)]))
        b = make_record(items=make_items([("Milk", 1.25)]))
        assert item_overlap_percent(a, b) == 0

    @pytest.mark.unit
    def test_divides_by_longer_list(self):
        a = make_record(items=make_items(GROCERIES[:2]))
        b = make_record(items=make_items(GROCERIES))
        assert item_overlap_percent(a, b) == pytest.approx(40)
        assert item_overlap_percent(b, a) == pytest.approx(40)

    @pytest.mark.unit
    def test_no_items_no_overlap(self):
        assert item_overlap_percent(make_record(), make_record(items=make_items(GROCERIES))) is None


class TestCollapsing:

    @pytest.mark.unit
    def test_fuzzy_amount_and_items_yield_one_entry(self):
        a = make_record(total=100.0, when="2025.01.01 10:00:00", items=make_items(GROCERIES))
        b = make_record(total=102.0, when="2025.02.01 10:00:00", items=make_items(GROCERIES))
        assert len(compare_records(a, b)) == 2
        (group,) = find_duplicates([a, b])
        assert group.reason == "Same store, amount differs by 2.0%"

    @pytest.mark.unit
    def test_near_time_and_items_yield_one_entry(self):
        a = make_record(when="2025.01.01 10:00:00", items=make_items(GROCERIES))
        b = make_record(when="2025.01.01 10:30:00", items=make_items(GROCERIES))
        groups = find_duplicates([a, b])
        assert [g.indices for g in groups] == [(0, 1)]
        assert groups[0].reason == "Same store, amount, and time within 1 hour"

    @pytest.mark.unit
    def test_collapse_ignores_pair_order(self):
        r = make_record()
        groups = [
            DuplicateReceiptGroup((0, 1), "first", Confidence.HIGH, (r, r)),
            DuplicateReceiptGroup((1, 0), "second", Confidence.MEDIUM, (r, r)),
            DuplicateReceiptGroup((0, 2), "third", Confidence.LOW, (r, r)),
        ]
        assert [g.reason for g in collapse_groups(groups)] == ["first", "third"]

    @pytest.mark.unit
    def test_pairs_in_index_order(self):
        records = [make_record(), make_record(), make_record(store="Elsewhere"), make_record()]
        groups = find_duplicates(records)
        assert [g.indices for g in groups] == [(0, 1), (0, 3), (1, 3)]
        assert flagged_indices(groups) == {0, 1, 3}

    @pytest.mark.unit
    def test_empty_and_single(self):
        assert find_duplicates([]) == []
        assert find_duplicates([make_record()]) == []
        assert flagged_indices([]) == set()
