"""
Unit tests for the price-list snapshot differ.

These tests verify that:
1. Effective prices are compared per category with direction flags
2. Presence and list-entry status changes are flagged
3. The result does not depend on the partition count
4. The category projection narrows a finished change sequence
"""

from datetime import date

import pytest

from pharmadiff.diff.price_diff import (
    compare_entry,
    diff_price_lists,
    partition_identifiers,
    project_changes,
)
from pharmadiff.diff.classifier import FlagClassifier
from pharmadiff.errors import UnclassifiedChange
from pharmadiff.identifier import build_identifier
from pharmadiff.records import PriceCategory, PriceFact, PriceListEntry
from pharmadiff.schema import (
    EXFACTORY_PRICE_FIELD,
    RETAIL_PRICE_FIELD,
    SOURCE_PRICE_LIST,
    ChangeKind,
    FlagCode,
)

AS_OF_OLD = date(2024, 5, 1)
AS_OF_NEW = date(2024, 6, 1)

GTIN_A = build_identifier("12345", "001")
GTIN_B = build_identifier("12345", "002")
GTIN_C = build_identifier("54321", "010")


def make_entry(
    identifier: str = GTIN_A,
    retail: float = None,
    exfactory: float = None,
    name: str = "Dafalgan Tabl 500 mg 16 Stk",
    listed: bool = True,
    effective: date = date(2024, 1, 1)
) -> PriceListEntry:
    """Helper to create PriceListEntry objects with one fact per given price."""
    facts = []
    if retail is not None:
        facts.append(PriceFact(retail, PriceCategory.RETAIL, effective))
    if exfactory is not None:
        facts.append(PriceFact(exfactory, PriceCategory.EXFACTORY, effective))
    return PriceListEntry(identifier=identifier, name=name, listed=listed, facts=tuple(facts))


def run(old, new, **kwargs):
    return diff_price_lists(old, new, AS_OF_OLD, AS_OF_NEW, **kwargs)


# =============================================================================
# PRICE CHANGES
# =============================================================================

class TestPriceChanges:
    """Price comparison for identifiers present on both sides."""

    def test_retail_rise(self):
        result = run([make_entry(retail=20.0)], [make_entry(retail=25.0)])

        assert len(result) == 1
        change = result[0]
        assert change.kind == ChangeKind.PRICE_CHANGED
        assert change.field == RETAIL_PRICE_FIELD
        assert change.flag == FlagCode.PRICE_RISE
        assert change.old_value == 20.0
        assert change.new_value == 25.0
        assert change.sources == (SOURCE_PRICE_LIST,)

    def test_exfactory_cut(self):
        result = run([make_entry(exfactory=15.0)], [make_entry(exfactory=12.5)])

        assert len(result) == 1
        assert result[0].field == EXFACTORY_PRICE_FIELD
        assert result[0].flag == FlagCode.PRICE_CUT

    def test_categories_are_independent(self):
        result = run(
            [make_entry(retail=20.0, exfactory=10.0)],
            [make_entry(retail=22.0, exfactory=9.0)],
        )
        # Retail before ex-factory, the declared field order
        assert [(c.field, c.flag) for c in result] == [
            (RETAIL_PRICE_FIELD, FlagCode.PRICE_RISE),
            (EXFACTORY_PRICE_FIELD, FlagCode.PRICE_CUT),
        ]

    def test_unchanged_price_yields_nothing(self):
        result = run([make_entry(retail=20.0)], [make_entry(retail=20.0)])
        assert len(result) == 0

    def test_difference_within_tolerance_is_unchanged(self):
        result = run([make_entry(retail=20.0)], [make_entry(retail=20.0005)])
        assert len(result) == 0

    def test_first_price_is_rise(self):
        result = run([make_entry()], [make_entry(retail=5.0)])
        assert len(result) == 1
        assert result[0].old_value is None
        assert result[0].flag == FlagCode.PRICE_RISE

    def test_prices_resolved_at_each_snapshot_date(self):
        # Same history on both sides; the new snapshot sees the later fact
        facts = (
            PriceFact(20.0, PriceCategory.RETAIL, date(2024, 1, 1)),
            PriceFact(18.0, PriceCategory.RETAIL, date(2024, 5, 15)),
        )
        entry = PriceListEntry(identifier=GTIN_A, name="x", facts=facts)

        result = run([entry], [entry])

        assert len(result) == 1
        assert result[0].flag == FlagCode.PRICE_CUT
        assert (result[0].old_value, result[0].new_value) == (20.0, 18.0)

    def test_tie_is_reported_in_metadata(self):
        facts = (
            PriceFact(20.0, PriceCategory.RETAIL, date(2024, 1, 1)),
            PriceFact(21.0, PriceCategory.RETAIL, date(2024, 1, 1)),
        )
        entry = PriceListEntry(identifier=GTIN_A, name="Dafalgan Tabl 500 mg 16 Stk", facts=facts)

        result = run([make_entry(retail=21.0)], [entry])

        assert len(result) == 0
        assert result.metadata["ambiguous_price_facts"] == 1
        assert result.metadata["ambiguities"][0]["identifier"] == GTIN_A


# =============================================================================
# PRESENCE AND STATUS
# =============================================================================

class TestPresence:
    """New, deleted and list-status changes."""

    def test_self_diff_is_empty(self):
        snapshot = [make_entry(GTIN_A, retail=10.0), make_entry(GTIN_B, exfactory=5.0)]
        assert len(run(snapshot, snapshot)) == 0

    def test_new_identifier(self):
        result = run([], [make_entry(GTIN_B, retail=9.9, name="Neu")])

        assert len(result) == 1
        change = result[0]
        assert change.kind == ChangeKind.NEW
        assert change.flag == FlagCode.NEW
        assert change.name == "Neu"
        assert change.new_value == {RETAIL_PRICE_FIELD: 9.9, EXFACTORY_PRICE_FIELD: None}

    def test_deleted_identifier(self):
        result = run([make_entry(GTIN_C, exfactory=3.0)], [])

        assert len(result) == 1
        assert result[0].kind == ChangeKind.DELETED
        assert result[0].flag == FlagCode.DELETE
        assert result[0].old_value == {RETAIL_PRICE_FIELD: None, EXFACTORY_PRICE_FIELD: 3.0}

    def test_list_entry_added(self):
        result = run([make_entry(listed=False)], [make_entry(listed=True)])
        assert [c.flag for c in result] == [FlagCode.SL_ENTRY]
        assert result[0].kind == ChangeKind.LIST_ENTRY_ADDED

    def test_list_entry_removed(self):
        result = run([make_entry(listed=True)], [make_entry(listed=False)])
        assert [c.flag for c in result] == [FlagCode.SL_ENTRY_DELETE]
        assert result[0].kind == ChangeKind.LIST_ENTRY_REMOVED

    def test_name_change(self):
        result = run([make_entry(name="Old")], [make_entry(name="New")])
        assert len(result) == 1
        assert result[0].flag == FlagCode.NAME_BASE
        assert (result[0].old_value, result[0].new_value) == ("Old", "New")

    def test_metadata(self):
        result = run([make_entry(GTIN_A)], [make_entry(GTIN_A), make_entry(GTIN_B)],
                     old_label="01.05.2024", new_label="01.06.2024")
        assert result.source == SOURCE_PRICE_LIST
        assert result.metadata["as_of_old"] == "2024-05-01"
        assert result.metadata["as_of_new"] == "2024-06-01"
        assert result.metadata["old_count"] == 1
        assert result.metadata["new_count"] == 2

    def test_compare_entry_absent_on_both_sides(self):
        assert compare_entry(GTIN_A, None, None, AS_OF_OLD, AS_OF_NEW) == []


# =============================================================================
# PARTITIONING
# =============================================================================

def make_snapshots():
    old, new = [], []
    for number in range(1, 41):
        identifier = build_identifier(str(10000 + number), "001")
        if number % 5 != 0:
            old.append(make_entry(identifier, retail=10.0 + number, listed=number % 7 != 0))
        if number % 3 != 0:
            price = 10.0 + number + (1 if number % 2 else -1)
            new.append(make_entry(identifier, retail=price, name=f"Pack {number % 4}"))
    return old, new


class TestPartitioning:
    """Partitioned evaluation."""

    def test_result_independent_of_partition_count(self):
        old, new = make_snapshots()
        baseline = run(old, new, partitions=1, max_workers=1).to_dict()
        for partitions in (2, 3, 7, 40, 100):
            result = run(old, new, partitions=partitions, max_workers=4)
            assert result.to_dict() == baseline

    def test_empty_snapshots(self):
        result = run([], [], partitions=3)
        assert len(result) == 0

    def test_partition_identifiers_contiguous(self):
        chunks = partition_identifiers(list("abcdefg"), 3)
        assert chunks == [list("abc"), list("def"), list("g")]

    def test_partition_identifiers_more_partitions_than_items(self):
        chunks = partition_identifiers(["a", "b"], 5)
        assert chunks == [["a"], ["b"]]

    def test_zero_partitions_raises(self):
        with pytest.raises(ValueError):
            partition_identifiers(["a"], 0)

    def test_unclassified_change_aborts_partitioned_run(self):
        old, new = make_snapshots()
        classifier = FlagClassifier({(ChangeKind.NEW, None): FlagCode.NEW})

        with pytest.raises(UnclassifiedChange):
            run(old, new, classifier=classifier, partitions=3, max_workers=3)


# =============================================================================
# CATEGORY PROJECTION
# =============================================================================

@pytest.fixture
def changes():
    old = [
        make_entry(GTIN_A, retail=20.0, exfactory=10.0),
        make_entry(GTIN_B, retail=5.0, name="Old name"),
    ]
    new = [
        make_entry(GTIN_A, retail=25.0, exfactory=8.0),
        make_entry(GTIN_B, retail=4.0, name="New name"),
        make_entry(GTIN_C, retail=1.0),
    ]
    return run(old, new).changes


class TestProjectChanges:
    """Tests for project_changes()."""

    def test_no_category_keeps_all(self, changes):
        assert project_changes(changes) == changes

    def test_retail_up(self, changes):
        selected = project_changes(changes, "retail_up")
        assert [(c.identifier, c.field) for c in selected] == [(GTIN_A, RETAIL_PRICE_FIELD)]

    def test_exfactory_down(self, changes):
        selected = project_changes(changes, "exfactory_down")
        assert [c.identifier for c in selected] == [GTIN_A]

    def test_leading_dashes_and_alias(self, changes):
        assert project_changes(changes, "--productname") == project_changes(changes, "name")

    def test_terse_returns_identifiers(self, changes):
        assert project_changes(changes, "new", terse=True) == [GTIN_C]

    def test_terse_deduplicates(self, changes):
        identifiers = project_changes(changes, terse=True)
        assert identifiers == list(dict.fromkeys(identifiers))
        assert set(identifiers) == {GTIN_A, GTIN_B, GTIN_C}

    def test_unknown_category_raises(self, changes):
        with pytest.raises(ValueError, match="Unknown category"):
            project_changes(changes, "price_wobble")
