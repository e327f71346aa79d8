"""
Unit tests for flag classification.

These tests verify that:
1. Every table entry maps to a defined code, never the reserved 12
2. Unknown (kind, field) pairs fail with UnclassifiedChange
3. Price changes are refined by direction
4. A classifier can be built from a custom table
"""

import pytest

from pharmadiff.diff.classifier import CLASSIFICATION_TABLE, DEFAULT_CLASSIFIER, FlagClassifier
from pharmadiff.errors import UnclassifiedChange
from pharmadiff.schema import (
    EXFACTORY_PRICE_FIELD,
    FLAG_LEGEND,
    REGISTRATION_FIELDS,
    RETAIL_PRICE_FIELD,
    ChangeKind,
    FlagCode,
)


# =============================================================================
# TAXONOMY
# =============================================================================

class TestTaxonomy:
    """The flag taxonomy itself."""

    def test_code_12_is_reserved(self):
        assert 12 not in {int(code) for code in FlagCode}
        assert 12 not in FLAG_LEGEND

    def test_every_code_has_a_legend_entry(self):
        assert set(FLAG_LEGEND) == {int(code) for code in FlagCode}

    def test_table_only_uses_defined_codes(self):
        for flag in CLASSIFICATION_TABLE.values():
            assert isinstance(flag, FlagCode)
            assert int(flag) in FLAG_LEGEND

    def test_every_registration_field_is_classified(self):
        for field in REGISTRATION_FIELDS:
            assert (ChangeKind.FIELD_CHANGED, field) in CLASSIFICATION_TABLE

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            CLASSIFICATION_TABLE[(ChangeKind.NEW, "x")] = FlagCode.NEW


# =============================================================================
# CLASSIFY
# =============================================================================

class TestClassify:
    """Tests for FlagClassifier.classify()."""

    @pytest.mark.parametrize("kind,field,expected", [
        (ChangeKind.NEW, None, FlagCode.NEW),
        (ChangeKind.DELETED, None, FlagCode.DELETE),
        (ChangeKind.LIST_ENTRY_ADDED, None, FlagCode.SL_ENTRY),
        (ChangeKind.LIST_ENTRY_REMOVED, None, FlagCode.SL_ENTRY_DELETE),
        (ChangeKind.FIELD_CHANGED, "name", FlagCode.NAME_BASE),
        (ChangeKind.FIELD_CHANGED, "owner", FlagCode.ADDRESS),
        (ChangeKind.FIELD_CHANGED, "category", FlagCode.IKSCAT),
        (ChangeKind.FIELD_CHANGED, "composition", FlagCode.COMPOSITION),
        (ChangeKind.FIELD_CHANGED, "active_agent", FlagCode.COMPOSITION),
        (ChangeKind.FIELD_CHANGED, "indication", FlagCode.INDICATION),
        (ChangeKind.FIELD_CHANGED, "sequence", FlagCode.SEQUENCE),
        (ChangeKind.FIELD_CHANGED, "expiry_date", FlagCode.EXPIRY_DATE),
    ])
    def test_table_lookup(self, kind, field, expected):
        assert DEFAULT_CLASSIFIER.classify(kind, field) == expected

    def test_unknown_field_raises(self):
        with pytest.raises(UnclassifiedChange) as exc_info:
            DEFAULT_CLASSIFIER.classify(ChangeKind.FIELD_CHANGED, "barcode_color", identifier="7680123456781")
        assert exc_info.value.field == "barcode_color"
        assert exc_info.value.identifier == "7680123456781"
        assert "barcode_color" in str(exc_info.value)

    def test_field_on_whole_product_kind_raises(self):
        with pytest.raises(UnclassifiedChange):
            DEFAULT_CLASSIFIER.classify(ChangeKind.NEW, "name")

    def test_deterministic(self):
        first = DEFAULT_CLASSIFIER.classify(ChangeKind.FIELD_CHANGED, "owner", "A", "B")
        second = DEFAULT_CLASSIFIER.classify(ChangeKind.FIELD_CHANGED, "owner", "A", "B")
        assert first == second


class TestPriceDirection:
    """Price changes are refined to rise or cut."""

    @pytest.mark.parametrize("field", [RETAIL_PRICE_FIELD, EXFACTORY_PRICE_FIELD])
    def test_rise(self, field):
        assert DEFAULT_CLASSIFIER.classify(ChangeKind.PRICE_CHANGED, field, 20.0, 25.0) == FlagCode.PRICE_RISE

    @pytest.mark.parametrize("field", [RETAIL_PRICE_FIELD, EXFACTORY_PRICE_FIELD])
    def test_cut(self, field):
        assert DEFAULT_CLASSIFIER.classify(ChangeKind.PRICE_CHANGED, field, 25.0, 20.0) == FlagCode.PRICE_CUT

    def test_equal_is_base_price_flag(self):
        assert DEFAULT_CLASSIFIER.classify(ChangeKind.PRICE_CHANGED, RETAIL_PRICE_FIELD, 5.0, 5.0) == FlagCode.PRICE

    def test_first_price_is_rise(self):
        assert DEFAULT_CLASSIFIER.classify(ChangeKind.PRICE_CHANGED, RETAIL_PRICE_FIELD, None, 5.0) == FlagCode.PRICE_RISE

    def test_vanished_price_is_cut(self):
        assert DEFAULT_CLASSIFIER.classify(ChangeKind.PRICE_CHANGED, RETAIL_PRICE_FIELD, 5.0, None) == FlagCode.PRICE_CUT


class TestCustomTable:
    """Classifiers built from their own table."""

    def test_custom_table(self):
        classifier = FlagClassifier({(ChangeKind.NEW, None): FlagCode.NEW})
        assert classifier.classify(ChangeKind.NEW) == FlagCode.NEW
        with pytest.raises(UnclassifiedChange):
            classifier.classify(ChangeKind.DELETED)

    def test_source_table_changes_do_not_leak(self):
        table = {(ChangeKind.NEW, None): FlagCode.NEW}
        classifier = FlagClassifier(table)
        table[(ChangeKind.DELETED, None)] = FlagCode.DELETE
        with pytest.raises(UnclassifiedChange):
            classifier.classify(ChangeKind.DELETED)
