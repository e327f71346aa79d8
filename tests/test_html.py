"""
Tests for the HTML rendering of merged reports.
"""

from datetime import date

from pharmadiff.diff.change_set import ChangeRecord
from pharmadiff.diff.merge import merge
from pharmadiff.identifier import build_identifier
from pharmadiff.report import render_html
from pharmadiff.report.html import format_value
from pharmadiff.schema import RETAIL_PRICE_FIELD, SOURCE_PRICE_LIST, SOURCE_REGISTRATION, ChangeKind, FlagCode

GTIN_A = build_identifier("12345", "001")
GTIN_B = build_identifier("12345", "002")


def make_report():
    price = [ChangeRecord(
        identifier=GTIN_A,
        kind=ChangeKind.PRICE_CHANGED,
        flag=FlagCode.PRICE_RISE,
        field=RETAIL_PRICE_FIELD,
        old_value=20.0,
        new_value=25.5,
        name="Dafalgan <Tabl>",
        sources=(SOURCE_PRICE_LIST,),
    )]
    registration = [ChangeRecord(
        identifier=GTIN_B,
        kind=ChangeKind.NEW,
        flag=FlagCode.NEW,
        name="Ponstan & Co",
        sources=(SOURCE_REGISTRATION,),
    )]
    return merge(price, registration, generated_on=date(2024, 6, 1))


class TestRenderHtml:

    def test_document_structure(self):
        page = render_html(make_report())
        assert page.startswith("<!DOCTYPE html>")
        assert "Pharma Diff Report - 01.06.2024" in page
        assert 'id="summary"' in page
        assert 'id="flag-1"' in page
        assert 'id="flag-13"' in page

    def test_values_are_escaped(self):
        page = render_html(make_report())
        assert "Dafalgan &lt;Tabl&gt;" in page
        assert "Ponstan &amp; Co" in page
        assert "<Tabl>" not in page

    def test_changed_values_are_escaped(self):
        change = ChangeRecord(
            identifier=GTIN_A,
            kind=ChangeKind.FIELD_CHANGED,
            flag=FlagCode.ADDRESS,
            field="owner",
            old_value="<script>alert(1)</script>",
            new_value="Viatris \"AG\"",
            sources=(SOURCE_REGISTRATION,),
        )
        page = render_html(merge([], [change], generated_on=date(2024, 6, 1)))
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in page
        assert "<script>" not in page
        assert "Viatris &#34;AG&#34;" in page

    def test_prices_formatted(self):
        page = render_html(make_report())
        assert "20.00" in page
        assert "25.50" in page

    def test_sections_only_for_present_flags(self):
        page = render_html(make_report())
        assert 'id="flag-14"' not in page


class TestFormatValue:

    def test_none(self):
        assert format_value(None) == ""

    def test_price_dict(self):
        assert format_value({"retail_price": 3.5, "exfactory_price": None}) == "retail_price: 3.50"

    def test_text(self):
        assert format_value("D") == "D"
