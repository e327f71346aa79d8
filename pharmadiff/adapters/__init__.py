"""File adapters for registration sheets and price-list exports."""

from .csv_adapter import CsvAdapter
from .excel_adapter import ExcelAdapter
from .fhir_adapter import FhirBundleAdapter, entries_from_bundles, snapshot_as_of

__all__ = [
    "CsvAdapter",
    "ExcelAdapter",
    "FhirBundleAdapter",
    "entries_from_bundles",
    "snapshot_as_of",
]
