import zipfile

import openpyxl
from openpyxl.utils.datetime import from_excel
from openpyxl.utils.exceptions import InvalidFileException
from datetime import date
from pathlib import Path
from typing import Any, List

from ..schema import REGISTRATION_DATE_COLUMNS

# Excel serial day numbers plausible as dates (1901 .. 2099)
_SERIAL_MIN = 365
_SERIAL_MAX = 73050


class ExcelAdapter:
    """Reads the first worksheet of an .xlsx file as positional string rows."""

    def can_handle(self, file_path):
        return Path(file_path).suffix.lower() in [".xlsx", ".xlsm"]

    def read(self, file_path) -> List[List[str]]:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        try:
            wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
            raise ValueError(f"Cannot read {file_path} as a workbook: {e}") from e
        try:
            ws = wb.active
            rows = []
            for row in ws.iter_rows(values_only=True):
                rows.append([_cell_to_str(value, index) for index, value in enumerate(row)])
        finally:
            wb.close()

        return rows


def _cell_to_str(value: Any, column: int) -> str:
    if value is None:
        return ""
    if isinstance(value, date):
        return value.strftime("%Y/%m/%d")
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        if column in REGISTRATION_DATE_COLUMNS and _SERIAL_MIN < value < _SERIAL_MAX:
            return from_excel(value).strftime("%Y/%m/%d")
        return str(value)
    return str(value)
