"""Snapshot date helpers: labels taken from file names and FHIR timestamps."""

import re
from datetime import date, datetime
from pathlib import Path
from typing import Optional

_ISO_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_PACKUNGEN = re.compile(r"Packungen-(\d{4}\.\d{1,2}\.\d{1,2})$")
_DOTTED = re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$")


def parse_date_str(value: Optional[str]) -> Optional[date]:
    """Parse the leading YYYY-MM-DD of a FHIR date/instant; None if not a date."""
    if not value:
        return None
    match = _ISO_PREFIX.match(value)
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def date_label_from_filename(path: str) -> Optional[str]:
    """
    Find the snapshot date label in a file name.

    Recognized stems:
    - "...Packungen-2024.06.01" -> "2024.06.01"
    - "sl_foph_01.06.2024" (any "_"-separated dd.mm.yyyy token) -> "01.06.2024"
    """
    stem = Path(path).stem

    match = _PACKUNGEN.search(stem)
    if match:
        return match.group(1)

    for part in stem.split("_"):
        if _DOTTED.match(part):
            return part
    return None


def label_to_date(label: Optional[str]) -> Optional[date]:
    """Turn a "dd.mm.yyyy" or "yyyy.mm.dd" label into a date."""
    if not label:
        return None
    parts = label.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    try:
        if len(parts[0]) == 4:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
        return date(int(parts[2]), int(parts[1]), int(parts[0]))
    except ValueError:
        return None


def format_label(value: date) -> str:
    return value.strftime("%d.%m.%Y")


def file_mod_date_label(path: str) -> str:
    """dd.mm.yyyy of the file's modification time, "unknown" if unavailable."""
    try:
        mtime = Path(path).stat().st_mtime
    except OSError:
        return "unknown"
    return format_label(datetime.fromtimestamp(mtime).date())
