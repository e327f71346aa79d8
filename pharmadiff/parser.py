from .errors import InvalidIdentifierInput
from .identifier import build_identifier
from .records import RegistrationRecord
from .schema import MIN_REGISTRATION_COLUMNS, REGISTRATION_COLUMNS
from typing import List, Optional, Sequence
import logging

logger = logging.getLogger(__name__)


def normalize_text(value: Optional[str]) -> str:
    """Unify line endings and strip surrounding whitespace."""
    if value is None:
        return ""
    return str(value).replace("\r\n", "\n").replace("\r", "\n").strip()


class RegistrationParser:
    """Parser for authorized-packages registration sheets."""

    def __init__(self):
        self.adapters = []

    def register_adapter(self, adapter):
        """Register a file adapter for reading.

        Args:
            adapter: Adapter instance with can_handle() and read() methods
        """
        self.adapters.append(adapter)

    def parse(self, file_path: str) -> List[RegistrationRecord]:
        """Parse a registration sheet into records.

        Rows that are too short or whose registration key cannot form an
        identifier (banner and header rows, blank lines) are skipped and
        counted.

        Args:
            file_path: Path to the sheet (xlsx or csv)

        Returns:
            Registration records in sheet order

        Raises:
            ValueError: If no adapter is found for the file
        """
        adapter = None
        for a in self.adapters:
            if a.can_handle(file_path):
                adapter = a
                break

        if adapter is None:
            raise ValueError(f"No adapter found for {file_path}")

        rows = adapter.read(file_path)

        records = []
        skipped = 0
        for row in rows:
            record = self.row_to_record(row)
            if record is None:
                skipped += 1
                continue
            records.append(record)

        if skipped:
            logger.warning(f"{file_path}: skipped {skipped} rows without a valid registration key")
        logger.info(f"{file_path}: {len(records)} packs loaded ({skipped} skipped, {len(rows)} total rows)")
        return records

    def row_to_record(self, row: Sequence[str]) -> Optional[RegistrationRecord]:
        """Map one positional row to a record, None if the row is not a pack."""
        if len(row) < MIN_REGISTRATION_COLUMNS:
            return None

        def get(name: str) -> str:
            index = REGISTRATION_COLUMNS[name]
            return normalize_text(row[index]) if index < len(row) else ""

        record = RegistrationRecord(
            registration_number=get("registration_number"),
            pack_code=get("pack_code"),
            name=get("name"),
            owner=get("owner"),
            category=get("category"),
            composition=get("composition"),
            active_agent=get("active_agent"),
            indication=get("indication"),
            sequence=get("sequence"),
            expiry_date=get("expiry_date"),
        )

        try:
            build_identifier(record.registration_number, record.pack_code)
        except InvalidIdentifierInput as e:
            logger.debug(f"Skipping row: {e}")
            return None

        return record
