import csv
import io
import chardet
from pathlib import Path
from typing import List

# Candidate delimiters, in tie-break order
_DELIMITERS = (";", ",", "\t")
_UTF8_BOM = b"\xef\xbb\xbf"


def sniff_encoding(raw: bytes) -> str:
    """Guess the text encoding of a sheet export from its leading bytes."""
    if raw.startswith(_UTF8_BOM):
        return "utf-8-sig"

    guess = (chardet.detect(raw).get("encoding") or "utf-8").lower()
    if guess in ("ascii", "utf8") or guess.startswith("utf-8"):
        return "utf-8"
    return guess


def sniff_delimiter(sample: str) -> str:
    try:
        return csv.Sniffer().sniff(sample, delimiters="".join(_DELIMITERS)).delimiter
    except csv.Error:
        header = sample.partition("\n")[0]
        best = max(_DELIMITERS, key=header.count)
        return best if header.count(best) else ","


class CsvAdapter:
    """
    Reads registration sheets saved as CSV or TSV.

    The authority's sheet has banner rows above the data and no stable header,
    so rows come back positionally as lists of strings. Exports from Excel on
    Windows are usually cp1252 with ';' separators; both are detected.
    """

    def can_handle(self, file_path: str) -> bool:
        return Path(file_path).suffix.lower() in (".csv", ".tsv")

    def read(self, file_path: str) -> List[List[str]]:
        """
        Load every row of the file.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If no candidate encoding decodes it, or it is not CSV
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        raw = path.read_bytes()
        if not raw:
            return []

        for encoding in (sniff_encoding(raw[:10000]), "cp1252", "latin-1"):
            try:
                text = raw.decode(encoding)
            except (UnicodeDecodeError, LookupError):
                continue

            delimiter = "\t" if path.suffix.lower() == ".tsv" else sniff_delimiter(text[:4096])
            try:
                return [list(row) for row in csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)]
            except csv.Error as e:
                raise ValueError(f"Cannot parse {file_path} as CSV: {e}") from e

        raise ValueError(f"Could not decode file {file_path}")
