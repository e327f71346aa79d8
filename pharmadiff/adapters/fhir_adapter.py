"""
Reader for the reimbursed-price list FHIR export.

The export is NDJSON: one FHIR Bundle per line. Each bundle holds
PackagedProductDefinition resources (the packs, identified by GTIN) and
RegulatedAuthorization resources (the list entries, carrying price history
in `productPrice` extensions).

This adapter only extracts what the price differ compares: identifier, name,
list-entry status and the raw price facts. Effective prices are resolved
later, against the snapshot's as-of date.
"""

import json
import logging
from collections import Counter
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..dates import parse_date_str
from ..records import PriceCategory, PriceFact, PriceListEntry
from ..schema import (
    EXFACTORY_PRICE_CODE,
    GTIN_SYSTEM,
    IDENTIFIER_LENGTH,
    IDENTIFIER_PREFIX,
    PRODUCT_PRICE_EXTENSION,
    RETAIL_PRICE_CODE,
    SL_AUTHORIZATION_CODE,
)

logger = logging.getLogger(__name__)

PRICE_TYPE_CODES: Dict[str, PriceCategory] = {
    RETAIL_PRICE_CODE: PriceCategory.RETAIL,
    EXFACTORY_PRICE_CODE: PriceCategory.EXFACTORY,
}


def _is_bundle(value: Any) -> bool:
    return isinstance(value, dict) and value.get("resourceType") == "Bundle"


def _split_concatenated(text: str) -> List[Any]:
    """Decode back-to-back JSON objects that were written without separators."""
    decoder = json.JSONDecoder()
    objects = []
    index = 0
    while True:
        start = text.find("{", index)
        if start < 0:
            break
        try:
            value, end = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            index = start + 1
            continue
        objects.append(value)
        index = end
    return objects


def _first(values: Any) -> Any:
    return values[0] if isinstance(values, list) and values else None


def _coding_codes(concept: Any) -> List[str]:
    if not isinstance(concept, dict):
        return []
    return [c.get("code") for c in concept.get("coding") or [] if isinstance(c, dict)]


class FhirBundleAdapter:
    """Reads price-list snapshots from FHIR NDJSON exports."""

    def can_handle(self, file_path: str) -> bool:
        return Path(file_path).suffix.lower() in [".ndjson", ".json", ".jsonl"]

    def read_bundles(self, file_path: str) -> List[Dict[str, Any]]:
        """
        Load all Bundles of an export.

        Line-delimited JSON is tried first; if no line yields a Bundle the
        file is decoded as concatenated JSON objects.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the file contains no Bundle
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        content = path.read_text(encoding="utf-8")

        bundles = []
        bad_lines = 0
        for line in content.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                value = json.loads(line)
            except json.JSONDecodeError:
                bad_lines += 1
                continue
            if _is_bundle(value):
                bundles.append(value)

        if not bundles:
            flattened = content.replace("\r", "").replace("\n", "")
            bundles = [value for value in _split_concatenated(flattened) if _is_bundle(value)]
        elif bad_lines:
            logger.warning(f"{file_path}: skipped {bad_lines} unparsable lines")

        if not bundles:
            raise ValueError(f"No valid FHIR Bundles in {file_path}")

        return bundles

    def read(self, file_path: str) -> List[PriceListEntry]:
        """Load an export and return its price-list entries."""
        bundles = self.read_bundles(file_path)
        entries = entries_from_bundles(bundles)
        logger.info(f"Loaded {len(bundles)} bundles, {len(entries)} packages from {file_path}")
        return entries


# =============================================================================
# BUNDLE PROCESSING
# =============================================================================

def _extract_gtin(product: Dict[str, Any]) -> Optional[str]:
    packaging = product.get("packaging")
    identifiers = packaging.get("identifier") if isinstance(packaging, dict) else None
    for ident in identifiers or []:
        if not isinstance(ident, dict):
            continue
        value = ident.get("value") or ""
        if (
            ident.get("system") == GTIN_SYSTEM
            and len(value) == IDENTIFIER_LENGTH
            and value.startswith(IDENTIFIER_PREFIX)
        ):
            return value
    return None


def _extract_name(product: Dict[str, Any]) -> str:
    description = product.get("description")
    if isinstance(description, str):
        return description
    text = product.get("text")
    if isinstance(text, dict) and isinstance(text.get("div"), str):
        return text["div"]
    return "Unknown Product"


def _is_list_authorization(resource: Dict[str, Any]) -> bool:
    return SL_AUTHORIZATION_CODE in _coding_codes(resource.get("type"))


def _subject_reference(resource: Dict[str, Any]) -> str:
    subject = _first(resource.get("subject"))
    if isinstance(subject, dict):
        return subject.get("reference") or ""
    return ""


def extract_price_facts(authorization: Dict[str, Any]) -> List[PriceFact]:
    """
    Price facts from the productPrice extensions of one authorization.

    Facts with an unknown price type, a non-positive amount or no valid
    change date are dropped.
    """
    facts = []
    for ext in authorization.get("extension") or []:
        if not isinstance(ext, dict) or PRODUCT_PRICE_EXTENSION not in (ext.get("url") or ""):
            continue

        type_code = ""
        amount = 0.0
        change_date = None
        for sub in ext.get("extension") or []:
            if not isinstance(sub, dict):
                continue
            url = sub.get("url")
            if url == "type":
                codes = _coding_codes(sub.get("valueCodeableConcept"))
                type_code = codes[0] if codes else ""
            elif url == "value":
                money = sub.get("valueMoney") or {}
                value = money.get("value")
                amount = float(value) if isinstance(value, (int, float)) else 0.0
            elif url == "changeDate":
                change_date = parse_date_str(sub.get("valueDate"))

        category = PRICE_TYPE_CODES.get(type_code)
        if category is None or amount <= 0 or change_date is None:
            continue
        facts.append(PriceFact(amount=amount, category=category, effective_date=change_date))
    return facts


def entries_from_bundle(bundle: Dict[str, Any]) -> List[PriceListEntry]:
    """Price-list entries of one Bundle, in resource order."""
    resources: Dict[str, Dict[str, Any]] = {}
    for entry in bundle.get("entry") or []:
        resource = entry.get("resource") if isinstance(entry, dict) else None
        if not isinstance(resource, dict):
            continue
        rtype = resource.get("resourceType") or ""
        rid = resource.get("id") or ""
        if rtype and rid:
            resources[f"{rtype}/{rid}"] = resource

    authorizations: Dict[str, List[Dict[str, Any]]] = {}
    for resource in resources.values():
        if resource.get("resourceType") == "RegulatedAuthorization" and _is_list_authorization(resource):
            authorizations.setdefault(_subject_reference(resource), []).append(resource)

    entries = []
    for key, resource in resources.items():
        if resource.get("resourceType") != "PackagedProductDefinition":
            continue
        gtin = _extract_gtin(resource)
        if gtin is None:
            continue

        linked = authorizations.get(key, [])
        facts: List[PriceFact] = []
        for authorization in linked:
            facts.extend(extract_price_facts(authorization))

        entries.append(PriceListEntry(
            identifier=gtin,
            name=_extract_name(resource),
            listed=bool(linked),
            facts=tuple(facts),
        ))
    return entries


def entries_from_bundles(bundles: List[Dict[str, Any]]) -> List[PriceListEntry]:
    return [entry for bundle in bundles for entry in entries_from_bundle(bundle)]


def snapshot_as_of(bundles: List[Dict[str, Any]], fallback: date) -> date:
    """
    The snapshot's reference day: the most common bundle date.

    Uses `timestamp`, else `meta.lastUpdated`. Equally common dates resolve
    to the later one. Without any dated bundle, `fallback` is returned.
    """
    counts: Counter = Counter()
    for bundle in bundles:
        meta = bundle.get("meta")
        stamp = bundle.get("timestamp") or (meta.get("lastUpdated") if isinstance(meta, dict) else None)
        parsed = parse_date_str(stamp)
        if parsed is not None:
            counts[parsed] += 1

    if not counts:
        logger.info(f"No bundle timestamp found, using fallback date {fallback.isoformat()}")
        return fallback

    best: Tuple[int, date] = max((count, day) for day, count in counts.items())
    logger.info(f"Using bundle effective date {best[1].isoformat()} for price evaluation")
    return best[1]
