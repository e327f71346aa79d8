"""
Product identifier construction.

Both registries describe the same pack by different keys: the registration
sheet by (registration number, pack code), the price list by a GTIN. This
module builds the GTIN from the registration key so the two can be joined.
"""

from typing import Union

from .errors import InvalidIdentifierInput
from .schema import IDENTIFIER_PREFIX, PACK_CODE_WIDTH, REGISTRATION_NUMBER_WIDTH


def gtin_checksum(body: str) -> str:
    """
    Compute the EAN-13 check digit over a 12-digit body.

    Digits at odd positions (1-indexed from the left) weigh 1, even positions
    weigh 3; the check digit is (10 - sum % 10) % 10.

    Args:
        body: Exactly 12 ASCII digits

    Returns:
        The check digit as a one-character string

    Raises:
        InvalidIdentifierInput: If body is not 12 digits
    """
    if len(body) != 12 or not _is_ascii_digits(body):
        raise InvalidIdentifierInput("body", body, "expected exactly 12 digits")

    total = sum(
        int(digit) * (1 if index % 2 == 0 else 3)
        for index, digit in enumerate(body)
    )
    return str((10 - total % 10) % 10)


def build_identifier(
    registration_number: Union[str, int],
    pack_code: Union[str, int]
) -> str:
    """
    Build the 13-digit product identifier for a registered pack.

    Example:
        >>> build_identifier("12345", "678")
        '7680123456781'

    Args:
        registration_number: Up to 5 digits
        pack_code: Up to 3 digits

    Returns:
        13-character numeric string starting with the fixed prefix

    Raises:
        InvalidIdentifierInput: For empty, non-numeric or over-width inputs
    """
    reg_nr = _normalize_component("registration_number", registration_number, REGISTRATION_NUMBER_WIDTH)
    pack = _normalize_component("pack_code", pack_code, PACK_CODE_WIDTH)

    body = f"{IDENTIFIER_PREFIX}{reg_nr}{pack}"
    return body + gtin_checksum(body)


def _normalize_component(field: str, value: Union[str, int], width: int) -> str:
    if isinstance(value, bool) or value is None:
        raise InvalidIdentifierInput(field, value, "expected digits")

    text = str(value).strip()
    if not text:
        raise InvalidIdentifierInput(field, value, "empty value")
    if not _is_ascii_digits(text):
        raise InvalidIdentifierInput(field, value, "contains non-digit characters")
    if len(text) > width:
        raise InvalidIdentifierInput(field, value, f"longer than {width} digits")

    return text.zfill(width)


def _is_ascii_digits(text: str) -> bool:
    # str.isdigit() also accepts superscripts and other Unicode digits
    return text.isascii() and text.isdigit()
