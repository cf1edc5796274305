"""
Privacy transform for complaint locations.

Commercial venues are shown at their exact address. Residential locations
are rounded down to the 100 block ("123 Bleecker St" -> "100 Block of
Bleecker St"), or fall back to the bare street or the cross streets.

A residential record with a street but no house number keeps the street name
alone (no block number). That is the documented behavior, not a stricter
privacy rule.
"""

import math
import re
from typing import Optional

BLOCK_SIZE = 100

_HOUSE_NUMBER = re.compile(r"^(\d+)")
_HOUSE_NUMBER_PREFIX = re.compile(r"^\d+[-\s]*")
_WORD_START = re.compile(r"\b\w")
_CROSS_SEPARATOR = re.compile(r"\s+and\s+", re.IGNORECASE)


def title_case(text: str) -> str:
    """
    Title-case a street string ("BLEECKER STREET" -> "Bleecker Street").

    Unlike str.title(), ordinals stay intact: "WEST 3RD ST" -> "West 3rd St".
    """
    return _WORD_START.sub(lambda m: m.group(0).upper(), text.lower())


def extract_street_from_address(address: str) -> str:
    """Strip the leading house number: "123-125 BLEECKER ST" -> "BLEECKER ST"."""
    return _HOUSE_NUMBER_PREFIX.sub("", address or "").strip()


def format_cross_streets(cross_streets: str) -> str:
    """Title-case each side of "A and B", keeping the connective lower-case."""
    parts = [p.strip() for p in _CROSS_SEPARATOR.split(cross_streets.strip()) if p.strip()]
    return " and ".join(title_case(p) for p in parts)


def block_of(house_number: int) -> int:
    return int(math.floor(house_number / BLOCK_SIZE)) * BLOCK_SIZE


def anonymize_address(
    address: str,
    street: str,
    cross_streets: Optional[str] = None,
    is_commercial: bool = False,
) -> str:
    """
    Produce the display location for a complaint.

    Rules, first success wins:
        1. Commercial with an address: the address verbatim
        2. House number + street: "{block} Block of {Street}" (bare street for block 0)
        3. Street only: the street
        4. Cross streets: "{Cross1} and {Cross2}"
        5. Otherwise "" (unlocatable, caller must drop the record)

    Args:
        address: Incident address, may start with a house number
        street: Street name column (may be empty)
        cross_streets: Optional "A and B" fallback
        is_commercial: Category-level commercial flag

    Returns:
        Display location string, possibly empty
    """
    address = (address or "").strip()
    street = (street or "").strip()

    if is_commercial and address:
        return address

    resolved_street = title_case(street or extract_street_from_address(address))

    match = _HOUSE_NUMBER.match(address)
    if match and resolved_street:
        block = block_of(int(match.group(1)))
        # "0 Block of X" reads oddly
        if block == 0:
            return resolved_street
        return f"{block} Block of {resolved_street}"

    if resolved_street:
        return resolved_street

    if cross_streets and cross_streets.strip():
        return format_cross_streets(cross_streets)

    return ""
