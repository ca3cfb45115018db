"""UK postcode helpers."""

import re
from typing import Optional, Tuple

# Matches all valid formats, e.g. SW1A 1AA, M1 1AA, B33 8TH, DN55 1PT
POSTCODE_PATTERN = re.compile(r"\b([A-Z]{1,2}\d[A-Z\d]?)\s*(\d[A-Z]{2})\b", re.IGNORECASE)
STRICT_POSTCODE_PATTERN = re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?\s\d[A-Z]{2}$")


def normalize_postcode(postcode: str) -> str:
    """Uppercase and insert the space before the inward code: "sw1a1aa" -> "SW1A 1AA"."""
    cleaned = re.sub(r"\s+", "", postcode.upper())
    if len(cleaned) >= 5:
        return f"{cleaned[:-3]} {cleaned[-3:]}"
    return cleaned


def compact_postcode(postcode: str) -> str:
    """Uppercase with all whitespace removed, used in cache keys and URLs."""
    return re.sub(r"\s+", "", postcode.upper())


def extract_postcode(text: str) -> Optional[str]:
    """Return the first postcode found in free text, normalized."""
    match = POSTCODE_PATTERN.search(text or "")
    if match:
        return normalize_postcode(match.group(0))
    return None


def split_postcode(postcode: str) -> Optional[Tuple[str, str]]:
    """Split into (outward, inward) codes."""
    parts = normalize_postcode(postcode).split(" ")
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def is_valid_postcode(postcode: str) -> bool:
    return bool(STRICT_POSTCODE_PATTERN.match(normalize_postcode(postcode)))
