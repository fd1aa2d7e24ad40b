"""
Text utilities for cleaning imported values.

Used by the field mapper and the shipping CSV tools.
"""

import re
import unicodedata
from typing import Optional


def truncate(value: Optional[str], max_length: int) -> str:
    """
    Cut a string to a column's maximum length.

    Never raises; None becomes "".
    """
    if not value:
        return ""
    return value[:max_length]


def clean_text(value: Optional[str], max_length: int = 255) -> Optional[str]:
    """
    Clean a free-text value for storage.

    - Strips whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings

    Args:
        value: Raw value from the CSV
        max_length: Maximum characters to store

    Returns:
        Cleaned value or None
    """
    if not value:
        return None

    value = value.strip()

    if not value:
        return None

    return truncate(value, max_length)


def generate_handle(title: Optional[str]) -> str:
    """
    Build a URL-friendly handle from a product title.

    "Lavender Dream (8 oz)" → "lavender-dream-8-oz"
    "Crème Brûlée"          → "creme-brulee"
    """
    if not title:
        return ""

    # NFD splits accents off their base letters so they can be dropped
    normalized = unicodedata.normalize("NFD", title)
    ascii_title = "".join(c for c in normalized if unicodedata.category(c) != "Mn")

    handle = re.sub(r"[^a-z0-9]+", "-", ascii_title.lower())
    return handle.strip("-")
