"""
Utility functions for text measurement, identifier normalisation and hashing.
"""

import hashlib
import math
import re
from typing import Any, Optional


WHITESPACE_RUN = re.compile(r'\s+')


def count_words(text: Any) -> int:
    """
    Count the words in a narrative field.

    The text is trimmed and split on runs of whitespace, so leading,
    trailing and repeated spaces or newlines never add words.

    Args:
        text: Narrative text (None counts as zero words)

    Returns:
        Number of words
    """
    if text is None:
        return 0

    stripped = str(text).strip()
    if not stripped:
        return 0

    return len(WHITESPACE_RUN.split(stripped))


def strip_dashes(value: Any) -> str:
    """
    Remove dashes and surrounding whitespace from an identifier.

    Args:
        value: CNIC or mobile number as typed

    Returns:
        The identifier without dashes
    """
    if value is None:
        return ''
    return str(value).strip().replace('-', '')


def parse_amount(value: Any) -> Optional[float]:
    """
    Parse a numeric amount typed into a text input.

    Args:
        value: String or number (blank strings are treated as missing)

    Returns:
        The float value, or None if blank, not a number or not finite
        ('nan', 'inf' and overflowing text such as '1e400')
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            amount = float(value)
        except OverflowError:
            return None
    else:
        str_value = str(value).strip()
        if not str_value:
            return None
        try:
            amount = float(str_value)
        except ValueError:
            return None

    return amount if math.isfinite(amount) else None


def is_blank(value: Any) -> bool:
    """Check whether a scalar form value is empty."""
    return value is None or str(value).strip() == ''


def calculate_sha256(data: bytes) -> str:
    """
    Calculate SHA256 hash of data.

    Args:
        data: Bytes to hash

    Returns:
        Hexadecimal hash string
    """
    return hashlib.sha256(data).hexdigest()
