"""Price detection in free text and price normalisation."""

from __future__ import annotations

import math
import re

# Optional currency symbol, then a number with exactly two decimals.
_PRICE_IN_TEXT = re.compile(r"([$€£¥])?\s*(\d+[.,]\d{2})")
_NON_NUMERIC = re.compile(r"[^\d.,]")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def _to_float(text: str) -> float | None:
    """Parse the leading number of *text* after normalising the separator."""
    cleaned = _NON_NUMERIC.sub("", text).replace(",", ".", 1)
    match = _LEADING_NUMBER.match(cleaned)
    if match is None:
        return None
    return float(match.group())


def extract_price(text: str) -> float | None:
    """Return the first currency-like amount in *text*, or ``None``.

    >>> extract_price("Price: $19.99 today")
    19.99
    >>> extract_price("no price here") is None
    True
    """
    match = _PRICE_IN_TEXT.search(text or "")
    if match is None:
        return None
    return _to_float(match.group(2))


def parse_price(value: object) -> float | None:
    """Normalise a scraped price to a number rounded to cents.

    Strings are cleaned the same way as :func:`extract_price`.  Anything
    that does not yield a finite number becomes ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        number = _to_float(value)
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        return None
    if number is None or not math.isfinite(number):
        return None
    # Half-up rounding to cents.
    return math.floor(number * 100 + 0.5) / 100
