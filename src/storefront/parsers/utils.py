from __future__ import annotations

import math
import re
from typing import Any

DIGITS_PATTERN = re.compile(r"^\s*\+?\d+\s*$")


def clean_str(value: Any) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def parse_positive_int(value: Any) -> int | None:
    """Accept ints, integral floats and digit strings; anything else is None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        parsed = int(value)
    elif isinstance(value, str):
        if not DIGITS_PATTERN.match(value):
            return None
        parsed = int(value)
    else:
        return None
    return parsed if parsed > 0 else None


def parse_cents(value: Any) -> int | None:
    """Non-negative amount in minor units, rounded; None when absent or invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(math.floor(number + 0.5))
