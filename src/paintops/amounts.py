"""Numeric coercion shared by every calculator.

Calculators never raise on bad input: absent, non-numeric, non-finite and
negative values all become 0, and every ratio with a zero (or negative)
denominator is 0.
"""

from __future__ import annotations

import math
from typing import Any


def coerce_amount(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def safe_div(num: float, den: float) -> float:
    return num / den if den > 0 else 0.0


def pct_of(value: float, pct: float) -> float:
    """``pct`` is expressed 0-100."""
    return value * (pct / 100)


def round_half_up(value: float) -> int:
    # Halves round toward +infinity, so 2.5 -> 3 and -2.5 -> -2.
    return int(math.floor(value + 0.5))
