from __future__ import annotations

import math
import re
from typing import Any, Optional


# All known whitespace variants (regular + non-breaking)
SPACE_CHARS = [
    "\u0020",  # normal space
    "\u00A0",  # NBSP
    "\u2007",  # figure space
    "\u202F",  # narrow NBSP
]


def _normalize_spaces(s: str) -> str:
    """Replace all types of weird spaces with a normal space."""
    for ch in SPACE_CHARS:
        s = s.replace(ch, " ")
    return s


def to_number(value: Any) -> Optional[float]:
    """
    Parse a loosely formatted number.

    Handles:
      - 1234, 1234.5 (int / float passthrough)
      - "1,234"      (thousands separators)
      - "1 234"      (spaces, incl. NBSP variants)
      - None, "", "n/a", NaN, inf -> None

    Booleans are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        n = float(value)
        return n if math.isfinite(n) else None

    s = _normalize_spaces(str(value)).strip()
    if not s:
        return None

    s = re.sub(r"[, ]+", "", s)
    try:
        n = float(s)
    except ValueError:
        return None

    return n if math.isfinite(n) else None


def to_fraction(value: Any) -> Optional[float]:
    """
    Normalize a reduction value to a fraction in [0, 1].

    - values in [0, 1] are already fractions
    - values in (1, 100] are percentages and are divided by 100
    - anything else (negative, > 100, unparseable) is None

    A trailing "%" is tolerated. Exactly 1 is read as a fraction (100%).
    """
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    n = to_number(value)
    if n is None:
        return None
    if 0 <= n <= 1:
        return n
    if 1 < n <= 100:
        return n / 100
    return None


def to_percent(value: Any) -> Optional[float]:
    """Same rule as `to_fraction`, on the 0-100 scale."""
    frac = to_fraction(value)
    return None if frac is None else frac * 100


def to_year(value: Any) -> Optional[int]:
    n = to_number(value)
    if n is None:
        return None
    return int(n)


def format_number(n: Optional[float]) -> str:
    """Compact display: 1.2B, 3.4M, 5.6k, or the plain number."""
    if n is None or not math.isfinite(n):
        return "n/a"
    a = abs(n)
    if a >= 1_000_000_000:
        return f"{n / 1_000_000_000:.1f}B"
    if a >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if a >= 1_000:
        return f"{n / 1_000:.1f}k"
    return f"{n:,.0f}" if n.is_integer() else f"{n:,}"


def format_percent(fraction: Optional[float]) -> str:
    if fraction is None:
        return "n/a"
    return f"{fraction * 100:.1f}%"
