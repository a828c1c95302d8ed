"""
Numeric parsing and small statistics helpers shared by the pipeline and validator.

Field-survey spreadsheets store numbers as free text: "5", " 5 ", "5.0",
"100+", "2 (unsure)". The helpers here read the leading number of such a
value and never raise, returning None when there is no number to read.

All functions are pure and deterministic.
"""

import re
from typing import Iterable, Optional

import numpy as np

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_leading_int(value) -> Optional[int]:
    """
    Read the integer prefix of a value.

    **Functionally**:
    - Ints are returned unchanged; bools and None give None.
    - Floats are truncated toward zero (NaN gives None).
    - Strings: optional whitespace, optional sign, then digits. Anything after
      the digits is ignored, so "5.7" -> 5, "100+" -> 100, "3 fish" -> 3.
    - Strings without a leading integer give None ("", "abc", ".5").

    Args:
        value: Raw cell value.

    Returns:
        Parsed integer or None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        if np.isnan(value) or np.isinf(value):
            return None
        return int(value)
    match = _LEADING_INT.match(str(value))
    if match is None:
        return None
    return int(match.group(1))


def parse_leading_float(value) -> Optional[float]:
    """
    Read the decimal prefix of a value ("2.5m" -> 2.5, "-3" -> -3.0).

    Returns None when the value has no leading number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        number = float(value)
        return None if np.isnan(number) else number
    match = _LEADING_FLOAT.match(str(value))
    if match is None:
        return None
    return float(match.group(1))


def parse_quantity(value) -> int:
    """
    Parse an Nmax quantity cell into a non-negative integer.

    Unparseable and negative values are coerced to 0 rather than rejected.
    """
    parsed = parse_leading_int(value)
    if parsed is None or parsed < 0:
        return 0
    return parsed


def is_non_negative_int(value) -> bool:
    """True for Python/numpy integers >= 0 (bools excluded)."""
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, np.integer)) and value >= 0


def percentage(part: float, whole: float) -> float:
    """Return part / whole as a percentage, or 0.0 when whole is 0."""
    if not whole:
        return 0.0
    return (part / whole) * 100.0


def mean_or_none(values: Iterable[float]) -> Optional[float]:
    """Arithmetic mean of the values, or None for an empty iterable."""
    array = np.fromiter(values, dtype=float)
    if array.size == 0:
        return None
    return float(array.mean())

