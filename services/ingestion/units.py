"""Unit conversion and lenient number parsing shared by the parsers."""
from __future__ import annotations

import math
import re
from typing import Optional

MILES_TO_KM = 1.60934
KM_TO_MILES = 0.621371

METRIC = "metric"
IMPERIAL = "imperial"

_NUMBER_PREFIX = re.compile(r"^\s*[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_INTEGER_PREFIX = re.compile(r"^\s*[-+]?\d+")


def mi_to_km(miles: float) -> float:
    return miles * MILES_TO_KM


def km_to_mi(km: float) -> float:
    return km * KM_TO_MILES


def convert_distance(km: float, unit_system: str) -> float:
    if unit_system == IMPERIAL:
        return km_to_mi(km)
    return km


def convert_pace(min_per_km: float, unit_system: str) -> float:
    if unit_system == IMPERIAL:
        return min_per_km * MILES_TO_KM
    return min_per_km


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_number(value) -> Optional[float]:
    """Parse the leading numeric part of a value.

    "12.5" -> 12.5, "12.5 km" -> 12.5, "1:02:03:04" -> 1.0, "abc" -> None.
    Numbers pass through unchanged.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value)
    stripped = text.strip().lower()
    if stripped in ("nan", "+nan", "-nan"):
        return math.nan
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return None
    return float(match.group(0))


def parse_integer(value) -> Optional[int]:
    """Integer prefix of a value: "345.9" -> 345, "abc" -> None."""
    if value is None:
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, int):
        return value
    match = _INTEGER_PREFIX.match(str(value))
    if not match:
        return None
    return int(match.group(0))
