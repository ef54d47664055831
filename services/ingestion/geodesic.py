"""Great-circle distance and climb between consecutive GPS fixes."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

EARTH_RADIUS_KM = 6371.0


class Fix(Protocol):
    lat: float
    lon: float
    ele: Optional[float]


@dataclass
class TrackTotals:
    distance_km: float = 0.0
    elevation_gain_m: float = 0.0
    skipped_steps: int = 0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push a past 1 for antipodal points.
    if a > 1.0:
        a = 1.0
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def elevation_gain_m(ele_a: Optional[float], ele_b: Optional[float]) -> float:
    if ele_a is None or ele_b is None:
        return 0.0
    delta = ele_b - ele_a
    # NaN compares False, so it contributes nothing.
    return delta if delta > 0 else 0.0


def step(a: Fix, b: Fix) -> tuple[float, float]:
    return haversine_km(a.lat, a.lon, b.lat, b.lon), elevation_gain_m(a.ele, b.ele)


def accumulate(points: Iterable[Fix]) -> TrackTotals:
    """Sum distance and positive climb over consecutive points.

    A step whose distance is not finite (a NaN coordinate on either end) adds
    nothing and is counted in ``skipped_steps``; the running total is kept.
    """
    totals = TrackTotals()
    previous = None
    for point in points:
        if previous is not None:
            distance, climb = step(previous, point)
            if math.isfinite(distance):
                totals.distance_km += distance
            else:
                totals.skipped_steps += 1
            totals.elevation_gain_m += climb
        previous = point
    return totals
