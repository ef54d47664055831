from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Source(str, Enum):
    APPLE_HEALTH = "apple_health"
    GPX = "gpx"
    CSV = "csv"
    MANUAL = "manual"


class FileFormat(str, Enum):
    APPLE_HEALTH = "apple_health"
    GPX = "gpx"
    CSV = "csv"


@dataclass(frozen=True)
class Split:
    duration: float
    duration_unit: str = "min"
    date: Optional[str] = None


@dataclass(frozen=True)
class TrackPoint:
    lat: float
    lon: float
    ele: Optional[float] = None
    time: Optional[str] = None


@dataclass(frozen=True)
class NormalizedRun:
    """One run ready for persistence. Distances in km, durations in minutes."""

    date: str
    distance_km: float
    duration_min: float
    pace_min_per_km: float
    source: Source
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    elevation_gain_m: Optional[float] = None
    calories: Optional[int] = None
    notes: Optional[str] = None
    # Apple Health only
    step_count: Optional[int] = None
    avg_running_power: Optional[float] = None
    avg_ground_contact_time: Optional[float] = None
    avg_running_speed: Optional[float] = None
    avg_vertical_oscillation: Optional[float] = None
    avg_stride_length: Optional[float] = None
    workout_name: Optional[str] = None
    indoor_workout: Optional[int] = None
    source_name: Optional[str] = None
    splits: Tuple[Split, ...] = ()
    raw_data: Optional[Dict[str, Any]] = None
    # GPX only
    track: Tuple[TrackPoint, ...] = field(default=(), repr=False)

    def dedup_key(self) -> Tuple[str, float, float]:
        return (self.date, self.distance_km, self.duration_min)

    def to_record(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "distance_km": self.distance_km,
            "duration_min": self.duration_min,
            "pace_min_per_km": self.pace_min_per_km,
            "avg_heart_rate": self.avg_heart_rate,
            "max_heart_rate": self.max_heart_rate,
            "elevation_gain_m": self.elevation_gain_m,
            "calories": self.calories,
            "notes": self.notes,
            "gpx_data": json.dumps([asdict(p) for p in self.track]) if self.track else None,
            "source": Source(self.source).value,
            "step_count": self.step_count,
            "avg_running_power": self.avg_running_power,
            "avg_ground_contact_time": self.avg_ground_contact_time,
            "avg_running_speed": self.avg_running_speed,
            "avg_vertical_oscillation": self.avg_vertical_oscillation,
            "avg_stride_length": self.avg_stride_length,
            "workout_name": self.workout_name,
            "indoor_workout": self.indoor_workout,
            "source_name": self.source_name,
            "splits": json.dumps([asdict(s) for s in self.splits]) if self.splits else None,
            "raw_data": json.dumps(self.raw_data) if self.raw_data is not None else None,
        }


@dataclass
class ImportSummary:
    imported: int = 0
    skipped: int = 0
    total: int = 0
    format: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_pace(distance_km: float, duration_min: float) -> float:
    if distance_km == 0:
        return 0.0
    return duration_min / distance_km


def to_iso_utc(dt: datetime) -> str:
    """Render as UTC with millisecond precision, e.g. 2024-03-01T06:30:00.000Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return to_iso_utc(datetime.now(timezone.utc))
