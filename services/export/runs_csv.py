"""CSV export of stored runs."""
from __future__ import annotations

import csv
import io
from typing import Any, Dict, Iterable, List

from services.ingestion.units import IMPERIAL, METRIC, convert_distance, convert_pace


def headers(unit_system: str = METRIC) -> List[str]:
    unit = "mi" if unit_system == IMPERIAL else "km"
    return [
        "Date",
        f"Distance ({unit})",
        "Duration (min)",
        f"Pace (min/{unit})",
        "Avg Heart Rate",
        "Max Heart Rate",
        "Elevation Gain (m)",
        "Calories",
        "Source",
    ]


HEADERS = headers(METRIC)


def _fixed(value) -> str:
    return f"{value:.2f}" if value is not None else ""


def _optional(value) -> str:
    # Zero means "not recorded" for these columns.
    return "" if not value else str(value)


def export_row(run: Dict[str, Any], unit_system: str = METRIC) -> list:
    distance = run.get("distance_km")
    pace = run.get("pace_min_per_km")
    return [
        run["date"],
        _fixed(convert_distance(distance, unit_system) if distance is not None else None),
        _fixed(run.get("duration_min")),
        _fixed(convert_pace(pace, unit_system) if pace is not None else None),
        _optional(run.get("avg_heart_rate")),
        _optional(run.get("max_heart_rate")),
        _optional(run.get("elevation_gain_m")),
        _optional(run.get("calories")),
        run.get("source") or "",
    ]


def runs_to_csv(runs: Iterable[Dict[str, Any]], unit_system: str = METRIC) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(headers(unit_system))
    for run in runs:
        writer.writerow(export_row(run, unit_system))
    return buf.getvalue()
