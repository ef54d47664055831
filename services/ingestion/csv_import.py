"""Runs from arbitrary CSV exports, matching columns by header substrings."""
from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from dateutil import parser as dateparser

from .errors import InvalidFileError
from .models import NormalizedRun, Source, compute_pace, to_iso_utc
from .units import mi_to_km, parse_integer, parse_number

logger = logging.getLogger("runlog.ingest.csv")

# Earlier candidates win; within a candidate the first matching header wins.
DATE_CANDIDATES = ("date", "time", "start")
DISTANCE_CANDIDATES = ("distance", "dist", "km", "miles")
DURATION_CANDIDATES = ("duration", "time", "minutes", "mins")
PACE_CANDIDATES = ("pace", "avg pace", "average pace")
HEART_RATE_CANDIDATES = ("heart rate", "hr", "avg hr", "avghr")
MAX_HEART_RATE_CANDIDATES = ("max heart rate", "max hr", "maxhr")
ELEVATION_CANDIDATES = ("elevation", "elev", "elevation gain")
CALORIES_CANDIDATES = ("calories", "cal", "kcal")

_MILE_TOKEN = re.compile(r"\bmi\b")
_SNIFF_BYTES = 4096
_DELIMITERS = ",;\t|"


@dataclass
class ColumnMap:
    date: Optional[str] = None
    distance: Optional[str] = None
    duration: Optional[str] = None
    pace: Optional[str] = None
    avg_heart_rate: Optional[str] = None
    max_heart_rate: Optional[str] = None
    elevation: Optional[str] = None
    calories: Optional[str] = None
    distance_in_miles: bool = False


def resolve_column(headers: Sequence[str], candidates: Sequence[str]) -> Optional[str]:
    lowered = [h.lower() for h in headers]
    for name in candidates:
        for header, low in zip(headers, lowered):
            if name in low:
                return header
    return None


def resolve_columns(headers: Sequence[str]) -> ColumnMap:
    headers = [h for h in headers if h is not None]
    columns = ColumnMap(
        date=resolve_column(headers, DATE_CANDIDATES),
        distance=resolve_column(headers, DISTANCE_CANDIDATES),
        duration=resolve_column(headers, DURATION_CANDIDATES),
        pace=resolve_column(headers, PACE_CANDIDATES),
        avg_heart_rate=resolve_column(headers, HEART_RATE_CANDIDATES),
        max_heart_rate=resolve_column(headers, MAX_HEART_RATE_CANDIDATES),
        elevation=resolve_column(headers, ELEVATION_CANDIDATES),
        calories=resolve_column(headers, CALORIES_CANDIDATES),
    )
    # Unit comes from header names, never from value magnitudes.
    columns.distance_in_miles = any("mile" in h.lower() for h in headers) or bool(
        columns.distance and _MILE_TOKEN.search(columns.distance.lower())
    )
    return columns


def parse_duration_minutes(value) -> Optional[float]:
    """Minutes from "42", "5:30" (MM:SS) or "1:30:00" (H:MM:SS).

    Other colon counts fall back to the leading number of the whole string,
    so "1:02:03:04" reads as 1.0.
    """
    if value is None:
        return None
    text = str(value).strip()
    if ":" not in text:
        return parse_number(text)
    parts = [parse_number(p) for p in text.split(":")]
    if len(parts) in (2, 3) and any(p is None for p in parts):
        return None
    if len(parts) == 3:
        return parts[0] * 60 + parts[1] + parts[2] / 60
    if len(parts) == 2:
        return parts[0] + parts[1] / 60
    return parse_number(text)


def _blank(value) -> bool:
    return value is None or str(value).strip() == ""


def _optional(row: Dict[str, str], column: Optional[str], convert: Callable):
    if column is None or _blank(row.get(column)):
        return None
    value = convert(row[column])
    # Zero, negative and NaN values carry no information in these columns.
    if value is None or value != value or value <= 0:
        return None
    return value


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def _row_to_run(row: Dict[str, str], columns: ColumnMap, line_no: int) -> Optional[NormalizedRun]:
    date_raw = row.get(columns.date) if columns.date else None
    distance_raw = row.get(columns.distance) if columns.distance else None
    duration_raw = row.get(columns.duration) if columns.duration else None
    if _blank(date_raw) or _blank(distance_raw) or _blank(duration_raw):
        return None

    distance_km = parse_number(distance_raw)
    if distance_km is not None and columns.distance_in_miles:
        distance_km = mi_to_km(distance_km)
    duration_min = parse_duration_minutes(duration_raw)
    if not (_positive(distance_km) and _positive(duration_min)):
        return None

    try:
        date = to_iso_utc(dateparser.parse(str(date_raw).strip()))
    except (ValueError, OverflowError):
        logger.warning("line %d: skipping row with unreadable date %r", line_no, date_raw)
        return None

    pace = _optional(row, columns.pace, parse_duration_minutes)
    if not _positive(pace):
        pace = compute_pace(distance_km, duration_min)

    return NormalizedRun(
        date=date,
        distance_km=distance_km,
        duration_min=duration_min,
        pace_min_per_km=pace,
        source=Source.CSV,
        avg_heart_rate=_optional(row, columns.avg_heart_rate, parse_integer),
        max_heart_rate=_optional(row, columns.max_heart_rate, parse_integer),
        elevation_gain_m=_optional(row, columns.elevation, parse_number),
        calories=_optional(row, columns.calories, parse_integer),
    )


def _dialect(sample: str):
    header = sample.split("\n", 1)[0]
    if "," in header:
        return csv.excel
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS)
    except csv.Error:
        return csv.excel


def parse_csv(content: str) -> List[NormalizedRun]:
    content = content.lstrip("\ufeff")
    reader = csv.DictReader(io.StringIO(content), dialect=_dialect(content[:_SNIFF_BYTES]))
    try:
        headers = reader.fieldnames or []
        columns = resolve_columns(headers)
        logger.debug("csv columns resolved: %s", columns)
        runs = []
        skipped = 0
        for row in reader:
            run = _row_to_run(row, columns, reader.line_num)
            if run is None:
                skipped += 1
                continue
            runs.append(run)
    except csv.Error as exc:
        raise InvalidFileError("csv", str(exc)) from exc
    if skipped:
        logger.info("skipped %d csv rows without date, distance or duration", skipped)
    return runs


def parse_csv_path(path: str | Path) -> List[NormalizedRun]:
    # Same decoding as in-memory uploads, so cp1252 spreadsheet exports still load.
    with open(path, "r", encoding="utf-8-sig", errors="replace", newline="") as fh:
        return parse_csv(fh.read())
