"""Running workouts from an Apple Health export.

Two front ends feed one builder:

* tree mode parses the whole document with ElementTree (uploads that fit in
  memory);
* streaming mode reads the file line by line, cuts out one ``<Workout>``
  element at a time and pulls attributes out of the raw text with regexes.

Both reduce a workout to plain attribute dictionaries (``WorkoutSource``), so
the same document yields the same runs whichever mode reads it.
"""
from __future__ import annotations

import html
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from dateutil import parser as dateparser

from .errors import MalformedRecordError
from .models import NormalizedRun, Source, Split, compute_pace, to_iso_utc, utc_now_iso
from .units import mi_to_km, parse_integer, parse_number, round_half_up

logger = logging.getLogger("runlog.ingest.apple_health")

RUNNING_MARKER = "Running"

DISTANCE = "HKQuantityTypeIdentifierDistanceWalkingRunning"
ACTIVE_ENERGY = "HKQuantityTypeIdentifierActiveEnergyBurned"
HEART_RATE = "HKQuantityTypeIdentifierHeartRate"
STEP_COUNT = "HKQuantityTypeIdentifierStepCount"
RUNNING_POWER = "HKQuantityTypeIdentifierRunningPower"
GROUND_CONTACT_TIME = "HKQuantityTypeIdentifierRunningGroundContactTime"
RUNNING_SPEED = "HKQuantityTypeIdentifierRunningSpeed"
VERTICAL_OSCILLATION = "HKQuantityTypeIdentifierRunningVerticalOscillation"
STRIDE_LENGTH = "HKQuantityTypeIdentifierRunningStrideLength"

BRAND_NAME_KEY = "HKWorkoutBrandName"
INDOOR_KEY = "HKIndoorWorkout"
LAP_EVENT = "HKWorkoutEventTypeLap"

RAW_WORKOUT_ATTRS = (
    "workoutActivityType",
    "sourceName",
    "sourceVersion",
    "device",
    "creationDate",
    "startDate",
    "endDate",
)


@dataclass
class WorkoutSource:
    attrs: Dict[str, str]
    statistics: List[Dict[str, str]] = field(default_factory=list)
    metadata: List[Dict[str, str]] = field(default_factory=list)
    events: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class _Metrics:
    distance_km: float = 0.0
    calories: Optional[int] = None
    avg_heart_rate: Optional[int] = None
    max_heart_rate: Optional[int] = None
    step_count: Optional[int] = None
    avg_running_power: Optional[float] = None
    avg_ground_contact_time: Optional[float] = None
    avg_running_speed: Optional[float] = None
    avg_vertical_oscillation: Optional[float] = None
    avg_stride_length: Optional[float] = None


def is_running(attrs: Dict[str, str]) -> bool:
    return RUNNING_MARKER in (attrs.get("workoutActivityType") or "")


def _rounded(value: Optional[str]) -> Optional[int]:
    number = parse_number(value) if value else None
    if number is None or number != number:
        return None
    return round_half_up(number)


def _average(stat: Dict[str, str]) -> Optional[float]:
    value = stat.get("average")
    return parse_number(value) if value else None


def _apply_statistic(metrics: _Metrics, stat: Dict[str, str]) -> None:
    kind = stat.get("type")
    if kind == DISTANCE:
        distance = parse_number(stat.get("sum") or "0")
        if distance is None:
            raise MalformedRecordError(f"bad distance sum {stat.get('sum')!r}")
        unit = stat.get("unit") or "km"
        metrics.distance_km = mi_to_km(distance) if unit == "mi" else distance
    elif kind == ACTIVE_ENERGY:
        metrics.calories = parse_integer(stat["sum"]) if stat.get("sum") else None
    elif kind == HEART_RATE:
        metrics.avg_heart_rate = _rounded(stat.get("average"))
        metrics.max_heart_rate = _rounded(stat.get("maximum"))
    elif kind == STEP_COUNT:
        metrics.step_count = _rounded(stat.get("sum"))
    elif kind == RUNNING_POWER:
        metrics.avg_running_power = _average(stat)
    elif kind == GROUND_CONTACT_TIME:
        metrics.avg_ground_contact_time = _average(stat)
    elif kind == RUNNING_SPEED:
        speed = _average(stat)
        unit = stat.get("unit") or "km/hr"
        metrics.avg_running_speed = mi_to_km(speed) if unit == "mi/hr" and speed else speed
    elif kind == VERTICAL_OSCILLATION:
        metrics.avg_vertical_oscillation = _average(stat)
    elif kind == STRIDE_LENGTH:
        metrics.avg_stride_length = _average(stat)


def _duration_minutes(attrs: Dict[str, str]) -> float:
    raw = attrs.get("duration") or "0"
    value = parse_number(raw)
    if value is None:
        raise MalformedRecordError(f"bad duration {raw!r}")
    if (attrs.get("durationUnit") or "min") == "hr":
        return value * 60
    return value


def _start_date(raw: Optional[str]) -> str:
    if not raw:
        return utc_now_iso()
    try:
        return to_iso_utc(dateparser.parse(raw))
    except (ValueError, OverflowError) as exc:
        raise MalformedRecordError(f"bad startDate {raw!r}") from exc


def _splits(events: Iterable[Dict[str, str]]) -> List[Split]:
    splits = []
    for event in events:
        if event.get("type") != LAP_EVENT or not event.get("duration"):
            continue
        duration = parse_number(event["duration"])
        if duration is None:
            raise MalformedRecordError(f"bad lap duration {event['duration']!r}")
        splits.append(Split(duration, event.get("durationUnit") or "min", event.get("date")))
    return splits


def build_run(workout: WorkoutSource) -> Optional[NormalizedRun]:
    """Turn one workout into a run, or None when it is not a usable run.

    Raises MalformedRecordError when a value that matters cannot be read.
    """
    attrs = workout.attrs
    if not is_running(attrs):
        return None

    duration_min = _duration_minutes(attrs)
    metrics = _Metrics()
    for stat in workout.statistics:
        _apply_statistic(metrics, stat)

    workout_name = None
    indoor_workout = None
    for entry in workout.metadata:
        key, value = entry.get("key"), entry.get("value")
        if not key or not value:
            continue
        if key == BRAND_NAME_KEY:
            workout_name = value
        elif key == INDOOR_KEY:
            indoor_workout = parse_integer(value)

    splits = _splits(workout.events)

    if not (metrics.distance_km > 0 and duration_min > 0):
        return None

    raw_data = {key: attrs.get(key) for key in RAW_WORKOUT_ATTRS}
    raw_data.update(
        statistics=workout.statistics,
        metadata=workout.metadata,
        events=workout.events,
    )

    return NormalizedRun(
        date=_start_date(attrs.get("startDate")),
        distance_km=metrics.distance_km,
        duration_min=duration_min,
        pace_min_per_km=compute_pace(metrics.distance_km, duration_min),
        source=Source.APPLE_HEALTH,
        avg_heart_rate=metrics.avg_heart_rate,
        max_heart_rate=metrics.max_heart_rate,
        calories=metrics.calories,
        step_count=metrics.step_count,
        avg_running_power=metrics.avg_running_power,
        avg_ground_contact_time=metrics.avg_ground_contact_time,
        avg_running_speed=metrics.avg_running_speed,
        avg_vertical_oscillation=metrics.avg_vertical_oscillation,
        avg_stride_length=metrics.avg_stride_length,
        workout_name=workout_name,
        indoor_workout=indoor_workout,
        source_name=attrs.get("sourceName"),
        splits=tuple(splits),
        raw_data=raw_data,
    )


def _build_isolated(workout: WorkoutSource) -> Optional[NormalizedRun]:
    try:
        return build_run(workout)
    except (MalformedRecordError, ValueError, TypeError, ArithmeticError) as exc:
        logger.warning(
            "skipping malformed workout startDate=%s: %s",
            workout.attrs.get("startDate", "?"),
            exc,
        )
        return None


# --- tree mode -------------------------------------------------------------


def workout_from_element(element: ET.Element) -> WorkoutSource:
    return WorkoutSource(
        attrs=dict(element.attrib),
        statistics=[dict(e.attrib) for e in element.iter("WorkoutStatistics")],
        metadata=[dict(e.attrib) for e in element.iter("MetadataEntry")],
        events=[dict(e.attrib) for e in element.iter("WorkoutEvent")],
    )


def parse_tree(content: str | bytes) -> List[NormalizedRun]:
    """Parse a whole export held in memory. Raises ET.ParseError on bad XML."""
    root = ET.fromstring(content)
    runs = []
    for element in root.iter("Workout"):
        run = _build_isolated(workout_from_element(element))
        if run is not None:
            runs.append(run)
    logger.info("tree parse produced %d runs", len(runs))
    return runs


# --- streaming mode --------------------------------------------------------

_OPEN_TAG = re.compile(r"<Workout(?=[\s>/])")
_CLOSE_TAG = "</Workout>"
# Attribute values may contain an unescaped ">".
_TAG_BODY = r"""((?:[^>"']|"[^"]*"|'[^']*')*)"""
_WORKOUT_TAG = re.compile(r"<Workout\b" + _TAG_BODY + ">")
_STATISTICS_TAG = re.compile(r"<WorkoutStatistics\b" + _TAG_BODY + ">")
_METADATA_TAG = re.compile(r"<MetadataEntry\b" + _TAG_BODY + ">")
_EVENT_TAG = re.compile(r"<WorkoutEvent\b" + _TAG_BODY + ">")
_ATTR = re.compile(r"""([\w:.-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")


def _attributes(tag_body: str) -> Dict[str, str]:
    return {
        name: html.unescape(dq if dq or not sq else sq)
        for name, dq, sq in _ATTR.findall(tag_body)
    }


def workout_from_text(buffer: str) -> WorkoutSource:
    head = _WORKOUT_TAG.search(buffer)
    if head is None:
        raise MalformedRecordError("buffer has no Workout start tag")
    return WorkoutSource(
        attrs=_attributes(head.group(1)),
        statistics=[_attributes(m.group(1)) for m in _STATISTICS_TAG.finditer(buffer)],
        metadata=[_attributes(m.group(1)) for m in _METADATA_TAG.finditer(buffer)],
        events=[_attributes(m.group(1)) for m in _EVENT_TAG.finditer(buffer)],
    )


class WorkoutBufferScanner:
    """Two-state machine cutting complete ``<Workout>`` elements out of lines.

    ``feed`` returns the buffered element text once its closing tag (or a
    self-closing start tag) has been seen, otherwise None.
    """

    IDLE = "idle"
    IN_WORKOUT = "in_workout"

    def __init__(self):
        self.state = self.IDLE
        self._lines: List[str] = []
        self._head_open = False

    def feed(self, line: str) -> Optional[str]:
        line = line.rstrip("\r\n")
        opening = _OPEN_TAG.search(line)
        if opening:
            if self.state == self.IN_WORKOUT:
                logger.warning("discarding unterminated Workout element (%d lines)", len(self._lines))
            self.state = self.IN_WORKOUT
            line = line[opening.start():]
            self._lines = [line]
            self._head_open = True
        elif self.state == self.IN_WORKOUT:
            self._lines.append(line)
        else:
            return None

        if _CLOSE_TAG in line:
            return self._finish()
        if self._head_open:
            head = _WORKOUT_TAG.match("\n".join(self._lines))
            if head is not None:
                self._head_open = False
                if head.group(1).endswith("/"):
                    return self._finish()
        return None

    def _finish(self) -> str:
        buffer = "\n".join(self._lines)
        self.state = self.IDLE
        self._lines = []
        self._head_open = False
        return buffer

    def scan(self, lines: Iterable[str]) -> Iterator[str]:
        for line in lines:
            buffer = self.feed(line)
            if buffer is not None:
                yield buffer
        if self.state == self.IN_WORKOUT:
            logger.warning("input ended inside a Workout element (%d lines dropped)", len(self._lines))


def parse_lines(lines: Iterable[str]) -> Iterator[NormalizedRun]:
    for buffer in WorkoutBufferScanner().scan(lines):
        try:
            workout = workout_from_text(buffer)
        except MalformedRecordError as exc:
            logger.warning("skipping malformed workout: %s", exc)
            continue
        run = _build_isolated(workout)
        if run is not None:
            yield run


def parse_path(path: str | Path) -> Iterator[NormalizedRun]:
    """Stream runs out of an export on disk without loading it whole."""
    with open(path, "r", encoding="utf-8", errors="replace") as fh:
        yield from parse_lines(fh)
