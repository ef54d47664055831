"""One run summary per GPX track."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import gpxpy
import gpxpy.gpx

from . import geodesic
from .errors import InvalidFileError
from .models import NormalizedRun, Source, TrackPoint, compute_pace, to_iso_utc

logger = logging.getLogger("runlog.ingest.gpx")


def _track_points(track: gpxpy.gpx.GPXTrack) -> List[TrackPoint]:
    points = []
    for segment in track.segments:
        for p in segment.points:
            points.append(
                TrackPoint(
                    lat=p.latitude,
                    lon=p.longitude,
                    ele=p.elevation,
                    time=to_iso_utc(p.time) if p.time else None,
                )
            )
    return points


def summarize_track(points: List[TrackPoint]) -> Optional[NormalizedRun]:
    """Build a run from ordered points, or None without a start, end or distance."""
    timed = [p.time for p in points if p.time]
    if not timed:
        return None
    totals = geodesic.accumulate(points)
    if totals.skipped_steps:
        logger.warning("ignored %d track steps with invalid coordinates", totals.skipped_steps)
    if not totals.distance_km > 0:
        return None

    start, end = timed[0], timed[-1]
    start_dt = _parse_iso(start)
    end_dt = _parse_iso(end)
    duration_min = (end_dt - start_dt).total_seconds() / 60
    if not duration_min > 0:
        return None

    return NormalizedRun(
        date=start,
        distance_km=totals.distance_km,
        duration_min=duration_min,
        pace_min_per_km=compute_pace(totals.distance_km, duration_min),
        source=Source.GPX,
        elevation_gain_m=totals.elevation_gain_m if totals.elevation_gain_m > 0 else None,
        track=tuple(points),
    )


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_gpx(content: str) -> List[NormalizedRun]:
    try:
        gpx = gpxpy.parse(content)
    except gpxpy.gpx.GPXException as exc:
        raise InvalidFileError("gpx", str(exc)) from exc

    runs = []
    for index, track in enumerate(gpx.tracks):
        points = _track_points(track)
        run = summarize_track(points)
        if run is None:
            logger.info("track %d (%d points) has no usable time span or distance", index, len(points))
            continue
        runs.append(run)
    return runs


def parse_gpx_path(path: str | Path) -> List[NormalizedRun]:
    with open(path, "r", encoding="utf-8-sig", errors="replace") as fh:
        return parse_gpx(fh.read())
