"""Detect, parse, de-duplicate and store runs from one uploaded file."""
from __future__ import annotations

import logging
import uuid
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, Optional, Protocol

from packages.config import DETECT_SCAN_LINES
from packages.metrics import inc, timed
from packages.request_context import ingest_context

from . import apple_health, csv_import, detect, gpx_import
from .errors import IngestError, InvalidFileError, UnsupportedFormatError
from .models import FileFormat, ImportSummary, NormalizedRun

logger = logging.getLogger("runlog.ingest")


class RunSink(Protocol):
    def exists(self, date: str, distance: float, duration: float) -> bool: ...

    def insert(self, run: NormalizedRun) -> int: ...


def parse_content(filename: str, content: str) -> tuple[FileFormat, list[NormalizedRun]]:
    """Parse a file held in memory. Apple Health exports use tree mode."""
    file_format = detect.detect_format(filename, content)
    if file_format == FileFormat.APPLE_HEALTH:
        try:
            runs = apple_health.parse_tree(content)
        except ET.ParseError as exc:
            raise InvalidFileError(file_format.value, str(exc)) from exc
    elif file_format == FileFormat.GPX:
        runs = gpx_import.parse_gpx(content)
    else:
        runs = csv_import.parse_csv(content)
    return file_format, runs


def parse_path(
    filename: str, path: str | Path, scan_lines: int = DETECT_SCAN_LINES
) -> tuple[FileFormat, Iterable[NormalizedRun]]:
    """Parse a file on disk. Apple Health exports are streamed line by line.

    Detection and parsing open the file separately, so the sniffed lines are
    still seen by the parser.
    """
    file_format = detect.detect_format_path(filename, path, scan_lines)
    if file_format == FileFormat.APPLE_HEALTH:
        return file_format, apple_health.parse_path(path)
    if file_format == FileFormat.GPX:
        return file_format, gpx_import.parse_gpx_path(path)
    return file_format, csv_import.parse_csv_path(path)


class IngestionCoordinator:
    def __init__(self, store: RunSink, scan_lines: int = DETECT_SCAN_LINES):
        self.store = store
        self.scan_lines = scan_lines

    def ingest(
        self,
        filename: str,
        content: Optional[str] = None,
        path: Optional[str | Path] = None,
    ) -> ImportSummary:
        if (content is None) == (path is None):
            raise ValueError("pass exactly one of content or path")

        inc("ingest_requests_total")
        with ingest_context(uuid.uuid4().hex):
            try:
                with timed("ingest_duration_seconds"):
                    if content is not None:
                        file_format, runs = parse_content(filename, content)
                    else:
                        file_format, runs = parse_path(filename, path, self.scan_lines)
                    summary = self._store_all(runs)
            except UnsupportedFormatError as exc:
                inc('ingest_failures_total{reason="unsupported_format"}')
                logger.info("rejected %s: %s", filename, exc)
                raise
            except IngestError as exc:
                inc('ingest_failures_total{reason="invalid_file"}')
                logger.warning("could not read %s: %s", filename, exc)
                raise
            except Exception:
                inc('ingest_failures_total{reason="error"}')
                logger.exception("ingest of %s failed", filename)
                raise

            summary.format = file_format.value
            inc("ingest_runs_imported_total", summary.imported)
            inc("ingest_runs_skipped_total", summary.skipped)
            logger.info(
                "ingested %s format=%s imported=%d skipped=%d total=%d",
                filename,
                summary.format,
                summary.imported,
                summary.skipped,
                summary.total,
            )
            return summary

    def _store_all(self, runs: Iterable[NormalizedRun]) -> ImportSummary:
        summary = ImportSummary()
        # Streamed runs hold the export file open until the generator is closed.
        close = getattr(runs, "close", None)
        try:
            for run in runs:
                summary.total += 1
                if self.store.exists(*run.dedup_key()):
                    summary.skipped += 1
                    continue
                self.store.insert(run)
                summary.imported += 1
        finally:
            if close is not None:
                close()
        return summary
