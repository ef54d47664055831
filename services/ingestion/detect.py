"""Pick a parser from the filename extension, sniffing content for .xml."""
from __future__ import annotations

import logging
from itertools import islice
from pathlib import Path
from typing import Iterable, Optional

from .errors import UnsupportedFormatError
from .models import FileFormat

logger = logging.getLogger("runlog.ingest")

HEALTH_MARKERS = ("<HealthData", "Workout")
GPX_MARKERS = ("<gpx", "<trk")

DIRECT_EXTENSIONS = {
    "gpx": FileFormat.GPX,
    "csv": FileFormat.CSV,
}


def file_extension(filename: str) -> str:
    return (filename or "").lower().rsplit(".", 1)[-1]


def _classify(text: str) -> Optional[FileFormat]:
    # Health markers are checked first: a GPX route embedded in a health export
    # must not win.
    if any(marker in text for marker in HEALTH_MARKERS):
        return FileFormat.APPLE_HEALTH
    if any(marker in text for marker in GPX_MARKERS):
        return FileFormat.GPX
    return None


def sniff_text(content: str) -> Optional[FileFormat]:
    return _classify(content)


def sniff_lines(lines: Iterable[str], limit: int = 50) -> Optional[FileFormat]:
    for line in islice(lines, limit):
        found = _classify(line)
        if found is not None:
            return found
    return None


def detect_format(filename: str, content: str) -> FileFormat:
    ext = file_extension(filename)
    if ext in DIRECT_EXTENSIONS:
        return DIRECT_EXTENSIONS[ext]
    if ext == "xml":
        found = sniff_text(content)
        if found is not None:
            return found
        logger.info("xml content of %s matched no known markers", filename)
    raise UnsupportedFormatError(ext)


def detect_format_path(filename: str, path: str | Path, scan_lines: int = 50) -> FileFormat:
    """Like detect_format, but reads at most scan_lines lines of the file.

    The file is closed before returning; the parser opens it again.
    """
    ext = file_extension(filename)
    if ext in DIRECT_EXTENSIONS:
        return DIRECT_EXTENSIONS[ext]
    if ext == "xml":
        with open(path, "r", encoding="utf-8", errors="replace") as fh:
            found = sniff_lines(fh, scan_lines)
        if found is not None:
            return found
        logger.info("first %d lines of %s matched no known markers", scan_lines, filename)
    raise UnsupportedFormatError(ext)
