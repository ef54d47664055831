import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

import packages.config as config
from packages.run_store import RunStore
from services.ingestion.coordinator import IngestionCoordinator
from ..deps import get_store
from ..schemas import ImportResponse


router = APIRouter()

logger = logging.getLogger("runlog.api")


def _upload_size(upload: UploadFile) -> int:
    fh = upload.file
    fh.seek(0, os.SEEK_END)
    size = fh.tell()
    fh.seek(0)
    return size


@contextmanager
def spooled_copy(upload: UploadFile) -> Iterator[Path]:
    """Copy an upload to a temporary file that is removed however ingest ends."""
    config.UPLOAD_TMP_DIR.mkdir(parents=True, exist_ok=True)
    suffix = Path(upload.filename or "").suffix
    with tempfile.NamedTemporaryFile(
        "wb", dir=config.UPLOAD_TMP_DIR, prefix="runlog-upload-", suffix=suffix, delete=False
    ) as tmp:
        shutil.copyfileobj(upload.file, tmp)
        path = Path(tmp.name)
    try:
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


@router.post("/upload", response_model=ImportResponse)
def upload(file: Optional[UploadFile] = File(None), store: RunStore = Depends(get_store)):
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    size = _upload_size(file)
    if size == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    if size > config.UPLOAD_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {config.UPLOAD_MAX_BYTES} bytes",
        )

    filename = file.filename or ""
    coordinator = IngestionCoordinator(store, scan_lines=config.DETECT_SCAN_LINES)
    if size <= config.STREAMING_THRESHOLD_BYTES:
        content = file.file.read().decode("utf-8-sig", errors="replace")
        summary = coordinator.ingest(filename, content=content)
    else:
        logger.info("spooling %s (%d bytes) to disk for streaming ingest", filename, size)
        with spooled_copy(file) as path:
            summary = coordinator.ingest(filename, path=path)
    return summary.as_dict()
