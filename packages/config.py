from pathlib import Path
import os
import tempfile

try:
    from dotenv import load_dotenv
except ImportError:  # pragma: no cover - optional in some environments
    load_dotenv = None

ROOT = Path(__file__).resolve().parents[1]

if load_dotenv:
    load_dotenv(ROOT / ".env")

DB_URL = os.getenv("RUNLOG_DB_URL")
DB_PATH = Path(os.getenv("RUNLOG_DB_PATH", ROOT / "data" / "runlog.db"))
API_HOST = os.getenv("RUNLOG_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("RUNLOG_API_PORT", "8000"))
RUN_MODE = os.getenv("RUN_MODE", "dev").lower()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "RUNLOG_CORS_ORIGINS",
        "http://127.0.0.1:5173,http://localhost:5173",
    ).split(",")
    if origin.strip()
]

# Upload handling
UPLOAD_MAX_BYTES = int(os.getenv("RUNLOG_UPLOAD_MAX_BYTES", str(1024 * 1024 * 1024)))
UPLOAD_TMP_DIR = Path(os.getenv("RUNLOG_UPLOAD_TMP_DIR", tempfile.gettempdir()))
# Uploads larger than this are spooled to disk and parsed line by line.
STREAMING_THRESHOLD_BYTES = int(os.getenv("RUNLOG_STREAMING_THRESHOLD_BYTES", str(10 * 1024 * 1024)))
DETECT_SCAN_LINES = int(os.getenv("RUNLOG_DETECT_SCAN_LINES", "50"))

# Run listing
DEFAULT_PAGE_SIZE = int(os.getenv("RUNLOG_DEFAULT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE = int(os.getenv("RUNLOG_MAX_PAGE_SIZE", "500"))
