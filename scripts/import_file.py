"""Import runs from a local Apple Health export, GPX or CSV file."""
import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from packages import db
from packages.logging_utils import setup_logging
from packages.run_store import RunStore
from services.ingestion.coordinator import IngestionCoordinator
from services.ingestion.errors import IngestError


def main():
    parser = argparse.ArgumentParser(description="Import runs from a workout file.")
    parser.add_argument("path")
    parser.add_argument("--name", default=None, help="Filename used for format detection (defaults to PATH)")
    parser.add_argument(
        "--in-memory",
        action="store_true",
        default=False,
        help="Read the whole file first instead of streaming Apple Health exports",
    )
    args = parser.parse_args()

    path = Path(args.path).expanduser().resolve()
    if not path.exists():
        raise SystemExit(f"File not found: {path}")
    if not db.db_exists():
        raise SystemExit("DB not initialized. Run scripts/init_db.py")

    setup_logging()
    filename = args.name or path.name
    with db.connect() as conn:
        db.configure_connection(conn)
        coordinator = IngestionCoordinator(RunStore(conn))
        try:
            if args.in_memory:
                content = path.read_text(encoding="utf-8-sig")
                summary = coordinator.ingest(filename, content=content)
            else:
                summary = coordinator.ingest(filename, path=path)
        except IngestError as exc:
            raise SystemExit(str(exc))
    print(json.dumps(summary.as_dict()))


if __name__ == "__main__":
    main()
