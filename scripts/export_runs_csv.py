import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from packages import db
from packages.run_store import RunStore
from services.export.runs_csv import runs_to_csv
from services.ingestion.units import IMPERIAL, METRIC


def main() -> None:
    p = argparse.ArgumentParser(description="Export stored runs to a CSV file.")
    p.add_argument("--out", default=None, help="Defaults to ./data/runs_export_<timestamp>.csv")
    p.add_argument("--units", choices=[METRIC, IMPERIAL], default=METRIC)
    args = p.parse_args()

    if not db.db_exists():
        raise SystemExit("DB not initialized. Run scripts/init_db.py")

    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    out_path = Path(args.out) if args.out else ROOT / "data" / f"runs_export_{ts}.csv"
    out_path = out_path.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    with db.connect() as conn:
        runs = RunStore(conn).all_runs()
    out_path.write_text(runs_to_csv(runs, unit_system=args.units))
    print(f"Exported {len(runs)} runs to {out_path}")


if __name__ == "__main__":
    main()
