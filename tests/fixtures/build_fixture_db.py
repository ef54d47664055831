import sqlite3
from pathlib import Path


def apply_schema_and_migrations(conn: sqlite3.Connection, root: Path) -> None:
    schema_path = root / "database" / "schemas" / "schema.sql"
    conn.executescript(schema_path.read_text())

    migrations_dir = root / "database" / "migrations"
    if migrations_dir.exists():
        for path in sorted(migrations_dir.glob("*.sql")):
            sql = path.read_text()
            for statement in sql.split(";"):
                stmt = "\n".join(
                    line for line in statement.splitlines() if not line.strip().startswith("--")
                ).strip()
                if not stmt:
                    continue
                try:
                    conn.execute(stmt)
                except sqlite3.OperationalError as exc:
                    msg = str(exc)
                    if "duplicate column name" in msg or "already exists" in msg:
                        continue
                    raise


def insert_run(conn: sqlite3.Connection, date: str, distance_km: float, duration_min: float, source: str = "manual") -> int:
    cur = conn.execute(
        "INSERT INTO runs(date, distance_km, duration_min, pace_min_per_km, source, created_at) VALUES(?,?,?,?,?,?)",
        (date, distance_km, duration_min, duration_min / distance_km, source, "2024-01-01T00:00:00+00:00"),
    )
    return cur.lastrowid


def build_fixture_db(db_path: Path, with_runs: bool = False) -> None:
    root = Path(__file__).resolve().parents[2]
    if db_path.exists():
        db_path.unlink()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        apply_schema_and_migrations(conn, root)
        if with_runs:
            insert_run(conn, "2024-02-01T07:00:00.000Z", 5.0, 27.5)
            insert_run(conn, "2024-02-03T07:00:00.000Z", 10.0, 52.0)
        conn.commit()
