import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from packages import db


def ensure_migrations_table(conn):
    if db.is_postgres():
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
              id SERIAL PRIMARY KEY,
              filename TEXT UNIQUE NOT NULL,
              applied_at TIMESTAMPTZ DEFAULT NOW()
            )
            """
        )
        return
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          id INTEGER PRIMARY KEY,
          filename TEXT UNIQUE NOT NULL,
          applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )


def applied_migrations(conn) -> set[str]:
    ensure_migrations_table(conn)
    rows = conn.execute("SELECT filename FROM schema_migrations").fetchall()
    return {r[0] for r in rows}


def apply_migration(conn, path: Path) -> None:
    conn.executescript(path.read_text())
    conn.execute(
        "INSERT INTO schema_migrations(filename) VALUES(?) ON CONFLICT(filename) DO NOTHING",
        (path.name,),
    )
    conn.commit()


def pending_migrations(conn, migrations_dir: Path) -> list[Path]:
    already = applied_migrations(conn)
    return sorted(p for p in migrations_dir.glob("*.sql") if p.name not in already)


def migrate(conn, migrations_dir: Path | None = None) -> list[str]:
    migrations_dir = migrations_dir or db.migrations_dir()
    if not migrations_dir.exists():
        return []
    applied = []
    for path in pending_migrations(conn, migrations_dir):
        apply_migration(conn, path)
        applied.append(path.name)
    return applied


def main():
    if not db.db_exists():
        raise SystemExit("DB not initialized. Run scripts/init_db.py")
    with db.connect() as conn:
        db.configure_connection(conn)
        applied = migrate(conn)
        if not applied:
            print("No pending migrations.")
            return
        for name in applied:
            print(f"Applied {name}")
        if not db.is_postgres():
            integrity = conn.execute("PRAGMA integrity_check").fetchone()
            if integrity and integrity[0] != "ok":
                raise SystemExit(f"Integrity check failed: {integrity[0]}")


if __name__ == "__main__":
    main()
