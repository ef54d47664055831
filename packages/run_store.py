import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from packages import db

logger = logging.getLogger("runlog.store")

RUN_COLUMNS = (
    "date",
    "distance_km",
    "duration_min",
    "pace_min_per_km",
    "avg_heart_rate",
    "max_heart_rate",
    "elevation_gain_m",
    "calories",
    "notes",
    "gpx_data",
    "source",
    "created_at",
    "step_count",
    "avg_running_power",
    "avg_ground_contact_time",
    "avg_running_speed",
    "avg_vertical_oscillation",
    "avg_stride_length",
    "workout_name",
    "indoor_workout",
    "source_name",
    "splits",
    "raw_data",
)


class StorageError(RuntimeError):
    pass


def dict_rows(cursor) -> Iterable[Dict[str, Any]]:
    cols = [c[0] for c in cursor.description]
    for row in cursor.fetchall():
        yield {cols[i]: row[i] for i in range(len(cols))}


class RunStore:
    """Persistence for runs over one open connection.

    Every insert is committed on its own, so runs stored before a failure
    in the same import stay stored.
    """

    def __init__(self, conn: db.DBConnection):
        self._conn = conn

    def insert(self, run) -> int:
        record = dict(run.to_record())
        record["created_at"] = datetime.now(timezone.utc).isoformat()
        values = [record.get(col) for col in RUN_COLUMNS]
        placeholders = ", ".join("?" for _ in RUN_COLUMNS)
        sql = f"INSERT INTO runs ({', '.join(RUN_COLUMNS)}) VALUES ({placeholders})"
        try:
            if self._conn.postgres:
                cur = self._conn.execute(sql + " RETURNING id", values)
                run_id = cur.fetchone()[0]
            else:
                cur = self._conn.execute(sql, values)
                run_id = cur.lastrowid
            self._conn.commit()
        except db.integrity_errors() as exc:
            self._conn.rollback()
            raise StorageError(f"run {run.date} violates a uniqueness constraint: {exc}") from exc
        except db.database_errors() as exc:
            self._conn.rollback()
            raise StorageError(f"could not store run {run.date}: {exc}") from exc
        return run_id

    def exists(self, date: str, distance: float, duration: float) -> bool:
        row = self._conn.execute(
            "SELECT id FROM runs WHERE date = ? AND distance_km = ? AND duration_min = ?",
            (date, distance, duration),
        ).fetchone()
        return row is not None

    def list_runs(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        cur = self._conn.execute(
            "SELECT * FROM runs ORDER BY date DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return list(dict_rows(cur))

    def all_runs(self) -> List[Dict[str, Any]]:
        cur = self._conn.execute("SELECT * FROM runs ORDER BY date DESC, id DESC")
        return list(dict_rows(cur))

    def get_run(self, run_id: int) -> Optional[Dict[str, Any]]:
        cur = self._conn.execute("SELECT * FROM runs WHERE id = ?", (run_id,))
        rows = list(dict_rows(cur))
        return rows[0] if rows else None

    def delete_run(self, run_id: int) -> bool:
        cur = self._conn.execute("DELETE FROM runs WHERE id = ?", (run_id,))
        self._conn.commit()
        deleted = cur.rowcount > 0
        if deleted:
            logger.info("deleted run id=%s", run_id)
        return deleted

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM runs").fetchone()[0]
