import sqlite3
from pathlib import Path
from typing import Iterable, Optional

import packages.config as config

try:  # Optional dependency for Postgres
    import psycopg2
except ImportError:  # pragma: no cover - optional in SQLite-only envs
    psycopg2 = None

ROOT = Path(__file__).resolve().parents[1]


def is_postgres() -> bool:
    return bool(config.DB_URL) and config.DB_URL.startswith("postgres")


def db_exists() -> bool:
    if is_postgres():
        return True
    return config.DB_PATH.exists()


def integrity_errors() -> tuple:
    """Driver exception classes raised on a UNIQUE constraint violation."""
    errors = [sqlite3.IntegrityError]
    if psycopg2 is not None:
        errors.append(psycopg2.IntegrityError)
    return tuple(errors)


def database_errors() -> tuple:
    """Base driver exception classes for any database failure."""
    errors = [sqlite3.DatabaseError]
    if psycopg2 is not None:
        errors.append(psycopg2.DatabaseError)
    return tuple(errors)


def _adapt_sql(sql: str) -> str:
    if not is_postgres():
        return sql
    return sql.replace("?", "%s")


class DBCursor:
    def __init__(self, cursor, postgres: bool):
        self._cursor = cursor
        self._postgres = postgres

    @property
    def description(self):
        return self._cursor.description

    @property
    def lastrowid(self):
        return self._cursor.lastrowid

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    def execute(self, sql: str, params: Optional[Iterable] = None):
        sql = _adapt_sql(sql) if self._postgres else sql
        if params is None:
            self._cursor.execute(sql)
        else:
            self._cursor.execute(sql, list(params))
        return self

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self):
        return self._cursor.fetchall()

    def __iter__(self):
        return iter(self._cursor)


class DBConnection:
    def __init__(self, conn, postgres: bool):
        self._conn = conn
        self._postgres = postgres

    @property
    def postgres(self) -> bool:
        return self._postgres

    def cursor(self):
        return DBCursor(self._conn.cursor(), self._postgres)

    def execute(self, sql: str, params: Optional[Iterable] = None):
        cur = self.cursor()
        cur.execute(sql, params)
        return cur

    def executescript(self, sql: str) -> None:
        if not self._postgres:
            self._conn.executescript(sql)
            return
        for stmt in _split_sql(sql):
            if stmt:
                self._conn.cursor().execute(stmt)

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type:
            try:
                self.rollback()
            finally:
                self.close()
        else:
            try:
                self.commit()
            finally:
                self.close()


def connect() -> DBConnection:
    if is_postgres():
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is required for Postgres. Add psycopg2-binary.")
        return DBConnection(psycopg2.connect(config.DB_URL), postgres=True)
    # Upload handlers run in FastAPI's threadpool, not the thread that opened the connection.
    return DBConnection(sqlite3.connect(config.DB_PATH, check_same_thread=False), postgres=False)


def configure_connection(conn: DBConnection) -> None:
    if is_postgres():
        return
    try:
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
    except sqlite3.OperationalError:
        return


def migrations_dir() -> Path:
    if is_postgres():
        return ROOT / "database" / "migrations_pg"
    return ROOT / "database" / "migrations"


def schema_path() -> Path:
    if is_postgres():
        return ROOT / "database" / "schemas" / "schema_pg.sql"
    return ROOT / "database" / "schemas" / "schema.sql"


def _split_sql(sql: str) -> list[str]:
    parts = []
    buf = []
    for line in sql.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        buf.append(line)
        if stripped.endswith(";"):
            parts.append("\n".join(buf).strip().rstrip(";"))
            buf = []
    if buf:
        parts.append("\n".join(buf).strip().rstrip(";"))
    return parts
