from typing import Iterator

from fastapi import HTTPException, status

from packages import db
from packages.run_store import RunStore


def get_store() -> Iterator[RunStore]:
    if not db.db_exists():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not initialized. Run scripts/init_db.py",
        )
    with db.connect() as conn:
        db.configure_connection(conn)
        yield RunStore(conn)
