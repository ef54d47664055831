from fastapi import APIRouter

from packages import db
from packages.run_store import RunStore
from ..schemas import HealthResponse


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    if not db.db_exists():
        return {"status": "ok", "db": "missing", "runs": None}
    runs = None
    with db.connect() as conn:
        try:
            runs = RunStore(conn).count()
        except db.database_errors():
            return {"status": "ok", "db": "uninitialized", "runs": None}
    return {"status": "ok", "db": "ok", "runs": runs}
