import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

import packages.config as config
from packages.run_store import RunStore
from services.export.runs_csv import runs_to_csv
from services.ingestion.units import IMPERIAL, METRIC
from ..deps import get_store
from ..schemas import DeleteResponse, RunDetail, RunsResponse


router = APIRouter()

logger = logging.getLogger("runlog.api")

JSON_COLUMNS = ("splits", "raw_data", "gpx_data")


def _decode(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    for col in JSON_COLUMNS:
        raw = out.get(col)
        if not raw:
            out[col] = None if col == "raw_data" else []
            continue
        try:
            out[col] = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("run %s has unreadable %s", out.get("id"), col)
            out[col] = None if col == "raw_data" else []
    return out


@router.get("/runs", response_model=RunsResponse)
def list_runs(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    store: RunStore = Depends(get_store),
):
    limit = min(limit or config.DEFAULT_PAGE_SIZE, config.MAX_PAGE_SIZE)
    return {
        "runs": store.list_runs(limit=limit, offset=offset),
        "limit": limit,
        "offset": offset,
        "total": store.count(),
    }


@router.get("/runs/export.csv")
def export_runs(
    units: str = Query(METRIC, pattern=f"^({METRIC}|{IMPERIAL})$"),
    store: RunStore = Depends(get_store),
):
    body = runs_to_csv(store.all_runs(), unit_system=units)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="runs.csv"'},
    )


@router.get("/runs/{run_id}", response_model=RunDetail)
def get_run(run_id: int, store: RunStore = Depends(get_store)):
    row = store.get_run(run_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return _decode(row)


@router.delete("/runs/{run_id}", response_model=DeleteResponse)
def delete_run(run_id: int, store: RunStore = Depends(get_store)):
    if not store.delete_run(run_id):
        raise HTTPException(status_code=404, detail="Run not found")
    return {"status": "deleted", "id": run_id}
