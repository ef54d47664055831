import importlib
import os
import sqlite3
from pathlib import Path
from tempfile import TemporaryDirectory

from packages import metrics
from packages.db import DBConnection
from packages.run_store import RunStore
from tests.fixtures.build_fixture_db import build_fixture_db
from tests.fixtures.samples import RUNS_CSV
from services.ingestion.coordinator import IngestionCoordinator


def _setup_db():
    tmp = TemporaryDirectory()
    db_path = Path(tmp.name) / "fixture.db"
    build_fixture_db(db_path, with_runs=True)
    os.environ["RUNLOG_DB_PATH"] = str(db_path)
    os.environ["RUNLOG_DB_URL"] = ""

    import packages.config as config
    importlib.reload(config)

    import apps.api.routes.runs as runs
    import apps.api.routes.metrics as metrics_routes
    importlib.reload(runs)
    importlib.reload(metrics_routes)

    store = RunStore(DBConnection(sqlite3.connect(db_path), postgres=False))
    return tmp, store, runs, metrics_routes


def test_fixture_runs_are_listed_newest_first():
    tmp, store, runs, _ = _setup_db()

    payload = runs.list_runs(limit=None, offset=0, store=store)
    assert payload["total"] == 2
    assert payload["limit"] == 50
    assert payload["runs"][0]["date"] == "2024-02-03T07:00:00.000Z"

    tmp.cleanup()


def test_ingest_counters_reach_metrics_endpoint():
    tmp, store, _, metrics_routes = _setup_db()
    metrics.reset()

    IngestionCoordinator(store).ingest("runs.csv", content=RUNS_CSV)
    body = metrics_routes.metrics().body.decode("utf-8")
    assert "ingest_requests_total 1" in body
    assert "ingest_runs_imported_total 2" in body
    assert "ingest_duration_seconds_sum" in body

    tmp.cleanup()


def test_detail_decodes_stored_json():
    tmp, store, runs, _ = _setup_db()

    IngestionCoordinator(store).ingest("runs.csv", content=RUNS_CSV)
    newest = store.list_runs(limit=1)[0]
    detail = runs.get_run(newest["id"], store=store)
    assert detail["splits"] == []
    assert detail["gpx_data"] == []
    assert detail["raw_data"] is None

    tmp.cleanup()
