from apps.api.schemas import ImportResponse, RunDetail, RunsResponse


def test_import_response_serializes():
    resp = ImportResponse(imported=2, skipped=1, total=3, format="csv")
    assert resp.model_dump()["total"] == 3


def test_run_detail_defaults():
    detail = RunDetail(id=1, date="2024-03-04T07:00:00.000Z", distance_km=10, duration_min=50, pace_min_per_km=5, source="csv")
    assert detail.splits == []
    assert detail.gpx_data == []
    assert detail.raw_data is None


def test_runs_response_serializes():
    payload = RunsResponse(limit=50, offset=0, total=0)
    assert payload.runs == []
