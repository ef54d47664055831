import pytest

from packages import metrics
from services.ingestion import apple_health
from services.ingestion.coordinator import IngestionCoordinator
from services.ingestion.errors import InvalidFileError, UnsupportedFormatError
from tests.fixtures.samples import GPX_TRACK, HEALTH_EXPORT, RUNS_CSV


class FakeStore:
    def __init__(self):
        self.rows = {}

    def exists(self, date, distance, duration):
        return (date, distance, duration) in self.rows

    def insert(self, run):
        self.rows[run.dedup_key()] = run
        return len(self.rows)


@pytest.mark.parametrize(
    "filename, content, fmt",
    [("export.xml", HEALTH_EXPORT, "apple_health"), ("ride.gpx", GPX_TRACK, "gpx"), ("runs.csv", RUNS_CSV, "csv")],
)
def test_counts_add_up(filename, content, fmt):
    store = FakeStore()
    summary = IngestionCoordinator(store).ingest(filename, content=content)
    assert summary.format == fmt
    assert summary.total > 0
    assert summary.imported + summary.skipped == summary.total
    assert len(store.rows) == summary.imported


def test_second_import_skips_everything():
    store = FakeStore()
    coordinator = IngestionCoordinator(store)
    first = coordinator.ingest("runs.csv", content=RUNS_CSV)
    second = coordinator.ingest("runs.csv", content=RUNS_CSV)
    assert first.imported == 2
    assert second.imported == 0
    assert second.skipped == second.total == 2


def test_same_run_from_tree_and_stream_is_deduplicated(tmp_path):
    store = FakeStore()
    coordinator = IngestionCoordinator(store)
    coordinator.ingest("export.xml", content=HEALTH_EXPORT)
    path = tmp_path / "export.xml"
    path.write_text(HEALTH_EXPORT)
    summary = coordinator.ingest("export.xml", path=path)
    assert summary.imported == 0
    assert summary.skipped == 2


def test_path_mode_for_every_format(tmp_path):
    store = FakeStore()
    coordinator = IngestionCoordinator(store)
    for name, text in (("export.xml", HEALTH_EXPORT), ("track.gpx", GPX_TRACK), ("log.csv", RUNS_CSV)):
        path = tmp_path / name
        path.write_text(text)
        coordinator.ingest(name, path=path)
    assert len(store.rows) == 5


def test_unsupported_format_is_raised():
    metrics.reset()
    with pytest.raises(UnsupportedFormatError) as err:
        IngestionCoordinator(FakeStore()).ingest("notes.txt", content="hello")
    assert err.value.extension == "txt"
    counters, _ = metrics.snapshot()
    assert counters['ingest_failures_total{reason="unsupported_format"}'] == 1


def test_broken_xml_is_invalid_file():
    with pytest.raises(InvalidFileError):
        IngestionCoordinator(FakeStore()).ingest("export.xml", content="<HealthData><Workout>")


def test_exactly_one_input_required():
    coordinator = IngestionCoordinator(FakeStore())
    with pytest.raises(ValueError):
        coordinator.ingest("runs.csv")
    with pytest.raises(ValueError):
        coordinator.ingest("runs.csv", content=RUNS_CSV, path="runs.csv")


def test_store_failure_keeps_earlier_runs():
    class FailingStore(FakeStore):
        def insert(self, run):
            if self.rows:
                raise RuntimeError("disk full")
            return super().insert(run)

    store = FailingStore()
    with pytest.raises(RuntimeError):
        IngestionCoordinator(store).ingest("runs.csv", content=RUNS_CSV)
    assert len(store.rows) == 1


def test_path_mode_reads_non_utf8_csv(tmp_path):
    path = tmp_path / "log.csv"
    path.write_bytes("Date,Distance,Duration,Notes\n2024-03-04,10,50,Caf\xe9\n".encode("cp1252"))
    summary = IngestionCoordinator(FakeStore()).ingest("log.csv", path=path)
    assert summary.imported == summary.total == 1


def test_streamed_runs_are_closed_when_insert_fails(tmp_path, monkeypatch):
    closed = []

    def fake_parse_path(path):
        try:
            yield from apple_health.parse_tree(HEALTH_EXPORT)
        finally:
            closed.append(path)

    monkeypatch.setattr(apple_health, "parse_path", fake_parse_path)

    class FailingStore(FakeStore):
        def insert(self, run):
            raise RuntimeError("disk full")

    path = tmp_path / "export.xml"
    path.write_text(HEALTH_EXPORT)
    with pytest.raises(RuntimeError):
        IngestionCoordinator(FailingStore()).ingest("export.xml", path=path)
    assert closed == [path]
