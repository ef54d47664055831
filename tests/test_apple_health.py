import pytest

from services.ingestion import apple_health
from services.ingestion.apple_health import WorkoutBufferScanner, WorkoutSource, build_run
from services.ingestion.models import Source
from services.ingestion.units import MILES_TO_KM
from tests.fixtures.samples import HEALTH_EXPORT, HEALTH_EXPORT_WITH_ANGLE_BRACKET, HEALTH_EXPORT_WITH_BAD_WORKOUT


def test_tree_mode_reads_running_workouts_only():
    runs = apple_health.parse_tree(HEALTH_EXPORT)
    assert len(runs) == 2
    assert all(r.source == Source.APPLE_HEALTH for r in runs)
    assert all("Running" in r.raw_data["workoutActivityType"] for r in runs)


def test_first_workout_metrics():
    run = apple_health.parse_tree(HEALTH_EXPORT)[0]
    assert run.date == "2024-03-01T11:30:00.000Z"
    assert run.distance_km == 5.0
    assert run.duration_min == 30.0
    assert run.pace_min_per_km == 6.0
    assert run.avg_heart_rate == 151
    assert run.max_heart_rate == 171
    assert run.calories == 345
    assert run.step_count == 4821
    assert run.avg_running_power == pytest.approx(245.2)
    assert run.workout_name == "Morning Run"
    assert run.indoor_workout == 0
    assert run.source_name == "Apple Watch"
    assert len(run.splits) == 1
    assert run.splits[0].duration == 5.5
    assert run.splits[0].duration_unit == "min"
    assert len(run.raw_data["statistics"]) == 5


def test_hours_and_miles_are_converted():
    run = apple_health.parse_tree(HEALTH_EXPORT)[1]
    assert run.duration_min == 60.0
    assert run.distance_km == pytest.approx(6.2 * MILES_TO_KM)
    assert run.avg_heart_rate is None
    assert run.splits == ()


@pytest.mark.parametrize("document", [HEALTH_EXPORT, HEALTH_EXPORT_WITH_ANGLE_BRACKET])
def test_streaming_matches_tree_mode(document):
    tree = apple_health.parse_tree(document)
    streamed = list(apple_health.parse_lines(document.splitlines(keepends=True)))
    assert tree
    assert streamed == tree


def test_streaming_from_path(tmp_path):
    path = tmp_path / "export.xml"
    path.write_text(HEALTH_EXPORT)
    runs = list(apple_health.parse_path(path))
    assert [r.distance_km for r in runs] == [r.distance_km for r in apple_health.parse_tree(HEALTH_EXPORT)]


def test_malformed_workout_is_isolated():
    tree = apple_health.parse_tree(HEALTH_EXPORT_WITH_BAD_WORKOUT)
    assert [r.distance_km for r in tree] == [5.0, 8.0]
    streamed = list(apple_health.parse_lines(HEALTH_EXPORT_WITH_BAD_WORKOUT.splitlines()))
    assert streamed == tree


def test_non_running_workout_is_never_emitted():
    workout = WorkoutSource(
        attrs={"workoutActivityType": "HKWorkoutActivityTypeCycling", "duration": "60"},
        statistics=[{"type": apple_health.DISTANCE, "sum": "20", "unit": "km"}],
    )
    assert build_run(workout) is None


def test_workout_without_distance_is_dropped():
    workout = WorkoutSource(attrs={"workoutActivityType": "HKWorkoutActivityTypeRunning", "duration": "30"})
    assert build_run(workout) is None


def test_missing_start_date_uses_now():
    workout = WorkoutSource(
        attrs={"workoutActivityType": "HKWorkoutActivityTypeRunning", "duration": "30"},
        statistics=[{"type": apple_health.DISTANCE, "sum": "5", "unit": "km"}],
    )
    run = build_run(workout)
    assert run.date.endswith("Z")


def test_scanner_states():
    scanner = WorkoutBufferScanner()
    assert scanner.feed("<HealthData>") is None
    assert scanner.state == scanner.IDLE
    assert scanner.feed('<Workout workoutActivityType="HKWorkoutActivityTypeRunning"') is None
    assert scanner.state == scanner.IN_WORKOUT
    assert scanner.feed(' duration="20">') is None
    assert scanner.feed('<WorkoutStatistics type="x" sum="1"/>') is None
    buffer = scanner.feed("</Workout>")
    assert buffer is not None
    assert buffer.startswith("<Workout")
    assert scanner.state == scanner.IDLE


def test_scanner_handles_one_line_and_self_closing_workouts():
    lines = [
        "<HealthData>",
        '<Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="20"><WorkoutStatistics type="t"/></Workout>',
        '<Workout workoutActivityType="HKWorkoutActivityTypeWalking" duration="10"/>',
        "</HealthData>",
    ]
    buffers = list(WorkoutBufferScanner().scan(lines))
    assert len(buffers) == 2
    assert apple_health.workout_from_text(buffers[1]).attrs["duration"] == "10"


def test_scanner_drops_unterminated_workout():
    lines = [
        '<Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="20">',
        '<WorkoutStatistics type="t"/>',
        '<Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="30">',
        "</Workout>",
    ]
    buffers = list(WorkoutBufferScanner().scan(lines))
    assert len(buffers) == 1
    assert apple_health.workout_from_text(buffers[0]).attrs["duration"] == "30"


def test_streaming_unescapes_attribute_values():
    buffer = '<Workout workoutActivityType="HKWorkoutActivityTypeRunning" sourceName="Ann&apos;s Watch &amp; Co">'
    assert apple_health.workout_from_text(buffer).attrs["sourceName"] == "Ann's Watch & Co"


def test_sixty_hours_is_3600_minutes():
    workout = WorkoutSource(
        attrs={"workoutActivityType": "HKWorkoutActivityTypeRunning", "duration": "60", "durationUnit": "hr"},
        statistics=[{"type": apple_health.DISTANCE, "sum": "400", "unit": "km"}],
    )
    assert build_run(workout).duration_min == 3600


def test_self_closing_workout_with_angle_bracket_in_attribute():
    lines = [
        '<Workout workoutActivityType="HKWorkoutActivityTypeWalking" sourceName="A>B/"',
        ' duration="10"/>',
        "</HealthData>",
    ]
    buffers = list(WorkoutBufferScanner().scan(lines))
    assert len(buffers) == 1
    attrs = apple_health.workout_from_text(buffers[0]).attrs
    assert attrs["sourceName"] == "A>B/"
    assert attrs["duration"] == "10"
