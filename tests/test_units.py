import math

import pytest

from services.ingestion.units import (
    IMPERIAL,
    METRIC,
    convert_distance,
    convert_pace,
    km_to_mi,
    mi_to_km,
    parse_integer,
    parse_number,
    round_half_up,
)


@pytest.mark.parametrize("km", [0.0, 1.0, 5.0, 21.0975, 42.195])
def test_km_mile_round_trip(km):
    assert abs(mi_to_km(km_to_mi(km)) - km) < 1e-4


def test_convert_for_unit_system():
    assert convert_distance(10.0, METRIC) == 10.0
    assert convert_distance(10.0, IMPERIAL) == pytest.approx(6.21371)
    assert convert_pace(5.0, METRIC) == 5.0
    assert convert_pace(5.0, IMPERIAL) == pytest.approx(8.0467)


def test_round_half_up():
    assert round_half_up(150.5) == 151
    assert round_half_up(2.5) == 3
    assert round_half_up(171.4) == 171


def test_parse_number_reads_leading_number():
    assert parse_number("12.5") == 12.5
    assert parse_number(" 12.5 km") == 12.5
    assert parse_number("1:02:03:04") == 1.0
    assert parse_number("abc") is None
    assert parse_number(None) is None
    assert math.isnan(parse_number("NaN"))
    assert parse_number(7) == 7.0


def test_parse_integer():
    assert parse_integer("345.9") == 345
    assert parse_integer("150 bpm") == 150
    assert parse_integer("x") is None
    assert parse_integer(math.nan) is None
