from datetime import timedelta

import pytest

from assertoor.duration import format_duration, parse_duration


@pytest.mark.parametrize("text", ["5s", "1m30s", "1h0m0s", "1.5s", "250ms", "2h45m10s", "-3s"])
def test_round_trip(text):
    assert format_duration(parse_duration(text)) == text


def test_parse_compound():
    assert parse_duration("1h30m") == timedelta(hours=1, minutes=30)


def test_parse_fraction_of_hour():
    assert parse_duration("1.5h") == timedelta(minutes=90)


def test_parse_zero():
    assert parse_duration("0") == timedelta(0)


def test_parse_negative():
    assert parse_duration("-2s") == -timedelta(seconds=2)


def test_parse_plus_sign():
    assert parse_duration("+2s") == parse_duration("2s")


def test_micro_aliases_equal():
    assert parse_duration("300us") == parse_duration("300\u00b5s") == parse_duration("300\u03bcs")


def test_format_zero():
    assert format_duration(timedelta(0)) == "0s"


def test_format_seconds_duration_parses_back():
    value = timedelta(seconds=12)
    assert parse_duration(format_duration(value)) == value


@pytest.mark.parametrize("text", ["", "abc", "5", "5x", "-", ".s", "1.2.3s"])
def test_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_missing_unit_message():
    with pytest.raises(ValueError, match="missing unit"):
        parse_duration("10")


def test_unknown_unit_message():
    with pytest.raises(ValueError, match="unknown unit"):
        parse_duration("10d")