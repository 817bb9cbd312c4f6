from pimcodec.durations import (
    duration_to_minutes,
    format_alarm_trigger,
    format_duration,
    format_negative_duration,
    is_valid_duration,
    parse_alarm_trigger,
    parse_duration,
)


def test_fifteen_minutes_before():
    assert parse_alarm_trigger("-PT15M") == {"when": "before", "value": 15, "unit": "minutes"}
    assert format_alarm_trigger("before", 15, "minutes") == "-PT15M"


def test_positive_triggers_are_after():
    assert parse_alarm_trigger("PT1H") == {"when": "after", "value": 1, "unit": "hours"}
    assert parse_alarm_trigger("+P1D") == {"when": "after", "value": 1, "unit": "days"}
    assert format_alarm_trigger("after", 2, "hours") == "PT2H"


def test_coarsest_unit_wins():
    assert parse_alarm_trigger("-P2DT3H") == {"when": "before", "value": 2, "unit": "days"}
    assert parse_alarm_trigger("-PT1H30M") == {"when": "before", "value": 1, "unit": "hours"}
    assert parse_alarm_trigger("-P1W") == {"when": "before", "value": 7, "unit": "days"}


def test_seconds_round_up_to_minutes():
    assert parse_alarm_trigger("-PT30S") == {"when": "before", "value": 1, "unit": "minutes"}
    assert parse_alarm_trigger("PT0S") == {"when": "after", "value": 0, "unit": "minutes"}


def test_absolute_trigger():
    assert parse_alarm_trigger("20240115T093000Z") == {"when": "at", "value": 0, "unit": "minutes"}
    assert format_alarm_trigger("at", 0, "minutes") == ""


def test_unreadable_triggers():
    assert parse_alarm_trigger("15M") is None
    assert parse_alarm_trigger("-P") is None
    assert parse_alarm_trigger("") is None
    assert parse_alarm_trigger(None) is None


def test_parse_duration():
    assert parse_duration("PT1H30M") == {"value": 1, "unit": "hours"}
    assert parse_duration("P1W2D") == {"value": 9, "unit": "days"}
    assert parse_duration("PT45S") == {"value": 45, "unit": "seconds"}
    assert parse_duration("PT0M") == {"value": 0, "unit": "minutes"}
    assert parse_duration("soon") is None
    assert is_valid_duration("PT15M")
    assert not is_valid_duration("P")


def test_duration_to_minutes():
    assert duration_to_minutes("PT1H30M") == 90
    assert duration_to_minutes("P1D") == 1440
    assert duration_to_minutes("PT90S") == 2
    assert duration_to_minutes("nope") is None


def test_format_duration():
    assert format_duration(2, "days") == "P2D"
    assert format_duration(3, "hours") == "PT3H"
    assert format_duration(10, "minutes") == "PT10M"
    assert format_negative_duration(1, "hours") == "-PT1H"


def test_components_are_read_as_written():
    assert parse_alarm_trigger("-PT90M") == {"when": "before", "value": 90, "unit": "minutes"}
    assert parse_duration("PT25H") == {"value": 25, "unit": "hours"}
    assert duration_to_minutes("PT25H") == 1500


def test_malformed_durations_with_digits():
    assert parse_duration("P1X") is None
    assert parse_duration("PT1M2H") is None
    assert parse_alarm_trigger("-pt10m") == {"when": "before", "value": 10, "unit": "minutes"}
    assert duration_to_minutes("T1H") == 60
