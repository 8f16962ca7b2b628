from datetime import date

import pytest

from worktime.errors import InvalidDate, InvalidTime
from worktime.timeutils import (
    add_days,
    format_short_date,
    month_bounds,
    parse_date,
    parse_optional_date,
    time_to_minutes,
    week_start,
    weekday_index,
)


def test_parse_date_accepts_iso_dates():
    assert parse_date("2024-02-29") == date(2024, 2, 29)
    assert parse_date(" 2024-01-08 ") == date(2024, 1, 8)


@pytest.mark.parametrize("value", ["2024-02-30", "2023-02-29", "2024-13-01", "24-01-08", "2024/01/08", "", None, 20240108])
def test_parse_date_rejects_invalid_input(value):
    with pytest.raises(InvalidDate):
        parse_date(value)


def test_parse_date_reports_field_name():
    with pytest.raises(InvalidDate) as excinfo:
        parse_date("nope", "monday")
    assert excinfo.value.field == "monday"


def test_parse_optional_date_treats_blank_as_absent():
    assert parse_optional_date(None) is None
    assert parse_optional_date("  ") is None
    assert parse_optional_date("2024-01-08") == date(2024, 1, 8)


def test_add_days_crosses_month_year_and_leap_boundaries():
    assert add_days(date(2024, 2, 28), 1) == date(2024, 2, 29)
    assert add_days(date(2024, 2, 29), 1) == date(2024, 3, 1)
    assert add_days(date(2023, 12, 31), 1) == date(2024, 1, 1)
    assert add_days(date(2024, 1, 8), -14) == date(2023, 12, 25)


def test_add_days_ignores_daylight_saving_changes():
    # 2024-03-31 is a DST switch in most of Europe
    assert add_days(date(2024, 3, 30), 2) == date(2024, 4, 1)
    assert add_days(date(2024, 10, 27), 1) == date(2024, 10, 28)


def test_week_start_and_weekday_index():
    assert week_start(date(2024, 1, 14)) == date(2024, 1, 8)
    assert week_start(date(2024, 1, 8)) == date(2024, 1, 8)
    assert weekday_index(date(2024, 1, 8)) == 0
    assert weekday_index(date(2024, 1, 14)) == 6


def test_month_bounds():
    assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(date(2023, 12, 31)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_time_to_minutes():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("07:30") == 450
    assert time_to_minutes("23:59") == 1439


@pytest.mark.parametrize("value", ["24:00", "12:60", "7:30", "ab:cd", "0730", "", None, 450])
def test_time_to_minutes_rejects_malformed_values(value):
    with pytest.raises(InvalidTime):
        time_to_minutes(value, "arrival_time")


def test_time_to_minutes_lenient_defaults_to_zero():
    assert time_to_minutes("garbage", lenient=True) == 0
    assert time_to_minutes("08:15", lenient=True) == 495


def test_format_short_date():
    assert format_short_date(date(2024, 1, 8)) == "Mon 08 Jan"
    assert format_short_date(date(2024, 12, 1)) == "Sun 01 Dec"
    assert format_short_date(date(2024, 12, 1), with_year=True) == "Sun 01 Dec 24"
    assert format_short_date(date(2005, 3, 7), with_year=True) == "Mon 07 Mar 05"
