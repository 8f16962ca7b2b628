from datetime import date

import pytest

from worktime import store
from worktime.errors import InvalidPeriod
from worktime.periods import BI_WEEKLY, MONTHLY, WEEKLY, Period
from worktime.reports import aggregate, build_bulk_export, build_report
from worktime.validation import prepare_session_payload

NOW = "2024-01-15T08:00:00+00:00"


def add_session(conn, user_id, payload):
    return store.insert_session(conn, user_id, prepare_session_payload(payload), NOW)


def test_weekly_scenario_totals_two_days(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-08"))
    add_session(conn, user.id, make_edit("2024-01-09"))

    report = build_report(conn, user.id, "2024-01-08", WEEKLY)

    assert report.total_minutes == 960
    assert report.as_dict()["total"] == "16:00"
    assert [s.label for s in report.summaries] == ["Week"]
    assert report.summaries[0].total_minutes == 960


def test_weekly_total_follows_net_minutes_rule_for_short_breaks(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-08", break_minutes=30))
    add_session(conn, user.id, make_edit("2024-01-09", break_minutes=30))

    report = build_report(conn, user.id, "2024-01-08", WEEKLY)

    assert report.total_minutes == 2 * (540 - 30)
    assert report.as_dict()["total"] == "17:00"


def test_bi_weekly_report_has_one_summary_per_week(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-08"))
    add_session(conn, user.id, make_edit("2024-01-16", departure="17:30"))
    add_session(conn, user.id, make_edit("2024-01-22"))  # next period

    report = build_report(conn, user.id, "2024-01-08", BI_WEEKLY)

    assert report.period == Period(date(2024, 1, 8), date(2024, 1, 21))
    assert [(s.label, s.total_minutes) for s in report.summaries] == [("Week 1", 480), ("Week 2", 540)]
    assert report.total_minutes == 1020
    assert [s.date for s in report.sessions] == ["2024-01-08", "2024-01-16"]


def test_report_isolates_users(conn, user, make_edit):
    other = store.create_user(conn, "carol", now=NOW)
    add_session(conn, user.id, make_edit("2024-01-08"))
    add_session(conn, other.id, make_edit("2024-01-08", departure="20:00"))

    assert build_report(conn, user.id, "2024-01-08", WEEKLY).total_minutes == 480


def test_monthly_report_includes_spillover_days(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-29"))
    add_session(conn, user.id, make_edit("2024-02-15"))
    add_session(conn, user.id, make_edit("2024-03-03"))

    report = build_report(conn, user.id, "2024-02-10", MONTHLY)

    assert len(report.summaries) == 5
    assert report.total_minutes == 3 * 480
    assert report.total_minutes == sum(s.total_minutes for s in report.summaries)


def test_aggregate_total_matches_summaries_on_whole_weeks(conn, user, make_edit):
    for day in ("2024-01-01", "2024-01-09", "2024-01-17", "2024-01-25", "2024-02-02", "2024-02-04"):
        add_session(conn, user.id, make_edit(day, arrival="08:00", departure="12:00", break_minutes=0))
    sessions = store.fetch_sessions(conn, user.id)

    summaries, total = aggregate(sessions, Period(date(2024, 1, 1), date(2024, 2, 4)))

    assert len(summaries) == 5
    assert total == sum(s.total_minutes for s in summaries) == 6 * 240


def test_aggregate_clips_last_stride():
    period = Period(date(2024, 2, 1), date(2024, 2, 29))
    summaries, total = aggregate([], period)

    assert len(summaries) == 5
    assert summaries[-1].start == date(2024, 2, 29)
    assert summaries[-1].end == date(2024, 2, 29)
    assert total == 0


def test_aggregate_ignores_sessions_outside_period(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-07"))
    add_session(conn, user.id, make_edit("2024-01-08"))
    sessions = store.fetch_sessions(conn, user.id)

    summaries, total = aggregate(sessions, Period(date(2024, 1, 8), date(2024, 1, 14)))

    assert total == 480
    assert summaries[0].total_minutes == 480


def test_aggregate_rejects_oversized_period():
    with pytest.raises(InvalidPeriod):
        aggregate([], Period(date(2024, 1, 1), date(2024, 2, 19)))


def test_aggregate_accepts_configured_bound():
    summaries, _ = aggregate([], Period(date(2024, 1, 1), date(2024, 2, 25)), max_weeks=8)
    assert len(summaries) == 8


def test_aggregate_rejects_inverted_period():
    with pytest.raises(InvalidPeriod):
        aggregate([], Period(date(2024, 1, 14), date(2024, 1, 8)))


def test_negative_sessions_reduce_total(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-08", arrival="17:00", departure="09:00", break_minutes=0))

    report = build_report(conn, user.id, "2024-01-08", WEEKLY)

    assert report.total_minutes == -480
    assert report.as_dict()["sessions"][0]["net"] == "-08:00"


def test_bulk_export_skips_empty_periods(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-09"))
    add_session(conn, user.id, make_edit("2024-02-20"))

    reports = list(build_bulk_export(conn, user.id, "2024-01-08", "2024-03-03", BI_WEEKLY))

    assert [r.period.as_dict() for r in reports] == [
        {"start": "2024-01-08", "end": "2024-01-21"},
        {"start": "2024-02-19", "end": "2024-03-03"},
    ]
    assert [r.total_minutes for r in reports] == [480, 480]


def test_bulk_export_can_include_empty_periods(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-09"))

    reports = list(build_bulk_export(conn, user.id, "2024-01-08", "2024-03-03", BI_WEEKLY, include_empty=True))

    assert len(reports) == 4
    assert [r.total_minutes for r in reports] == [480, 0, 0, 0]


def test_bulk_export_is_lazy(conn, user, make_edit):
    add_session(conn, user.id, make_edit("2024-01-09"))

    reports = build_bulk_export(conn, user.id, "2024-01-01", "2030-12-31", WEEKLY)

    assert next(reports).period.start == date(2024, 1, 8)


def test_aggregate_clips_stride_at_calendar_limit():
    summaries, total = aggregate([], Period(date(9999, 12, 27), date(9999, 12, 31)))

    assert summaries[0].end == date(9999, 12, 31)
    assert total == 0
