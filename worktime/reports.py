from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from . import store
from .durations import format_signed, session_net_minutes
from .errors import InvalidPeriod
from .periods import Period, periods_in_range, report_period
from .store import WorkSession
from .timeutils import add_days, days_between

logger = logging.getLogger(__name__)

MAX_SUMMARY_WEEKS = 6


@dataclass
class PeriodSummary:
    label: str
    start: date
    end: date
    total_minutes: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "total_minutes": self.total_minutes,
            "total": format_signed(self.total_minutes),
        }


@dataclass
class Report:
    period: Period
    summaries: List[PeriodSummary]
    total_minutes: int
    sessions: List[WorkSession] = field(default_factory=list)
    lenient: bool = False

    def net_minutes(self, session: WorkSession) -> int:
        return session_net_minutes(session, lenient=self.lenient)

    def session_dict(self, session: WorkSession) -> Dict[str, Any]:
        net = self.net_minutes(session)
        return dict(session.as_dict(), net_minutes=net, net=format_signed(net))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period.as_dict(),
            "summaries": [summary.as_dict() for summary in self.summaries],
            "total_minutes": self.total_minutes,
            "total": format_signed(self.total_minutes),
            "sessions": [self.session_dict(session) for session in self.sessions],
        }


def stride_count(period: Period) -> int:
    if period.end < period.start:
        raise InvalidPeriod("Period end is before its start.", field="end")
    return -(-period.days // 7)


def aggregate(
    sessions: Sequence[WorkSession],
    period: Period,
    max_weeks: int = MAX_SUMMARY_WEEKS,
    lenient: bool = False,
) -> Tuple[List[PeriodSummary], int]:
    """Fold sessions into 7-day sub-summaries and a period total.

    Strides start at ``period.start``; the last one is clipped to
    ``period.end``. A period needing more than ``max_weeks`` strides is
    rejected rather than truncated.
    """
    count = stride_count(period)
    if count > max_weeks:
        raise InvalidPeriod(
            f"Period {period.start} to {period.end} spans {count} weeks; at most {max_weeks} are allowed.",
            field="period",
        )

    dated = [(session.day, session_net_minutes(session, lenient)) for session in sessions]
    summaries = []
    for index in range(count):
        stride_start = add_days(period.start, index * 7)
        stride_end = add_days(stride_start, min(6, days_between(stride_start, period.end)))
        minutes = sum(net for day, net in dated if stride_start <= day <= stride_end)
        label = "Week" if count == 1 else f"Week {index + 1}"
        summaries.append(PeriodSummary(label, stride_start, stride_end, minutes))

    total = sum(net for day, net in dated if period.contains(day))
    return summaries, total


def _report_for(
    conn: sqlite3.Connection, user_id: int, period: Period, max_weeks: int, lenient: bool
) -> Report:
    sessions = store.fetch_sessions(conn, user_id, period.start, period.end)
    summaries, total = aggregate(sessions, period, max_weeks, lenient)
    return Report(period, summaries, total, sessions, lenient)


def build_report(
    conn: sqlite3.Connection,
    user_id: int,
    anchor: Any,
    mode: str,
    max_weeks: int = MAX_SUMMARY_WEEKS,
    lenient: bool = False,
) -> Report:
    period = report_period(anchor, mode)
    report = _report_for(conn, user_id, period, max_weeks, lenient)
    logger.info(
        "Built %s report for user %s from %s to %s (%d sessions)",
        mode,
        user_id,
        period.start,
        period.end,
        len(report.sessions),
    )
    return report


def build_bulk_export(
    conn: sqlite3.Connection,
    user_id: int,
    start: Any,
    end: Any,
    mode: str,
    include_empty: bool = False,
    max_weeks: int = MAX_SUMMARY_WEEKS,
    lenient: bool = False,
) -> Iterator[Report]:
    periods = periods_in_range(start, end, mode)
    return _iter_reports(conn, user_id, periods, include_empty, max_weeks, lenient)


def _iter_reports(
    conn: sqlite3.Connection,
    user_id: int,
    periods: Iterator[Period],
    include_empty: bool,
    max_weeks: int,
    lenient: bool,
) -> Iterator[Report]:
    for period in periods:
        report = _report_for(conn, user_id, period, max_weeks, lenient)
        if not report.sessions and not include_empty:
            logger.debug("Skipping empty period %s to %s for user %s", period.start, period.end, user_id)
            continue
        yield report
