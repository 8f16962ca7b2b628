"""Reporting period resolution.

Three alignment policies are supported:

* ``weekly``: Monday to Sunday.
* ``bi-weekly``: 14-day buckets anchored on ``BI_WEEKLY_EPOCH`` so every user
  shares the same boundaries.
* ``monthly``: the whole weeks covering a calendar month, which may spill into
  the neighbouring months.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterator, Optional

from .errors import InvalidPeriod
from .timeutils import add_days, days_between, month_bounds, parse_date, week_start

WEEKLY = "weekly"
BI_WEEKLY = "bi-weekly"
MONTHLY = "monthly"
MODES = (WEEKLY, BI_WEEKLY, MONTHLY)

BI_WEEKLY_EPOCH = date(2024, 1, 8)
BI_WEEKLY_DAYS = 14


@dataclass(frozen=True)
class Period:
    start: date
    end: date

    @property
    def days(self) -> int:
        return days_between(self.start, self.end) + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def as_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def normalize_mode(mode: Optional[str], default: str = BI_WEEKLY) -> str:
    if mode is None or not str(mode).strip():
        return default
    mode = str(mode).strip().lower()
    if mode not in MODES:
        raise InvalidPeriod(f"Unknown period mode {mode!r}; expected one of {', '.join(MODES)}.", field="mode")
    return mode


def _bi_weekly_start(day: date, field: str = "date") -> date:
    # Floor division keeps dates before the epoch in the right bucket.
    bucket = days_between(BI_WEEKLY_EPOCH, day) // BI_WEEKLY_DAYS
    return add_days(BI_WEEKLY_EPOCH, bucket * BI_WEEKLY_DAYS, field)


def _monthly_period(day: date, field: str = "date") -> Period:
    first, last = month_bounds(day)
    return Period(week_start(first), add_days(week_start(last), 6, field))


def resolve_period(day: object, mode: str, field: str = "date") -> Period:
    day = parse_date(day, field)
    mode = normalize_mode(mode)
    if mode == WEEKLY:
        start = week_start(day)
        return Period(start, add_days(start, 6, field))
    if mode == MONTHLY:
        return _monthly_period(day, field)
    start = _bi_weekly_start(day, field)
    return Period(start, add_days(start, BI_WEEKLY_DAYS - 1, field))


def period_start(day: object, mode: str) -> date:
    return resolve_period(day, mode).start


def periods_in_range(start: object, end: object, mode: str) -> Iterator[Period]:
    """Yield the consecutive periods covering ``[start, end]``.

    The first period is the one containing ``start``. Each following period
    begins the day after the previous one ends; its end is re-derived from that
    new start, so monthly periods vary between four and six weeks.
    """
    start = parse_date(start, "from")
    end = parse_date(end, "to")
    mode = normalize_mode(mode)
    if end < start:
        raise InvalidPeriod("from must not be after to.", field="to")
    first = resolve_period(start, mode, "from")
    # no iterated period ends later than the one holding ``end``
    resolve_period(end, mode, "to")
    return _iter_periods(first, end, mode)


def _iter_periods(period: Period, end: date, mode: str) -> Iterator[Period]:
    yield period
    while period.end < end:
        next_start = add_days(period.end, 1)
        period = Period(next_start, resolve_period(next_start, mode).end)
        yield period


def report_period(anchor: object, mode: str) -> Period:
    """Range covered by a single report anchored on ``anchor``.

    Bi-weekly reports start on the Monday of the anchor week rather than on the
    epoch bucket, so a caller may report on a fortnight of its own choosing.
    """
    anchor = parse_date(anchor, "monday")
    mode = normalize_mode(mode)
    if mode == MONTHLY:
        return _monthly_period(anchor, "monday")
    start = week_start(anchor)
    length = 7 if mode == WEEKLY else BI_WEEKLY_DAYS
    return Period(start, add_days(start, length - 1, "monday"))
