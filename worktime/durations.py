from __future__ import annotations

from typing import Optional

from .timeutils import time_to_minutes


def net_minutes(
    arrival: str,
    departure: str,
    break_minutes: Optional[int] = 0,
    remote_minutes: Optional[int] = 0,
    lenient: bool = False,
) -> int:
    """Worked minutes for one day: span minus break plus remote time.

    The result is negative when departure precedes arrival. With ``lenient``
    set, malformed clock values count as ``00:00`` instead of raising.
    """
    span = time_to_minutes(departure, "departure_time", lenient) - time_to_minutes(
        arrival, "arrival_time", lenient
    )
    return span - (break_minutes or 0) + (remote_minutes or 0)


def session_net_minutes(session, lenient: bool = False) -> int:
    return net_minutes(
        session.arrival_time,
        session.departure_time,
        session.break_minutes,
        session.remote_minutes,
        lenient=lenient,
    )


def format_signed(total_minutes: int) -> str:
    minutes = int(total_minutes)
    sign = "-" if minutes < 0 else ""
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"
