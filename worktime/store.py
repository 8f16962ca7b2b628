"""Row-level access to the ``users`` and ``work_sessions`` tables.

Functions here never commit; the caller owns the transaction boundary.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_WORKING_DAYS = [0, 1, 2, 3, 4]
DEFAULT_TIMESHEET_MODE = "bi-weekly"
DEFAULT_ARRIVAL = "07:30"
DEFAULT_DEPARTURE = "16:30"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class WorkSession:
    id: int
    user_id: int
    date: str
    arrival_time: str
    departure_time: str
    break_minutes: int
    remote_minutes: Optional[int]
    notes: Optional[str]
    created_at: str
    updated_at: str

    @property
    def day(self) -> date:
        return date.fromisoformat(self.date)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "WorkSession":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            date=row["date"],
            arrival_time=row["arrival_time"],
            departure_time=row["departure_time"],
            break_minutes=row["break_minutes"],
            remote_minutes=row["remote_minutes"],
            notes=row["notes"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UserProfile:
    id: int
    username: str
    created_at: str
    timesheet_mode: str = DEFAULT_TIMESHEET_MODE
    working_days: List[int] = field(default_factory=lambda: list(DEFAULT_WORKING_DAYS))
    default_arrival: str = DEFAULT_ARRIVAL
    default_departure: str = DEFAULT_DEPARTURE

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "UserProfile":
        return cls(
            id=row["id"],
            username=row["username"],
            created_at=row["created_at"],
            timesheet_mode=row["timesheet_mode"] or DEFAULT_TIMESHEET_MODE,
            working_days=_load_working_days(row["working_days"]),
            default_arrival=row["default_arrival"] or DEFAULT_ARRIVAL,
            default_departure=row["default_departure"] or DEFAULT_DEPARTURE,
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _load_working_days(raw: Optional[str]) -> List[int]:
    if not raw:
        return list(DEFAULT_WORKING_DAYS)
    try:
        days = json.loads(raw)
    except ValueError:
        return list(DEFAULT_WORKING_DAYS)
    if not isinstance(days, list):
        return list(DEFAULT_WORKING_DAYS)
    return sorted({int(day) for day in days if isinstance(day, int) and 0 <= day <= 6})


def fetch_session(conn: sqlite3.Connection, session_id: int) -> Optional[WorkSession]:
    row = conn.execute("SELECT * FROM work_sessions WHERE id = ?", (session_id,)).fetchone()
    if row is None:
        return None
    return WorkSession.from_row(row)


def find_session(conn: sqlite3.Connection, user_id: int, day: date) -> Optional[WorkSession]:
    row = conn.execute(
        "SELECT * FROM work_sessions WHERE user_id = ? AND date = ? ORDER BY id ASC LIMIT 1",
        (user_id, day.isoformat()),
    ).fetchone()
    if row is None:
        return None
    return WorkSession.from_row(row)


def fetch_sessions(
    conn: sqlite3.Connection,
    user_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
    descending: bool = False,
) -> List[WorkSession]:
    sql = "SELECT * FROM work_sessions WHERE user_id = ?"
    params: List[Any] = [user_id]
    if start is not None:
        sql += " AND date >= ?"
        params.append(start.isoformat())
    if end is not None:
        sql += " AND date <= ?"
        params.append(end.isoformat())
    sql += " ORDER BY date DESC, id DESC" if descending else " ORDER BY date ASC, id ASC"
    return [WorkSession.from_row(row) for row in conn.execute(sql, params).fetchall()]


def insert_session(
    conn: sqlite3.Connection, user_id: int, cleaned: Mapping[str, Any], now: Optional[str] = None
) -> WorkSession:
    now = now or utc_now()
    cur = conn.execute(
        """
        INSERT INTO work_sessions
        (user_id, date, arrival_time, departure_time, break_minutes, remote_minutes, notes, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            cleaned["date"].isoformat(),
            cleaned["arrival_time"],
            cleaned["departure_time"],
            cleaned["break_minutes"],
            cleaned["remote_minutes"],
            cleaned["notes"],
            now,
            now,
        ),
    )
    return fetch_session(conn, cur.lastrowid)


def update_session(
    conn: sqlite3.Connection, session_id: int, cleaned: Mapping[str, Any], now: Optional[str] = None
) -> Optional[WorkSession]:
    now = now or utc_now()
    cur = conn.execute(
        """
        UPDATE work_sessions
        SET date = ?, arrival_time = ?, departure_time = ?, break_minutes = ?, remote_minutes = ?, notes = ?, updated_at = ?
        WHERE id = ?
        """,
        (
            cleaned["date"].isoformat(),
            cleaned["arrival_time"],
            cleaned["departure_time"],
            cleaned["break_minutes"],
            cleaned["remote_minutes"],
            cleaned["notes"],
            now,
            session_id,
        ),
    )
    if cur.rowcount == 0:
        return None
    return fetch_session(conn, session_id)


def delete_session(conn: sqlite3.Connection, session_id: int) -> bool:
    cur = conn.execute("DELETE FROM work_sessions WHERE id = ?", (session_id,))
    return cur.rowcount > 0


def delete_sessions_in_range(conn: sqlite3.Connection, user_id: int, start: date, end: date) -> int:
    cur = conn.execute(
        "DELETE FROM work_sessions WHERE user_id = ? AND date >= ? AND date <= ?",
        (user_id, start.isoformat(), end.isoformat()),
    )
    return cur.rowcount


def delete_all_sessions(conn: sqlite3.Connection, user_id: int) -> int:
    cur = conn.execute("DELETE FROM work_sessions WHERE user_id = ?", (user_id,))
    return cur.rowcount


def fetch_user(conn: sqlite3.Connection, user_id: int) -> Optional[UserProfile]:
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    if row is None:
        return None
    return UserProfile.from_row(row)


def user_exists(conn: sqlite3.Connection, username: str) -> bool:
    row = conn.execute("SELECT 1 FROM users WHERE username = ?", (username,)).fetchone()
    return row is not None


def create_user(
    conn: sqlite3.Connection,
    username: str,
    timesheet_mode: str = DEFAULT_TIMESHEET_MODE,
    working_days: Optional[List[int]] = None,
    default_arrival: str = DEFAULT_ARRIVAL,
    default_departure: str = DEFAULT_DEPARTURE,
    now: Optional[str] = None,
) -> UserProfile:
    days = DEFAULT_WORKING_DAYS if working_days is None else working_days
    cur = conn.execute(
        """
        INSERT INTO users (username, timesheet_mode, working_days, default_arrival, default_departure, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (username, timesheet_mode, json.dumps(sorted(set(days))), default_arrival, default_departure, now or utc_now()),
    )
    return fetch_user(conn, cur.lastrowid)


def update_user_profile(conn: sqlite3.Connection, user_id: int, changes: Mapping[str, Any]) -> Optional[UserProfile]:
    updates = []
    values: List[Any] = []
    for column in ("timesheet_mode", "working_days", "default_arrival", "default_departure"):
        if column not in changes:
            continue
        value = changes[column]
        if column == "working_days":
            value = json.dumps(sorted(set(value)))
        updates.append(f"{column} = ?")
        values.append(value)

    if updates:
        values.append(user_id)
        conn.execute(f"UPDATE users SET {', '.join(updates)} WHERE id = ?", values)
    return fetch_user(conn, user_id)
