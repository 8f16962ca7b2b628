from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidTime, MissingIdentifier, ValidationError
from .periods import normalize_mode
from .store import WorkSession
from .timeutils import parse_date, validate_time


def parse_user_id(value: object, field: str = "userId") -> int:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise MissingIdentifier(f"{field} is required.", field=field)
    try:
        user_id = int(str(value).strip())
    except ValueError:
        raise MissingIdentifier(f"{field} must be an integer.", field=field) from None
    if user_id <= 0:
        raise MissingIdentifier(f"{field} must be a positive integer.", field=field)
    return user_id


def parse_minutes(value: object, field: str, allow_negative: bool = False) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer number of minutes.", field=field)
    if isinstance(value, int):
        minutes = value
    else:
        try:
            minutes = int(str(value).strip())
        except ValueError:
            raise ValidationError(f"{field} must be an integer number of minutes.", field=field) from None
    if minutes < 0 and not allow_negative:
        raise ValidationError(f"{field} must not be negative.", field=field)
    return minutes


def parse_working_days(value: object) -> List[int]:
    if not isinstance(value, (list, tuple, set)):
        raise ValidationError("working_days must be a list of weekday indices.", field="working_days")
    days = set()
    for item in value:
        if isinstance(item, bool) or not isinstance(item, int) or not 0 <= item <= 6:
            raise ValidationError("working_days entries must be integers between 0 and 6.", field="working_days")
        days.add(item)
    return sorted(days)


def _blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def prepare_session_payload(payload: Mapping[str, Any], existing: Optional[WorkSession] = None) -> Dict[str, Any]:
    """Clean a session payload, falling back to ``existing`` for absent fields.

    Raises a ``ValidationError`` subclass naming the first offending field.
    """

    def _value(key: str, default: Any = None) -> Any:
        value = payload.get(key)
        if _blank(value):
            return default
        return value.strip() if isinstance(value, str) else value

    entry_date = parse_date(_value("date", existing.date if existing else None), "date")

    times = {}
    for key in ("arrival_time", "departure_time"):
        raw = _value(key, getattr(existing, key) if existing else None)
        if raw is None:
            raise InvalidTime(f"{key} is required.", field=key)
        times[key] = validate_time(raw, key)

    break_raw = _value("break_minutes", existing.break_minutes if existing else 0)
    break_minutes = parse_minutes(break_raw, "break_minutes")

    # remote_minutes is nullable: an explicit null clears it
    if "remote_minutes" in payload:
        remote_raw = _value("remote_minutes")
    else:
        remote_raw = existing.remote_minutes if existing else None
    remote_minutes = None if remote_raw is None else parse_minutes(remote_raw, "remote_minutes", allow_negative=True)

    if "notes" in payload:
        notes = _value("notes")
    else:
        notes = existing.notes if existing else None
    if notes is not None and not isinstance(notes, str):
        notes = str(notes)

    return {
        "date": entry_date,
        "arrival_time": times["arrival_time"],
        "departure_time": times["departure_time"],
        "break_minutes": break_minutes,
        "remote_minutes": remote_minutes,
        "notes": notes,
    }


def prepare_profile_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    changes: Dict[str, Any] = {}
    if payload.get("timesheet_mode") is not None:
        changes["timesheet_mode"] = normalize_mode(payload["timesheet_mode"])
    if payload.get("working_days") is not None:
        changes["working_days"] = parse_working_days(payload["working_days"])
    for key in ("default_arrival", "default_departure"):
        if payload.get(key) is not None:
            changes[key] = validate_time(payload[key], key)
    return changes
