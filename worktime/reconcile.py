from __future__ import annotations

import logging
import sqlite3
from typing import Any, Iterable, List, Mapping, Optional

from . import store
from .errors import MissingIdentifier, ValidationError
from .store import WorkSession
from .timeutils import parse_date, weekday_index
from .validation import prepare_session_payload

logger = logging.getLogger(__name__)


def reconcile(
    conn: sqlite3.Connection,
    user_id: Optional[int],
    working_days: Iterable[int],
    edits: Iterable[Mapping[str, Any]],
    now: Optional[str] = None,
) -> List[WorkSession]:
    """Apply a batch of per-day edits for one user.

    Each edit is upserted by ``(user_id, date)`` when its date is a working
    day and deletes the stored row otherwise. Edits with invalid fields are
    skipped individually. Returns the kept rows in input order.
    """
    if user_id is None:
        raise MissingIdentifier("userId is required.", field="userId")

    working = set(working_days)
    now = now or store.utc_now()
    results: List[WorkSession] = []

    for index, edit in enumerate(edits):
        if not isinstance(edit, Mapping):
            logger.info("Skipping edit %d for user %s: not an object", index, user_id)
            continue
        try:
            day = parse_date(edit.get("date"))
        except ValidationError as exc:
            logger.info("Skipping edit %d for user %s: %s", index, user_id, exc)
            continue

        existing = store.find_session(conn, user_id, day)
        if weekday_index(day) not in working:
            if existing is not None:
                store.delete_session(conn, existing.id)
                logger.info("Removed session %s on non-working day %s for user %s", existing.id, day, user_id)
            continue

        try:
            cleaned = prepare_session_payload(edit)
        except ValidationError as exc:
            logger.info("Skipping edit %d for user %s on %s: %s", index, user_id, day, exc)
            continue

        if existing is not None:
            session = store.update_session(conn, existing.id, cleaned, now)
        else:
            session = store.insert_session(conn, user_id, cleaned, now)
        results.append(session)

    logger.debug("Bulk save kept %d sessions for user %s", len(results), user_id)
    return results
