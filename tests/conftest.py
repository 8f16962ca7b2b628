import pytest

from worktime import create_app, store
from worktime.db import connect, create_schema

NOW = "2024-01-15T08:00:00+00:00"


@pytest.fixture
def app(tmp_path):
    app = create_app({"TESTING": True, "DATABASE": str(tmp_path / "worktime-test.db"), "JSON_LOGS": False})
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def conn():
    """In-memory store for exercising the core without the web layer."""
    connection = connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def user(conn):
    return store.create_user(conn, "alice", now=NOW)


@pytest.fixture
def app_user(app):
    with app.app_context():
        db = connect(app.config["DATABASE"])
        try:
            profile = store.create_user(db, "bob", timesheet_mode="weekly", now=NOW)
            db.commit()
        finally:
            db.close()
    return profile


@pytest.fixture
def make_edit():
    return session_payload


def session_payload(day, arrival="07:30", departure="16:30", break_minutes=60, remote_minutes=0, **extra):
    payload = {
        "date": day,
        "arrival_time": arrival,
        "departure_time": departure,
        "break_minutes": break_minutes,
        "remote_minutes": remote_minutes,
    }
    payload.update(extra)
    return payload
