from __future__ import annotations

import click
from flask import Flask

from . import store
from .db import get_db, init_db
from .errors import ValidationError
from .validation import parse_working_days, prepare_profile_payload


def _parse_days_option(value: str):
    try:
        return parse_working_days([int(part) for part in value.split(",") if part.strip()])
    except (ValueError, ValidationError) as exc:
        raise click.BadParameter(f"expected comma separated weekday indices 0-6 ({exc})") from None


def register_commands(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db_command() -> None:
        """Create the database tables if they do not exist."""
        init_db()
        click.echo("Initialized the database.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.option("--mode", default=None, help="weekly, bi-weekly or monthly.")
    @click.option("--working-days", default="0,1,2,3,4", show_default=True, help="Weekday indices, Monday=0.")
    @click.option("--arrival", default=store.DEFAULT_ARRIVAL, show_default=True)
    @click.option("--departure", default=store.DEFAULT_DEPARTURE, show_default=True)
    def create_user_command(username, mode, working_days, arrival, departure) -> None:
        """Register a user profile that sessions can be logged against."""
        username = username.strip()
        if not username:
            raise click.BadParameter("username must not be empty")
        days = _parse_days_option(working_days)
        try:
            profile = prepare_profile_payload(
                {
                    "timesheet_mode": mode or app.config["DEFAULT_TIMESHEET_MODE"],
                    "default_arrival": arrival,
                    "default_departure": departure,
                }
            )
        except ValidationError as exc:
            raise click.BadParameter(exc.message) from None

        db = get_db()
        if store.user_exists(db, username):
            raise click.ClickException(f"User {username!r} already exists.")
        user = store.create_user(db, username, working_days=days, **profile)
        db.commit()
        click.echo(f"Created user {user.username} with id {user.id}.")
