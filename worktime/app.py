from __future__ import annotations

import logging
import time
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from flask import Flask, current_app, g, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from . import exports, store
from .cli import register_commands
from .db import close_db, get_db, init_db
from .durations import format_signed
from .errors import NotFound, ValidationError, WorktimeError
from .logs import configure_logging
from .periods import normalize_mode, periods_in_range, report_period, resolve_period
from .reconcile import reconcile
from .reports import build_bulk_export, build_report
from .store import UserProfile
from .timeutils import format_short_date, parse_date, parse_optional_date
from .validation import parse_user_id, prepare_profile_payload, prepare_session_payload

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("worktime.request")


def create_app(test_config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(
        DATABASE=str(Path.cwd() / "worktime.db"),
        DEFAULT_TIMESHEET_MODE=store.DEFAULT_TIMESHEET_MODE,
        MAX_SUMMARY_WEEKS=6,
        PDF_RENDER_TIMEOUT=30,
        LENIENT_TIME_PARSING=False,
        BULK_EXPORT_INCLUDE_EMPTY=False,
        LOG_LEVEL="INFO",
        JSON_LOGS=True,
    )
    app.config.from_prefixed_env("WORKTIME")
    if test_config:
        app.config.update(test_config)

    configure_logging(app.config["LOG_LEVEL"], app.config["JSON_LOGS"])
    app.jinja_env.filters["hhmm"] = format_signed
    app.jinja_env.filters["short_date"] = format_short_date

    Path(app.config["DATABASE"]).parent.mkdir(parents=True, exist_ok=True)

    @app.before_request
    def open_request() -> None:
        g.request_started = time.perf_counter()
        g.db = get_db()

    @app.after_request
    def log_request(response):
        started = g.get("request_started")
        latency_ms = (time.perf_counter() - started) * 1000 if started is not None else None
        request_logger.info(
            "request",
            extra={
                "path": request.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round(latency_ms, 2) if latency_ms is not None else None,
                "user_id": request.args.get("userId"),
            },
        )
        return response

    app.teardown_appcontext(close_db)

    register_error_handlers(app)
    register_routes(app)
    register_commands(app)
    with app.app_context():
        init_db()
    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(WorktimeError)
    def handle_worktime_error(exc: WorktimeError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.path, exc.message)
        else:
            logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code


def register_routes(app: Flask) -> None:
    @app.route("/")
    def index():
        return jsonify({"status": "ok", "service": "worktime"})

    @app.route("/api/periods/resolve", methods=["GET"])
    def api_resolve_period():
        mode = normalize_mode(request.args.get("mode"), current_app.config["DEFAULT_TIMESHEET_MODE"])
        period = resolve_period(parse_date(request.args.get("date")), mode)
        return jsonify(dict(period.as_dict(), mode=mode))

    @app.route("/api/periods", methods=["GET"])
    def api_periods():
        mode = normalize_mode(request.args.get("mode"), current_app.config["DEFAULT_TIMESHEET_MODE"])
        periods = periods_in_range(
            parse_date(request.args.get("from"), "from"),
            parse_date(request.args.get("to"), "to"),
            mode,
        )
        return jsonify({"mode": mode, "periods": [period.as_dict() for period in periods]})

    @app.route("/api/users/<int:user_id>/profile", methods=["GET"])
    def api_get_profile(user_id: int):
        return jsonify(require_user(user_id).as_dict())

    @app.route("/api/users/<int:user_id>/profile", methods=["PUT"])
    def api_update_profile(user_id: int):
        require_user(user_id)
        changes = prepare_profile_payload(json_body())
        profile = store.update_user_profile(g.db, user_id, changes)
        g.db.commit()
        return jsonify(profile.as_dict())

    @app.route("/api/sessions", methods=["GET"])
    def api_list_sessions():
        user_id = parse_user_id(request.args.get("userId"))
        sessions = store.fetch_sessions(
            g.db,
            user_id,
            parse_optional_date(request.args.get("from"), "from"),
            parse_optional_date(request.args.get("to"), "to"),
            descending=True,
        )
        return jsonify([session.as_dict() for session in sessions])

    @app.route("/api/sessions", methods=["POST"])
    def api_upsert_session():
        data = json_body()
        user_id = parse_user_id(data.get("user_id", data.get("userId")), "user_id")
        cleaned = prepare_session_payload(data)

        existing = store.find_session(g.db, user_id, cleaned["date"])
        if existing is None:
            session = store.insert_session(g.db, user_id, cleaned)
            status = 201
        else:
            session = store.update_session(g.db, existing.id, cleaned)
            status = 200
        g.db.commit()
        return jsonify(session.as_dict()), status

    @app.route("/api/sessions/<int:session_id>", methods=["PUT"])
    def api_update_session(session_id: int):
        existing = store.fetch_session(g.db, session_id)
        if existing is None:
            raise NotFound(f"Session {session_id} not found.", field="id")

        cleaned = prepare_session_payload(json_body(), existing)
        clash = store.find_session(g.db, existing.user_id, cleaned["date"])
        if clash is not None and clash.id != existing.id:
            raise ValidationError("Another session already exists for this date.", field="date")

        session = store.update_session(g.db, session_id, cleaned)
        g.db.commit()
        return jsonify(session.as_dict())

    @app.route("/api/sessions/<int:session_id>", methods=["DELETE"])
    def api_delete_session(session_id: int):
        if not store.delete_session(g.db, session_id):
            raise NotFound(f"Session {session_id} not found.", field="id")
        g.db.commit()
        return "", 204

    @app.route("/api/sessions/bulk", methods=["POST"])
    def api_bulk_sessions():
        data = json_body()
        user_id = parse_user_id(data.get("userId", data.get("user_id")))
        edits = data.get("sessions")
        if not isinstance(edits, list):
            raise ValidationError("sessions must be a list.", field="sessions")

        user = store.fetch_user(g.db, user_id)
        working_days = user.working_days if user else store.DEFAULT_WORKING_DAYS
        results = reconcile(g.db, user_id, working_days, edits)
        g.db.commit()
        return jsonify([session.as_dict() for session in results])

    @app.route("/api/sessions/period", methods=["DELETE"])
    def api_delete_period():
        user_id = parse_user_id(request.args.get("userId"))
        user = store.fetch_user(g.db, user_id)
        period = report_period(request.args.get("monday"), resolve_mode(request.args.get("mode"), user))
        deleted = store.delete_sessions_in_range(g.db, user_id, period.start, period.end)
        g.db.commit()
        logger.info("Deleted %d sessions for user %s between %s and %s", deleted, user_id, period.start, period.end)
        return jsonify({"deleted": deleted, "period": period.as_dict()})

    @app.route("/api/sessions/all", methods=["DELETE"])
    def api_delete_all_sessions():
        user_id = parse_user_id(request.args.get("userId"))
        deleted = store.delete_all_sessions(g.db, user_id)
        g.db.commit()
        logger.info("Deleted all %d sessions for user %s", deleted, user_id)
        return jsonify({"deleted": deleted})

    @app.route("/api/report", methods=["GET"])
    def api_report():
        monday = parse_date(request.args.get("monday"), "monday")
        user_id = parse_user_id(request.args.get("userId"))
        export_format = requested_format(("pdf", "excel", "json"), "pdf")
        user = store.fetch_user(g.db, user_id)
        mode = resolve_mode(request.args.get("mode"), user)

        report = build_report(g.db, user_id, monday, mode, **report_options())
        if export_format == "json":
            return jsonify(dict(report.as_dict(), mode=mode))

        start = report.period.start.isoformat()
        if export_format == "excel":
            content = exports.build_workbook([exports.report_sheet(report, "Timesheet")])
            return attachment(content, exports.XLSX_MIMETYPE, f"timesheet-{start}.xlsx")

        html = exports.render_report_html(report, user.username if user else "Unknown")
        content = exports.html_to_pdf(html, timeout=current_app.config["PDF_RENDER_TIMEOUT"])
        return attachment(content, exports.PDF_MIMETYPE, f"timesheet-{start}.pdf")

    @app.route("/api/report/bulk", methods=["GET"])
    def api_bulk_report():
        start = parse_date(request.args.get("from"), "from")
        end = parse_date(request.args.get("to"), "to")
        user_id = parse_user_id(request.args.get("userId"))
        export_format = requested_format(("excel", "json"), "excel")
        user = store.fetch_user(g.db, user_id)
        mode = resolve_mode(request.args.get("mode"), user)

        reports = build_bulk_export(
            g.db,
            user_id,
            start,
            end,
            mode,
            include_empty=bool(current_app.config["BULK_EXPORT_INCLUDE_EMPTY"]),
            **report_options(),
        )
        if export_format == "json":
            return jsonify({"mode": mode, "reports": [report.as_dict() for report in reports]})

        sheets = exports.bulk_sheets(reports)
        if not sheets:
            raise NotFound(f"No sessions recorded between {start} and {end}.")
        content = exports.build_workbook(sheets)
        return attachment(content, exports.XLSX_MIMETYPE, f"timesheet-{start}-to-{end}.xlsx")


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def require_user(user_id: int) -> UserProfile:
    user = store.fetch_user(g.db, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found.", field="userId")
    return user


def resolve_mode(raw: Optional[str], user: Optional[UserProfile]) -> str:
    default = user.timesheet_mode if user else current_app.config["DEFAULT_TIMESHEET_MODE"]
    return normalize_mode(raw, default)


def requested_format(allowed: Tuple[str, ...], default: str) -> str:
    value = (request.args.get("format") or default).strip().lower()
    if value not in allowed:
        raise ValidationError(f"Unsupported format {value!r}; use one of {', '.join(allowed)}.", field="format")
    return value


def report_options() -> Dict[str, Any]:
    return {
        "max_weeks": int(current_app.config["MAX_SUMMARY_WEEKS"]),
        "lenient": bool(current_app.config["LENIENT_TIME_PARSING"]),
    }


def attachment(content: bytes, mimetype: str, filename: str):
    return send_file(BytesIO(content), mimetype=mimetype, as_attachment=True, download_name=filename)
