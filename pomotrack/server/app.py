"""Remote sync endpoint for PomoTrack.

A small Flask app that stores one JSON document per calendar day:

    POST /sync                               save a day's sessions/projects
    GET  /sync?date=YYYY-MM-DD               read one day (404 if absent)
    GET  /sync?from=YYYY-MM-DD&to=YYYY-MM-DD read and aggregate a range
    OPTIONS /sync                            CORS preflight, empty 200

Writes are unconditional overwrites: the last upload for a day wins.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Callable

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from pomotrack.core.timeutil import to_iso, utcnow
from pomotrack.server.objectstore import (
    DAILY_PREFIX,
    ObjectNotFound,
    ObjectStore,
    daily_key,
    date_of_key,
)

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class BadRequest(ValueError):
    """Client sent a malformed request; answered with HTTP 400."""


def _valid_date(value: Any) -> bool:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def save_day(store: ObjectStore, body: Any, now: datetime) -> dict[str, Any]:
    """Validate an upload body and write it as that day's document."""
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    day = body.get("date")
    if not _valid_date(day):
        raise BadRequest("Missing or invalid date")
    sessions = body.get("sessions") or []
    projects = body.get("projects") or []
    if not isinstance(sessions, list) or not isinstance(projects, list):
        raise BadRequest("sessions and projects must be lists")

    key = daily_key(day)
    store.put_json(key, {
        "date": day,
        "sessions": sessions,
        "projects": projects,
        "syncedAt": to_iso(now),
    })
    logger.info("Data saved: %s", key)
    return {"success": True, "key": key, "date": day}


def load_range(store: ObjectStore, date_from: str, date_to: str) -> dict[str, Any]:
    """Concatenate sessions and de-duplicate projects across ``[date_from, date_to]``.

    Documents that cannot be read or parsed are skipped with a warning;
    ``filesLoaded`` counts only the documents that contributed.
    """
    keys = []
    for key in store.list_keys(DAILY_PREFIX):
        day = date_of_key(key)
        # String comparison works for zero-padded ISO dates.
        if day is not None and date_from <= day <= date_to:
            keys.append(key)
    logger.info("Found %d files in range %s to %s", len(keys), date_from, date_to)

    sessions: list[Any] = []
    projects: dict[str, Any] = {}
    loaded = 0
    for key in keys:
        try:
            data = store.get_json(key)
            if not isinstance(data, dict):
                raise ValueError("document is not an object")
        except (ObjectNotFound, OSError, ValueError) as exc:
            logger.warning("Error loading file %s: %s", key, exc)
            continue
        sessions.extend(data.get("sessions") or [])
        for project in data.get("projects") or []:
            if isinstance(project, dict) and "id" in project:
                projects[project["id"]] = project
        loaded += 1

    return {
        "from": date_from,
        "to": date_to,
        "sessions": sessions,
        "projects": list(projects.values()),
        "filesLoaded": loaded,
    }


def create_flask_app(store: ObjectStore, clock: Callable[[], datetime] = utcnow) -> Flask:
    app = Flask(__name__)

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        return response

    @app.errorhandler(BadRequest)
    def handle_bad_request(exc: BadRequest):
        return jsonify({"error": str(exc)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        if exc.code == 404:
            return jsonify({"error": "Not found", "method": request.method, "path": request.path}), 404
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error")
        return jsonify({"error": str(exc)}), 500

    @app.route("/sync", methods=["GET", "POST", "OPTIONS"])
    @app.route("/<path:stage>/sync", methods=["GET", "POST", "OPTIONS"])
    def sync(stage: str = ""):
        if request.method == "OPTIONS":
            return "", 200

        if request.method == "POST":
            body = request.get_json(silent=True)
            return jsonify(save_day(store, body, clock()))

        params = request.args
        if params.get("from") and params.get("to"):
            date_from, date_to = params["from"], params["to"]
            if not (_valid_date(date_from) and _valid_date(date_to)):
                raise BadRequest("Invalid from/to parameter")
            return jsonify(load_range(store, date_from, date_to))

        day = params.get("date")
        if not day:
            raise BadRequest("Missing date parameter")
        if not _valid_date(day):
            raise BadRequest("Invalid date parameter")

        key = daily_key(day)
        try:
            raw = store.get(key)
        except ObjectNotFound:
            return jsonify({"error": "No data for this date"}), 404
        logger.info("Data retrieved: %s", key)
        return Response(raw, status=200, mimetype="application/json")

    return app


def run_server(store: ObjectStore, host: str = "127.0.0.1", port: int = 8787) -> None:
    """Serve the sync endpoint in the foreground."""
    flask_app = create_flask_app(store)
    logger.info("Sync server listening on http://%s:%d", host, port)
    flask_app.run(host=host, port=port, debug=False, use_reloader=False)
