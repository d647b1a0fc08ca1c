"""
Demo target endpoints.

Endpoints:
    POST /login   -- Open a session; returns ``{"token": "..."}``.
    GET  /browse  -- Authenticated product listing.
    POST /submit  -- Authenticated JSON submission.
    GET  /metrics -- Active-session gauge in Prometheus text format.

Every endpoint except ``/metrics`` performs the configured amount of
simulated CPU and memory work before responding.
"""

from __future__ import annotations

import logging
import math

from flask import Blueprint, Response, current_app, jsonify, request

from target_app.sessions import SessionStore

logger = logging.getLogger(__name__)

target_bp = Blueprint("target", __name__)


def _sessions() -> SessionStore:
    return current_app.extensions["sessions"]


def _json_error(message: str, status_code: int) -> tuple[Response, int]:
    """Build a consistent ``{"error": "..."}`` response."""
    return jsonify({"error": message}), status_code


def _simulate_load() -> None:
    """Burn the configured CPU iterations and touch the pre-allocated memory."""
    for i in range(current_app.config["LOAD_CPU_ITERATIONS"]):
        math.sqrt(i)
    memory = current_app.extensions["memory_store"]
    for i in range(0, len(memory), 1024):
        memory[i] = i % 256


def _is_authenticated() -> bool:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return False
    token = auth_header[7:].strip()
    return bool(token) and _sessions().is_valid(token)


@target_bp.route("/login", methods=["POST"])
def login() -> tuple[Response, int]:
    _simulate_load()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _json_error("Invalid request body", 400)

    username = data.get("username")
    if not isinstance(username, str) or not username.strip():
        return _json_error("Username is required", 400)

    token = _sessions().create(username)
    logger.info("User %r logged in", username)
    return jsonify({"token": token}), 200


@target_bp.route("/browse", methods=["GET"])
def browse() -> tuple[Response, int]:
    if not _is_authenticated():
        return _json_error("Unauthorized", 401)
    _simulate_load()
    return jsonify({"status": "success", "data": ["Product A", "Product B", "Product C"]}), 200


@target_bp.route("/submit", methods=["POST"])
def submit() -> tuple[Response, int]:
    if not _is_authenticated():
        return _json_error("Unauthorized", 401)
    _simulate_load()
    data = request.get_json(silent=True)
    if data is None:
        return _json_error("Invalid request body", 400)
    logger.debug("Submit received: %s", data)
    return jsonify({"status": "success", "message": "Data submitted successfully"}), 200


@target_bp.route("/metrics", methods=["GET"])
def metrics() -> Response:
    active = _sessions().purge_expired()
    body = (
        "# HELP concurrent_connections The number of active user sessions.\n"
        "# TYPE concurrent_connections gauge\n"
        f"concurrent_connections {active}\n"
    )
    return Response(body, mimetype="text/plain")
