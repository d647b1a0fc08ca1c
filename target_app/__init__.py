"""
Demo target service — Flask application factory.

A deliberately small service with the same surface as the system the
example scenario was written against: a login endpoint that hands out
session tokens, two authenticated endpoints with different costs, and a
Prometheus-style gauge of active sessions.  It gives the load generator
something realistic to run against locally and in integration tests.

Key Concepts Demonstrated:
- Application factory pattern (create_app)
- Blueprint-based route registration
- Per-app state kept in ``app.extensions`` rather than module globals
"""

from __future__ import annotations

import logging

from flask import Flask

from target_app.config import get_config
from target_app.sessions import SessionStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the demo target application.

    Args:
        config_name: ``"development"``, ``"testing"`` or ``"production"``.
            When ``None``, ``FLASK_ENV`` is consulted.

    Returns:
        A configured :class:`~flask.Flask` application.
    """
    app = Flask(__name__)
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    logger.info("Creating target app with config: %s", config_class.__name__)
    logger.info(
        "Load simulation settings: CPU iterations=%d, memory MB=%d",
        app.config["LOAD_CPU_ITERATIONS"],
        app.config["LOAD_MEM_MB"],
    )

    app.extensions["sessions"] = SessionStore(app.config["SESSION_TTL_SECONDS"])
    # Pre-allocated once so requests touch memory without allocating it.
    app.extensions["memory_store"] = bytearray(app.config["LOAD_MEM_MB"] * 1024 * 1024)

    from target_app.routes import target_bp

    app.register_blueprint(target_bp)
    return app
