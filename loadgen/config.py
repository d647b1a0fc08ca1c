"""
Configuration for the load generator.

Follows the same pattern as the services it is pointed at: a shared
``Config`` base class holds defaults, environment-specific subclasses
override only what differs, and ``get_config`` resolves the class from
an explicit name or the ``LOADGEN_ENV`` environment variable.  These
settings are process-level defaults; everything that describes a
particular load test lives in the scenario file.

Key Concepts Demonstrated:
- Inheritance-based configuration hierarchy
- Environment variable overrides with sensible defaults
- Optional values (``LOADGEN_GRACEFUL_STOP=none`` waits indefinitely)
"""

from __future__ import annotations

import os


def _optional_float(raw: str) -> float | None:
    """Parse a float, treating ``""`` / ``none`` as "not set"."""
    text = raw.strip().lower()
    if text in ("", "none"):
        return None
    return float(text)


class Config:
    """
    Base configuration shared by all environments.

    Attributes:
        BASE_URL: Target used when a scenario file does not set one.
        REQUEST_TIMEOUT: Per-request timeout in seconds.
        GRACEFUL_STOP: Seconds to wait for in-flight iterations after the
            pacing phase when a scenario does not set its own value.
        LOG_LEVEL: Root logging level for the CLI.
    """

    BASE_URL: str = os.environ.get("LOADGEN_BASE_URL", "http://localhost:8080")
    REQUEST_TIMEOUT: float = float(os.environ.get("LOADGEN_REQUEST_TIMEOUT", "10"))
    GRACEFUL_STOP: float | None = _optional_float(os.environ.get("LOADGEN_GRACEFUL_STOP", "30"))
    LOG_LEVEL: str = os.environ.get("LOADGEN_LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Local runs against a developer's own target; chattier logs."""

    LOG_LEVEL: str = os.environ.get("LOADGEN_LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    """
    Configuration for the automated test suite.

    Short timeouts and a short graceful stop keep a misbehaving test from
    hanging the whole suite.
    """

    BASE_URL: str = os.environ.get("LOADGEN_TEST_BASE_URL", "http://localhost:8080")
    REQUEST_TIMEOUT: float = 2.0
    GRACEFUL_STOP: float | None = 5.0


class ProductionConfig(Config):
    """Pre-production SLO validation runs."""

    LOG_LEVEL: str = os.environ.get("LOADGEN_LOG_LEVEL", "WARNING")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": Config,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Resolve a configuration class by environment name.

    Args:
        env: One of ``"development"``, ``"testing"`` or ``"production"``.
            When ``None``, ``LOADGEN_ENV`` is consulted.

    Returns:
        The configuration class; ``Config`` for unrecognised names.
    """
    if env is None:
        env = os.environ.get("LOADGEN_ENV", "default")
    return config.get(env, config["default"])
