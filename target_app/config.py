"""
Configuration for the demo target service.

Same hierarchy as the load generator's own settings: a ``Config`` base
with environment overrides, environment subclasses, and ``get_config``.
The two load knobs let the same service be made artificially expensive
so a run can demonstrate saturation and latency growth.

Key Concepts Demonstrated:
- Environment variable overrides with sensible defaults
- Testing profile that disables simulated load for fast tests
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    """Read an integer env var, falling back to *default* when unset or invalid."""
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


class Config:
    """
    Base configuration shared by all environments.

    Attributes:
        LOAD_CPU_ITERATIONS: Square roots computed per request.
        LOAD_MEM_MB: Megabytes pre-allocated and touched per request.
        SESSION_TTL_SECONDS: Lifetime of a login session.
    """

    LOAD_CPU_ITERATIONS: int = _int_env("LOAD_CPU_ITERATIONS", 0)
    LOAD_MEM_MB: int = _int_env("LOAD_MEM_MB", 0)
    SESSION_TTL_SECONDS: int = _int_env("SESSION_TTL_SECONDS", 120)


class DevelopmentConfig(Config):
    """Local development; Flask debug mode on."""

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """Automated tests: no simulated load, exceptions propagate."""

    DEBUG: bool = True
    TESTING: bool = True
    LOAD_CPU_ITERATIONS: int = 0
    LOAD_MEM_MB: int = 0


class ProductionConfig(Config):
    """Target deployments used for SLO validation."""

    DEBUG: bool = False
    TESTING: bool = False


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Resolve a configuration class by environment name.

    Args:
        env: Environment name.  When ``None``, ``FLASK_ENV`` is consulted,
            falling back to ``"development"``.

    Returns:
        The configuration class; ``DevelopmentConfig`` for unknown names.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
