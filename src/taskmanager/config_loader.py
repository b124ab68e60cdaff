"""Load and validate application configuration from YAML and the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8430

# Environment variables take precedence over the YAML file.
ENV_DATABASE = "TASKMANAGER_DATABASE"
ENV_HOST = "TASKMANAGER_HOST"
ENV_PORT = "TASKMANAGER_PORT"
ENV_WIDGET_BASE_URL = "TASKMANAGER_WIDGET_BASE_URL"


class ConfigError(ValueError):
    """Configuration is missing or invalid; the app cannot start."""


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _get_nested(data: dict, key: str) -> Any:
    """Follow a dotted *key* through nested dicts, returning None when absent."""
    current: Any = data
    for k in key.split("."):
        if not isinstance(current, dict) or k not in current:
            return None
        current = current[k]
    return current


def _validate_range(value: Any, name: str, minimum: int = 1, maximum: int | None = None) -> None:
    """Validate a numeric config value is within bounds."""
    if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
        raise ConfigError(f"Config '{name}' must be >= {minimum}, got {value!r}")
    if maximum is not None and value > maximum:
        raise ConfigError(f"Config '{name}' must be <= {maximum}, got {value!r}")


# ---------------------------------------------------------------------------
# Application configuration
# ---------------------------------------------------------------------------


@dataclass
class AppConfig:
    """Top-level settings, usually loaded from ``config/app.yaml``."""

    db_path: str
    app_name: str = "Task Manager"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    # Where widget HTML is fetched from at startup.  Empty means "this app".
    widget_base_url: str = ""
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])


def load_app_config(path: Path | None = None, environ: dict[str, str] | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from an optional YAML file plus env overrides.

    Parameters
    ----------
    path:
        YAML file (e.g. ``config/app.yaml``).  May be ``None`` when every
        required setting comes from the environment.
    environ:
        Mapping used instead of ``os.environ`` (tests).

    Raises
    ------
    FileNotFoundError
        If *path* is given but does not exist.
    ConfigError
        If no database location is configured or a value is out of range.
    """
    env = os.environ if environ is None else environ
    data: dict = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"App config not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")

    db_path = env.get(ENV_DATABASE) or _get_nested(data, "database.path")
    if not db_path:
        raise ConfigError(
            f"No database configured: set {ENV_DATABASE} or 'database.path' in the config file"
        )
    if db_path != ":memory:":
        db_path = str(Path(db_path).expanduser())

    port_raw = env.get(ENV_PORT) or _get_nested(data, "server.port") or DEFAULT_PORT
    try:
        port = int(port_raw)
    except (TypeError, ValueError):
        raise ConfigError(f"Config 'server.port' must be an integer, got {port_raw!r}") from None

    cors = data.get("cors_origins")
    config = AppConfig(
        db_path=db_path,
        app_name=data.get("app_name", "Task Manager"),
        host=env.get(ENV_HOST) or _get_nested(data, "server.host") or DEFAULT_HOST,
        port=port,
        widget_base_url=(
            env.get(ENV_WIDGET_BASE_URL) or _get_nested(data, "widgets.base_url") or ""
        ).rstrip("/"),
        cors_origins=list(cors) if cors else ["http://localhost:3000"],
    )

    _validate_range(config.port, "server.port", 1, 65535)
    logger.debug("Loaded config: db=%s host=%s port=%d", config.db_path, config.host, config.port)
    return config
