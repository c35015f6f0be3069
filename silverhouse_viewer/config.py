"""Central configuration for silverhouse_viewer."""

from __future__ import annotations

import logging
import os

from .models.settings import Settings

logger = logging.getLogger(__name__)


def _float_env(name: str, default: float) -> float:
    """Read a float from the environment, falling back to ``default``.

    Empty and unparsable values both yield ``default``.
    """
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _remote_path(raw: str | None, default: str) -> str:
    """Normalize a remote FTP path to an absolute, slash-separated form."""
    value = (raw or "").strip().replace("\\", "/") or default
    if not value.startswith("/"):
        value = f"/{value}"
    if len(value) > 1:
        value = value.rstrip("/")
    return value


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Returns:
        Settings object with all configuration values.

    Note:
        Invalid numeric values fall back to the defaults below.
    """
    return Settings(
        FTP_HOST=os.environ.get("FTP_HOST") or "localhost",
        FTP_PORT=_int_env("FTP_PORT", 21),
        FTP_USER=os.environ.get("FTP_USER") or "anonymous",
        FTP_PASS=os.environ.get("FTP_PASS") or "",
        FTP_TIMEOUT_S=_float_env("FTP_TIMEOUT_S", 15.0),
        FTP_LOGS_FOLDER=_remote_path(os.environ.get("FTP_LOGS_FOLDER"), "/Logs"),
        FTP_MACHINE_IDS_PATH=_remote_path(
            os.environ.get("FTP_MACHINE_IDS_PATH"), "/MachineIds.txt"
        ),
        LOCAL_MACHINE_FILE=os.environ.get("LOCAL_MACHINE_FILE") or "machine-ids.txt",
        LOG_CACHE_TTL_S=_float_env("LOG_CACHE_TTL_S", 30.0),
        MACHINE_IDS_CACHE_TTL_S=_float_env("MACHINE_IDS_CACHE_TTL_S", 60.0),
        DASHBOARD_USER=os.environ.get("DASHBOARD_USER") or "admin",
        DASHBOARD_PASS=os.environ.get("DASHBOARD_PASS") or "admin123",
        SESSION_TTL_S=_float_env("SESSION_TTL_S", 24 * 60 * 60.0),
        HTTP_HOST=os.environ.get("HTTP_HOST") or "0.0.0.0",
        HTTP_PORT=_int_env("HTTP_PORT", 4000),
    )


settings = _read_settings()


def validate_settings() -> None:
    """Log warnings for configuration that works but is probably unintended."""
    if settings.FTP_HOST == "localhost":
        logger.warning("FTP_HOST is not set; using localhost")
    if settings.FTP_USER == "anonymous":
        logger.warning("FTP_USER is not set; logging in anonymously")
    if settings.DASHBOARD_PASS == "admin123":
        logger.warning("DASHBOARD_PASS is the built-in default; set it in production")


# Exported constants
LOG_CACHE_TTL_S: float = settings.LOG_CACHE_TTL_S
MACHINE_IDS_CACHE_TTL_S: float = settings.MACHINE_IDS_CACHE_TTL_S
SESSION_TTL_S: float = settings.SESSION_TTL_S
DASHBOARD_USER: str = settings.DASHBOARD_USER
DASHBOARD_PASS: str = settings.DASHBOARD_PASS
