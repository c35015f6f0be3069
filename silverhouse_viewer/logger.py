"""Logging setup for the log viewer server."""
import logging
import os

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Loggers that get their own level regardless of LOG_LEVEL
_QUIET = {
    "aiohttp.access": logging.WARNING,
    "openpyxl": logging.WARNING,
}


def setup_logging(level_name: str | None = None) -> None:
    """Attach one stderr handler to the root logger.

    ``level_name`` overrides the ``LOG_LEVEL`` environment variable. Calling
    this again only adjusts levels.
    """
    name = (level_name or os.environ.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(level)

    for logger_name, quiet_level in _QUIET.items():
        logging.getLogger(logger_name).setLevel(quiet_level)
    logging.getLogger(__name__).debug("Logging configured at %s", name)


__all__ = ["setup_logging"]
