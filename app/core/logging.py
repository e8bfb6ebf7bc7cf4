"""Logging configuration.

``LOG_FORMAT=json`` emits one JSON object per line for log shippers;
``text`` (the default) is human-readable.
"""

import logging

from pythonjsonlogger.json import JsonFormatter

from app.core.config import settings

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
JSON_FIELDS = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _get_log_level(name: str) -> int:
    """Return the numeric log level for *name* (default INFO)."""
    level = getattr(logging, name.upper(), None)
    if not isinstance(level, int):
        return logging.INFO
    return level


def build_formatter(log_format: str) -> logging.Formatter:
    """Return the formatter for ``text`` or ``json`` output."""
    if log_format.lower() == "json":
        return JsonFormatter(fmt=JSON_FIELDS, datefmt="%Y-%m-%dT%H:%M:%S")
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure the root logger once; later calls only adjust level and format."""
    root = logging.getLogger()
    root.setLevel(_get_log_level(level or settings.LOG_LEVEL))
    formatter = build_formatter(log_format or settings.LOG_FORMAT)

    for handler in root.handlers:
        if getattr(handler, "_access_control_handler", False):
            handler.setFormatter(formatter)
            return

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler._access_control_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
