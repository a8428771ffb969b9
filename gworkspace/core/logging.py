"""Logging configuration for the Google Workspace plugin host.

Sets up structured logging with color coding for local development and a JSON
formatter for production. A file handler is attached only when ``log_dir`` is
configured.
"""

import json
import logging
import socket
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, ClassVar

from .config import get_settings_instance

# Guard against double configuration
_LOGGING_CONFIGURED = False

# LogRecord attributes that are never treated as "extra" fields
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
        "asctime",
    }
)


class ColoredFormatter(logging.Formatter):
    """Human-readable lines, colored by level on a terminal.

    Records emitted through ``host.log`` are prefixed with ``[plugin.op]``;
    remaining short scalar extras are appended as ``key=value`` pairs.
    """

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_colors:
            level = f"{self.COLORS.get(level, '')}{level}{self.RESET}"

        timestamp = datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%d %H:%M:%S")
        plugin = getattr(record, "plugin_name", None)
        operation = getattr(record, "operation", None)
        prefix = ""
        if plugin:
            prefix = f"[{plugin}.{operation}] " if operation else f"[{plugin}] "

        extras = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
            and key not in ("plugin_name", "operation")
            and isinstance(value, (str, int, float, bool))
            and len(str(value)) < 100
        ]

        line = f"{timestamp} - {level} - {record.name} - {prefix}{record.getMessage()}"
        if extras:
            line += " | " + " ".join(extras)
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging (for production/monitoring)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            exc_type = record.exc_info[0]
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type is not None else "Unknown",
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging() -> None:
    """Attach the configured handlers to the root logger. Later calls are no-ops.

    Handlers installed by the embedding application (or by pytest) are kept.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED:
        return

    settings = get_settings_instance()
    level = getattr(logging, settings.log_level)
    use_colors = settings.environment == "development"
    formatter = JSONFormatter() if settings.log_format == "json" else ColoredFormatter(use_colors=use_colors)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        # one file per host so workers sharing a volume do not interleave
        handlers.append(logging.FileHandler(log_dir / f"gworkspace_{socket.gethostname()}.log", encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # Google auth refreshes and every pooled request log at INFO/DEBUG
    for noisy in ("httpx", "httpcore", "urllib3", "requests", "google.auth"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
    logging.getLogger("gworkspace").setLevel(level)

    _LOGGING_CONFIGURED = True
    get_logger(__name__).info(
        "Logging configured",
        extra={"log_level": settings.log_level, "log_format": settings.log_format, "log_dir": settings.log_dir},
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``gworkspace`` namespace."""
    if name == "gworkspace" or name.startswith("gworkspace."):
        return logging.getLogger(name)
    return logging.getLogger(f"gworkspace.{name}")
