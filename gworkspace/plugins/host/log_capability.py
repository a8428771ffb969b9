"""``host.log``: plugin logging tagged with the running task or trigger.

Every record carries the plugin, the user and the op, plus the flow
``namespace``/``flow_id``/``trigger_id`` when the plugin runs inside a flow.
Plugins can add their own extras but cannot overwrite these.
"""

from __future__ import annotations

import logging
from typing import Any

from .base import ImmutableCapabilityMixin

plugin_logger = logging.getLogger("gworkspace.plugins.runtime")


class LogCapability(ImmutableCapabilityMixin):
    """Always available to plugins, no declaration required.

    Example:
        host.log.info("Found events", extra={"count": len(events)})
    """

    __slots__ = ("_context",)

    _context: dict[str, Any]

    def __init__(
        self,
        *,
        plugin_name: str,
        user_id: str,
        operation: str | None = None,
        execution: dict[str, Any] | None = None,
        trigger_id: str | None = None,
    ) -> None:
        ex = execution or {}
        context = {
            "plugin_name": plugin_name,
            "user_id": user_id,
            "operation": operation,
            "namespace": ex.get("namespace"),
            "flow_id": ex.get("flow_id"),
            "trigger_id": trigger_id,
        }
        self._bind(_context={k: v for k, v in context.items() if v is not None})

    def _log(self, level: int, msg: str, extra: dict[str, Any] | None, exc_info: bool = False) -> None:
        plugin_logger.log(level, msg, extra={**(extra or {}), **self._context}, exc_info=exc_info)

    def debug(self, msg: str, *, extra: dict[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, msg, extra)

    def info(self, msg: str, *, extra: dict[str, Any] | None = None) -> None:
        self._log(logging.INFO, msg, extra)

    def warning(self, msg: str, *, extra: dict[str, Any] | None = None) -> None:
        self._log(logging.WARNING, msg, extra)

    def error(self, msg: str, *, extra: dict[str, Any] | None = None) -> None:
        self._log(logging.ERROR, msg, extra)

    def exception(self, msg: str, *, extra: dict[str, Any] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, msg, extra, exc_info=True)
