"""
Plugin executor: renders templated parameters, validates them against the op
schema, builds the host and runs the plugin.
"""

from __future__ import annotations

from typing import Any

import jsonschema

from ..core.exceptions import GWorkspaceException
from ..core.logging import get_logger, setup_logging
from .base import ExecuteContext, Plugin, PluginResult
from .host.exceptions import HttpRequestFailed
from .host.host_builder import make_host
from .loader import PluginRecord
from .templating import build_render_context, render_params

logger = get_logger(__name__)


class Executor:
    def _schema_for(self, plugin: Plugin, op: str | None) -> dict[str, Any] | None:
        if op:
            get_op = getattr(plugin, "get_schema_for_op", None)
            if callable(get_op):
                schema = get_op(op)
                if schema is not None:
                    return schema
        return plugin.get_schema()

    def _validate(self, plugin: Plugin, params: dict[str, Any]) -> str | None:
        """Return a validation message, or None when ``params`` are valid."""
        op = params.get("op")
        schema = self._schema_for(plugin, op if isinstance(op, str) else None)
        if not schema:
            return None
        try:
            jsonschema.validate(instance=params, schema=schema)
        except jsonschema.ValidationError as e:
            path = ".".join(str(p) for p in e.absolute_path)
            return f"{path}: {e.message}" if path else e.message
        return None

    def _validate_output(self, plugin: Plugin, data: dict[str, Any] | None) -> None:
        schema = plugin.get_output_schema()
        if not schema:
            return
        try:
            jsonschema.validate(instance=data or {}, schema=schema)
        except jsonschema.ValidationError as e:
            # Output drift is logged, the result still goes back to the caller
            logger.warning("Plugin '%s' output does not match its schema: %s", plugin.name, e.message)

    async def execute(
        self,
        *,
        plugin: Plugin,
        record: PluginRecord,
        params: dict[str, Any],
        context: ExecuteContext,
    ) -> PluginResult:
        """Execute one plugin op.

        Returns:
            The plugin's result. Schema violations return ``validation_error``;
            an uncaught ``HttpRequestFailed`` returns ``provider_error`` with the
            status, URL and provider message; host errors keep their own
            ``error_code``; anything else returns ``plugin_execute_error``.
        """
        setup_logging()
        raw = frozenset(getattr(plugin, "raw_params", ()))
        rendered = render_params(params, build_render_context(context), raw=raw)
        problem = self._validate(plugin, rendered)
        if problem:
            return PluginResult.err(problem, code="validation_error")

        op = str(rendered.get("op") or "")
        host = make_host(
            plugin_name=plugin.name,
            user_id=context.user_id,
            capabilities=record.capabilities,
            operation=op or None,
            execution=context.execution,
            trigger_id=context.trigger_id,
        )
        logger.debug("Executing %s.%s", plugin.name, op, extra={"plugin": plugin.name, "op": op})
        try:
            result = await plugin.execute(rendered, context, host)
        except HttpRequestFailed as e:
            details = {
                "status_code": e.status_code,
                "url": e.url,
                "provider_message": e.provider_message,
            }
            return PluginResult.err(f"Provider HTTP error ({e.status_code})", code="provider_error", details=details)
        except GWorkspaceException as e:
            return PluginResult.err(e.message, code=e.error_code, details=e.details)
        except Exception as e:
            logger.exception("Plugin '%s' failed: %s", plugin.name, e)
            return PluginResult.err(str(e), code="plugin_execute_error")

        if result.status == "success":
            self._validate_output(plugin, result.data)
        return result


EXECUTOR = Executor()
