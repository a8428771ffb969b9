"""Google Chat plugin: post messages to a space through an incoming webhook.

The webhook URL embeds the space key and token, so no Google credentials
are needed. ``template`` and ``execution`` render a Jinja template into the
JSON message before posting it.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from importlib import resources
from typing import Any

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from gworkspace_sdk import HttpRequestFailed, PluginResult

DEFAULT_READ_TIMEOUT = 10.0
DEFAULT_READ_IDLE_TIMEOUT = 300.0
EXECUTION_TEMPLATE = "chat_execution.json.j2"

_env = SandboxedEnvironment(autoescape=False)


def _op(name: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"op": {"type": "string", "enum": [name]}, **_CONNECTION, **properties},
        "required": ["op", "url", *required],
        "additionalProperties": False,
    }


_CONNECTION: dict[str, Any] = {
    "url": {"type": "string", "description": "Incoming webhook URL, https://chat.googleapis.com/v1/spaces/..."},
    "connect_timeout": {"type": ["number", "null"], "minimum": 0, "description": "Seconds to open the connection"},
    "read_timeout": {"type": ["number", "null"], "minimum": 0, "description": "Seconds to read the response (default 10)"},
    "read_idle_timeout": {
        "type": ["number", "null"],
        "minimum": 0,
        "description": "Seconds to wait for an idle pooled connection (default 300)",
    },
    "headers": {"type": ["object", "null"], "additionalProperties": {"type": "string"}},
    "default_charset": {"type": ["string", "null"], "default": "utf-8"},
}

_TEXT = {"type": ["string", "null"], "description": "Overrides the rendered message text"}

_OP_SCHEMAS: dict[str, dict[str, Any]] = {
    "incoming_webhook": _op(
        "incoming_webhook",
        {"payload": {"type": ["string", "object"], "description": "Chat message as JSON text or object"}},
        ["payload"],
    ),
    "template": _op(
        "template",
        {
            "template": {"type": ["string", "null"], "description": "Jinja template rendering to a JSON object"},
            "template_render_map": {"type": ["object", "null"]},
            "text": _TEXT,
        },
        [],
    ),
    "execution": _op(
        "execution",
        {
            "execution_id": {"type": ["string", "null"], "description": "Defaults to the current execution id"},
            "custom_fields": {"type": ["object", "null"]},
            "custom_message": {"type": ["string", "null"]},
            "text": _TEXT,
        },
        [],
    ),
}


def _timeout(params: dict[str, Any]) -> tuple[float, float, float, float]:
    """httpx ``(connect, read, write, pool)`` timeouts."""
    read = float(params.get("read_timeout") or DEFAULT_READ_TIMEOUT)
    connect = float(params.get("connect_timeout") or read)
    pool = float(params.get("read_idle_timeout") or DEFAULT_READ_IDLE_TIMEOUT)
    return (connect, read, read, pool)


def _parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def format_duration(start: Any, end: Any) -> str | None:
    """``1h 2m 3s`` style duration between two timestamps."""
    started, ended = _parse_time(start), _parse_time(end)
    if started is None or ended is None:
        return None
    seconds = max(int((ended - started).total_seconds()), 0)
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = [f"{hours}h"] if hours else []
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


def execution_map(
    execution: dict[str, Any] | None,
    *,
    execution_id: str | None = None,
    custom_fields: dict[str, Any] | None = None,
    custom_message: str | None = None,
) -> dict[str, Any]:
    """Variables for the execution message template."""
    execution = dict(execution or {})
    task_runs = execution.get("task_runs") or []
    first_failed = next((run for run in task_runs if str(run.get("state", "")).upper() == "FAILED"), None)
    return {
        "execution": {
            "id": execution_id or execution.get("id"),
            "namespace": execution.get("namespace"),
            "flow_id": execution.get("flow_id"),
            "state": execution.get("state"),
        },
        "link": execution.get("link"),
        "start_date": execution.get("start_date"),
        "duration": format_duration(execution.get("start_date"), execution.get("end_date") or datetime.now(UTC)),
        "first_failed": first_failed,
        "custom_fields": custom_fields,
        "custom_message": custom_message,
    }


def render_message(template: str, variables: dict[str, Any], text: str | None = None) -> dict[str, Any]:
    """Render ``template`` to a JSON object, with ``text`` overriding its ``text`` key.

    Raises:
        ValueError: When rendering fails or the output is not a JSON object.
    """
    try:
        rendered = _env.from_string(template).render(**variables)
    except TemplateError as e:
        raise ValueError(f"Template rendering failed: {e}") from e
    try:
        message = json.loads(rendered)
    except json.JSONDecodeError as e:
        raise ValueError(f"Rendered template is not valid JSON: {e}") from e
    if not isinstance(message, dict):
        raise ValueError("Rendered template must be a JSON object")
    if text is not None:
        message["text"] = text
    return message


def _bundled_template(name: str) -> str:
    return resources.files(__package__).joinpath("templates", name).read_text(encoding="utf-8")


class ChatPlugin:
    name: str = "gchat"
    version: str = "1"
    # rendered here against template_render_map, not by the executor
    raw_params = frozenset({"template"})

    def get_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for schema in _OP_SCHEMAS.values():
            properties.update(schema["properties"])
        properties["op"] = {"type": "string", "enum": list(_OP_SCHEMAS)}
        return {"type": "object", "properties": properties, "required": ["op", "url"]}

    def get_output_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"status_code": {"type": "integer"}},
            "additionalProperties": False,
        }

    def get_schema_for_op(self, op_name: str) -> dict[str, Any] | None:
        return _OP_SCHEMAS.get(op_name)

    async def execute(self, params: dict[str, Any], context: Any, host: Any) -> PluginResult:
        op = params.get("op")
        if op not in _OP_SCHEMAS:
            return PluginResult.err(f"Unknown op: {op}", code="invalid_params")

        try:
            if op == "incoming_webhook":
                payload = params.get("payload")
                if isinstance(payload, str):
                    json.loads(payload)
                else:
                    payload = json.dumps(payload or {})
            elif op == "template":
                payload = json.dumps(self._template_message(params, context))
            else:
                payload = json.dumps(self._execution_message(params, context))
        except ValueError as e:
            return PluginResult.err(str(e), code="invalid_params")

        return await self._post(params, payload, host)

    def _template_message(self, params: dict[str, Any], context: Any) -> dict[str, Any]:
        if not params.get("template"):
            return {"text": params["text"]} if params.get("text") is not None else {}
        variables = {
            **dict(getattr(context, "variables", None) or {}),
            "execution": dict(getattr(context, "execution", None) or {}),
            **dict(params.get("template_render_map") or {}),
        }
        return render_message(params["template"], variables, params.get("text"))

    def _execution_message(self, params: dict[str, Any], context: Any) -> dict[str, Any]:
        variables = execution_map(
            getattr(context, "execution", None),
            execution_id=params.get("execution_id"),
            custom_fields=params.get("custom_fields"),
            custom_message=params.get("custom_message"),
        )
        return render_message(_bundled_template(EXECUTION_TEMPLATE), variables, params.get("text"))

    async def _post(self, params: dict[str, Any], payload: str, host: Any) -> PluginResult:
        charset = params.get("default_charset") or "utf-8"
        headers = dict(params.get("headers") or {})
        headers["Content-Type"] = f"application/json; charset={charset}"
        try:
            content = payload.encode(charset)
        except LookupError:
            return PluginResult.err(f"Unknown charset: {charset}", code="invalid_params")

        try:
            resp = await host.http.fetch(
                "POST", params["url"], content=content, headers=headers, timeout=_timeout(params)
            )
        except HttpRequestFailed as e:
            host.log.warning(f"Chat webhook rejected the message: {e}")
            return PluginResult.err(
                e.provider_message or str(e),
                code="invalid_params" if e.error_category == "client_error" else e.error_category,
                details={"status_code": e.status_code},
            )
        host.log.info(f"Chat message sent, status {resp['status_code']}")
        return PluginResult.ok(data={"status_code": resp["status_code"]})
