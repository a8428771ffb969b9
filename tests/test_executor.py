"""Tests for the plugin executor: validation, templating and error mapping."""

import json
from typing import Any

import httpx
import pytest

from gworkspace.core.exceptions import CredentialsError
from gworkspace.plugins.base import ExecuteContext, PluginResult
from gworkspace.plugins.executor import EXECUTOR, Executor
from gworkspace.plugins.host import HttpRequestFailed, http_capability
from gworkspace.plugins.loader import PluginLoader, PluginRecord

_SCHEMA = {
    "type": "object",
    "properties": {
        "op": {"type": "string", "enum": ["echo"]},
        "message": {"type": "string"},
        "count": {"type": "integer", "minimum": 1},
    },
    "required": ["op", "message"],
    "additionalProperties": False,
}


class _EchoPlugin:
    name = "echo"
    version = "1"

    def __init__(self, raises: Exception | None = None, data: dict[str, Any] | None = None) -> None:
        self.raises = raises
        self.data = data
        self.seen: dict[str, Any] | None = None
        self.host: Any = None

    def get_schema(self) -> dict[str, Any]:
        return _SCHEMA

    def get_schema_for_op(self, op: str) -> dict[str, Any] | None:
        return _SCHEMA if op == "echo" else None

    def get_output_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {"message": {"type": "string"}}, "additionalProperties": False}

    async def execute(self, params: dict[str, Any], context: Any, host: Any) -> PluginResult:
        self.seen = params
        self.host = host
        if self.raises:
            raise self.raises
        return PluginResult.ok(data=self.data if self.data is not None else {"message": params["message"]})


_RECORD = PluginRecord(name="echo", version="1", entry="tests:_EchoPlugin", capabilities=["cursor"])


def _ctx(**kwargs: Any) -> ExecuteContext:
    return ExecuteContext(user_id="u1", **kwargs)


class TestExecutor:
    @pytest.mark.asyncio
    async def test_renders_then_runs(self) -> None:
        plugin = _EchoPlugin()
        result = await Executor().execute(
            plugin=plugin,
            record=_RECORD,
            params={"op": "echo", "message": "run {{ execution.id }}"},
            context=_ctx(execution={"id": "ex1"}),
        )

        assert result.status == "success"
        assert result.data == {"message": "run ex1"}
        assert plugin.seen == {"op": "echo", "message": "run ex1"}

    @pytest.mark.asyncio
    async def test_schema_violation(self) -> None:
        plugin = _EchoPlugin()
        result = await Executor().execute(
            plugin=plugin, record=_RECORD, params={"op": "echo", "message": "x", "count": 0}, context=_ctx()
        )

        assert result.error["code"] == "validation_error"
        assert result.error["message"].startswith("count:")
        assert plugin.seen is None

    @pytest.mark.asyncio
    async def test_missing_required_field(self) -> None:
        result = await Executor().execute(plugin=_EchoPlugin(), record=_RECORD, params={"op": "echo"}, context=_ctx())
        assert result.error["code"] == "validation_error"
        assert "'message' is a required property" in result.error["message"]

    @pytest.mark.asyncio
    async def test_host_has_declared_capabilities(self) -> None:
        plugin = _EchoPlugin()
        await Executor().execute(
            plugin=plugin,
            record=_RECORD,
            params={"op": "echo", "message": "x"},
            context=_ctx(execution={"namespace": "ns", "flow_id": "f"}, trigger_id="t"),
        )

        assert plugin.host.cursor._scope == "ns_f_t"

    @pytest.mark.asyncio
    async def test_uncaught_http_failure(self) -> None:
        exc = HttpRequestFailed(502, "https://www.googleapis.com/x", {"error": {"message": "Bad gateway"}})
        result = await Executor().execute(
            plugin=_EchoPlugin(raises=exc), record=_RECORD, params={"op": "echo", "message": "x"}, context=_ctx()
        )

        assert result.error["code"] == "provider_error"
        assert result.error["details"] == {
            "status_code": 502,
            "url": "https://www.googleapis.com/x",
            "provider_message": "Bad gateway",
        }

    @pytest.mark.asyncio
    async def test_host_error_keeps_code(self) -> None:
        result = await Executor().execute(
            plugin=_EchoPlugin(raises=CredentialsError("no ADC")),
            record=_RECORD,
            params={"op": "echo", "message": "x"},
            context=_ctx(),
        )

        assert result.error["code"] == "auth_error"
        assert result.error["message"] == "Unable to obtain Google credentials: no ADC"

    @pytest.mark.asyncio
    async def test_unexpected_exception(self) -> None:
        result = await Executor().execute(
            plugin=_EchoPlugin(raises=KeyError("boom")),
            record=_RECORD,
            params={"op": "echo", "message": "x"},
            context=_ctx(),
        )

        assert result.error["code"] == "plugin_execute_error"

    @pytest.mark.asyncio
    async def test_output_drift_is_logged_not_failed(self, caplog) -> None:
        with caplog.at_level("WARNING", logger="gworkspace.plugins.executor"):
            result = await Executor().execute(
                plugin=_EchoPlugin(data={"message": "x", "extra": 1}),
                record=_RECORD,
                params={"op": "echo", "message": "x"},
                context=_ctx(),
            )

        assert result.status == "success"
        assert any("does not match its schema" in r.getMessage() for r in caplog.records)


@pytest.fixture
def sent(monkeypatch) -> list[httpx.Request]:
    """Requests posted through the real host; every call answers 200."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"name": "spaces/AAA/messages/1"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def fake_get_http_client():
        return client

    monkeypatch.setattr(http_capability, "get_http_client", fake_get_http_client)
    return requests


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_chat_execution_message_through_real_host(self, sent) -> None:
        loader = PluginLoader()
        record = loader.discover()["gchat"]
        context = _ctx(
            execution={"id": "ex1", "namespace": "company.team", "flow_id": "etl", "state": "SUCCESS"},
            variables={"space": "AAA"},
        )

        result = await EXECUTOR.execute(
            plugin=loader.load(record),
            record=record,
            params={
                "op": "execution",
                "url": "https://chat.googleapis.com/v1/spaces/{{ space }}/messages?key=k",
                "custom_message": "{{ execution.flow_id }} finished",
            },
            context=context,
        )

        assert result.status == "success"
        assert result.data == {"status_code": 200}
        assert sent[0].url.path == "/v1/spaces/AAA/messages"
        text = json.loads(sent[0].content)["text"]
        assert text.startswith("etl finished\n*[company.team] etl ➛ SUCCESS*")

    @pytest.mark.asyncio
    async def test_chat_template_rendered_once_with_render_map(self, sent) -> None:
        loader = PluginLoader()
        record = loader.discover()["gchat"]

        result = await EXECUTOR.execute(
            plugin=loader.load(record),
            record=record,
            params={
                "op": "template",
                "url": "https://chat.googleapis.com/v1/spaces/AAA/messages?key=k",
                "template": (
                    '{"text": "{{ name | upper }} {% for i in items %}{{ i }}{% endfor %}'
                    ' {{ execution.flow_id }}"}'
                ),
                "template_render_map": {"name": "bob", "items": ["a", "b"]},
            },
            context=_ctx(execution={"id": "ex1", "flow_id": "etl"}),
        )

        assert result.status == "success"
        assert json.loads(sent[0].content) == {"text": "BOB ab etl"}
