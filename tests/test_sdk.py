"""Tests for gworkspace_sdk (PluginResult, HttpRequestFailed and FakeHostBuilder)."""

from __future__ import annotations

import pytest

from gworkspace_sdk import FakeHostBuilder, HttpRequestFailed, PluginResult, assert_plugin_contract

# ---------------------------------------------------------------------------
# PluginResult
# ---------------------------------------------------------------------------


def test_ok_defaults() -> None:
    r = PluginResult.ok()
    assert r.status == "success"
    assert r.data == {}
    assert r.error is None


def test_err_shape() -> None:
    r = PluginResult.err("Spreadsheet not found: abc", code="not_found")
    assert r.to_dict() == {
        "status": "error",
        "data": {},
        "error": {"code": "not_found", "message": "Spreadsheet not found: abc", "details": {}},
        "diagnostics": None,
    }


def test_trigger_results() -> None:
    fired = PluginResult.triggered({"count": 2})
    assert fired.is_triggered
    assert fired.data == {"triggered": True, "count": 2}

    idle = PluginResult.not_triggered()
    assert not idle.is_triggered
    assert idle.data == {"triggered": False}

    assert not PluginResult.err("boom").is_triggered


# ---------------------------------------------------------------------------
# HttpRequestFailed
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "category", "retryable"),
    [
        (400, "client_error", False),
        (401, "auth_error", False),
        (403, "forbidden", False),
        (404, "not_found", False),
        (410, "gone", False),
        (429, "rate_limited", True),
        (503, "server_error", True),
    ],
)
def test_error_categories(status: int, category: str, retryable: bool) -> None:
    exc = HttpRequestFailed(status, "https://www.googleapis.com/x")
    assert exc.error_category == category
    assert exc.is_retryable is retryable


def test_provider_message_fallbacks() -> None:
    assert HttpRequestFailed(400, "u", {"error_description": "Bad Request"}).provider_message == "Bad Request"
    assert HttpRequestFailed(400, "u", "plain text").provider_message == "plain text"
    assert HttpRequestFailed(400, "u").provider_message == ""


def test_retry_after_header() -> None:
    assert HttpRequestFailed(429, "u", headers={"retry-after": "7"}).retry_after_seconds == 7
    assert HttpRequestFailed(429, "u", headers={"Retry-After": "soon"}).retry_after_seconds is None


# ---------------------------------------------------------------------------
# FakeHostBuilder
# ---------------------------------------------------------------------------


async def test_routes_match_params_and_times() -> None:
    url = "https://www.googleapis.com/drive/v3/files"
    host = (
        FakeHostBuilder()
        .with_http_response("GET", url, {"status_code": 200, "headers": {}, "body": {"page": 1}}, times=1)
        .with_http_response("GET", url, {"status_code": 200, "headers": {}, "body": {"page": 2}}, params={"pageToken": "p2"})
        .build()
    )

    first = await host.http.fetch("GET", url, params={"q": "x"})
    second = await host.http.fetch("GET", url, params={"q": "x", "pageToken": "p2"})

    assert first["body"] == {"page": 1}
    assert second["body"] == {"page": 2}
    assert [c["params"] for c in host.http.calls] == [{"q": "x"}, {"q": "x", "pageToken": "p2"}]


async def test_unmatched_route_fails_loudly() -> None:
    host = FakeHostBuilder().build()
    with pytest.raises(AssertionError, match="No fake route"):
        await host.http.fetch("GET", "https://example.com")


async def test_error_route_raises() -> None:
    host = FakeHostBuilder().with_http_error("GET", "https://example.com", 403).build()
    with pytest.raises(HttpRequestFailed) as exc_info:
        await host.http.fetch("GET", "https://example.com")
    assert exc_info.value.error_category == "forbidden"


async def test_storage_and_cursor() -> None:
    host = FakeHostBuilder().with_storage_file("storage:///in.csv", b"a,b").with_cursor("k", {"v": 1}).build()

    assert await host.storage.read_file("storage:///in.csv") == b"a,b"
    uri = await host.storage.put_file("out.jsonl", b"{}")
    assert host.storage.files[uri] == b"{}"
    with pytest.raises(FileNotFoundError):
        await host.storage.read_file("storage:///missing")

    assert await host.cursor.get("k") == {"v": 1}
    await host.cursor.set("k", {"v": 2})
    assert host.cursor.values["k"] == {"v": 2}


async def test_tokens() -> None:
    host = FakeHostBuilder().build()
    assert await host.auth.google_token(scopes=["s"]) == "fake-google-token"
    assert await host.auth.oauth_token(client_id="c", client_secret="s", refresh_token="r") == "fake-oauth-token"

    denied = FakeHostBuilder().with_google_token(None).build()
    with pytest.raises(RuntimeError):
        await denied.auth.google_token(scopes=["s"])


# ---------------------------------------------------------------------------
# assert_plugin_contract
# ---------------------------------------------------------------------------


class _PollPlugin:
    name = "poll"
    version = "1"
    op_schema: dict = {
        "type": "object",
        "properties": {"op": {"type": "string", "enum": ["poll"]}, "interval": {"type": "string"}},
        "required": ["op"],
        "additionalProperties": False,
    }

    def get_schema(self) -> dict:
        return {"type": "object", "properties": {"op": {"type": "string", "enum": ["poll"]}}}

    def get_schema_for_op(self, op: str) -> dict | None:
        return self.op_schema if op == "poll" else None

    def get_output_schema(self) -> dict:
        return {"type": "object", "properties": {"triggered": {"type": "boolean"}}, "additionalProperties": False}

    async def execute(self, params, context, host) -> PluginResult:
        return PluginResult.not_triggered()


_MANIFEST = {
    "name": "poll",
    "version": "1",
    "module": f"{__name__}:_PollPlugin",
    "capabilities": ["http", "cursor"],
    "allowed_feed_ops": ["poll"],
}


def test_contract_accepts_conforming_plugin() -> None:
    assert_plugin_contract(_PollPlugin, manifest=_MANIFEST)


def test_contract_rejects_open_op_schema() -> None:
    class Open(_PollPlugin):
        op_schema = {**_PollPlugin.op_schema, "additionalProperties": True}

    with pytest.raises(AssertionError, match="additionalProperties"):
        assert_plugin_contract(Open, manifest={**_MANIFEST, "module": f"{__name__}:Open"})


def test_contract_rejects_unknown_capability() -> None:
    with pytest.raises(AssertionError, match="unknown capabilities"):
        assert_plugin_contract(_PollPlugin, manifest={**_MANIFEST, "capabilities": ["http", "db"]})


def test_contract_requires_interval_on_feed_ops() -> None:
    class NoInterval(_PollPlugin):
        op_schema = {**_PollPlugin.op_schema, "properties": {"op": {"type": "string", "enum": ["poll"]}}}

    with pytest.raises(AssertionError, match="interval"):
        assert_plugin_contract(NoInterval, manifest={**_MANIFEST, "module": f"{__name__}:NoInterval"})
