"""Unit tests for the Gmail plugin."""

from __future__ import annotations

import base64
import email
from datetime import UTC, datetime
from email import policy

from gworkspace_sdk import FakeHostBuilder
from gworkspace_sdk.contracts import assert_plugin_contract

from gworkspace_plugins.gmail.manifest import PLUGIN_MANIFEST
from gworkspace_plugins.gmail.mime import attachment_filename, b64url_decode, build_message, split_addresses
from gworkspace_plugins.gmail.plugin import GmailPlugin
from gworkspace_plugins.gmail.triggers import build_search_query


def test_contract() -> None:
    assert_plugin_contract(GmailPlugin, manifest=PLUGIN_MANIFEST)


_CTX = type("Ctx", (), {"user_id": "test_user", "agent_key": None, "next_execution_date": None})()

_BASE = "https://gmail.googleapis.com/gmail/v1/users/me/messages"
_OAUTH = {"client_id": "cid", "client_secret": "secret", "refresh_token": "rt"}


def _ok(body: object) -> dict:
    return {"status_code": 200, "headers": {}, "body": body}


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


# ---------------------------------------------------------------------------
# MIME helpers
# ---------------------------------------------------------------------------


def test_split_addresses_trims_and_drops_empty() -> None:
    assert split_addresses(" a@x.com, b@x.com ,, ") == ["a@x.com", "b@x.com"]
    assert split_addresses(None) is None


def test_attachment_filename_from_disposition() -> None:
    part = {"filename": "", "headers": [{"name": "content-disposition", "value": 'attachment; filename="r.pdf"'}]}
    assert attachment_filename(part) == "r.pdf"


def test_build_message_alternative_with_attachment() -> None:
    msg = build_message(
        to=["a@x.com"],
        subject="Hi",
        text_body="plain",
        html_body="<b>html</b>",
        attachments=[("report.csv", b"a,b\n")],
    )
    assert msg.get_content_type() == "multipart/mixed"
    body, attachment = msg.get_payload()
    assert body.get_content_type() == "multipart/alternative"
    assert [p.get_content_type() for p in body.get_payload()] == ["text/plain", "text/html"]
    assert attachment.get_filename() == "report.csv"
    assert attachment.get_content_type() == "text/csv"


def test_build_message_empty_body_is_text() -> None:
    msg = build_message(to=["a@x.com"])
    assert msg.get_content_type() == "text/plain"
    assert msg["Subject"] == ""


def test_search_query_uses_previous_day() -> None:
    cutoff = datetime(2025, 1, 1, 0, 30, tzinfo=UTC)
    assert build_search_query("from:boss", cutoff) == "from:boss after:2024/12/31"
    assert build_search_query("  ", cutoff) == "after:2024/12/31"


# ---------------------------------------------------------------------------
# Ops
# ---------------------------------------------------------------------------


async def test_missing_oauth_field_is_invalid_params() -> None:
    host = FakeHostBuilder().build()
    result = await GmailPlugin().execute({"op": "list", "client_id": "cid", "client_secret": "s"}, _CTX, host)

    assert result.error["code"] == "invalid_params"
    assert result.error["message"] == "refresh_token is required for OAuth authentication"
    host.auth.oauth_token.assert_not_awaited()


async def test_refresh_failure_is_auth_error() -> None:
    host = FakeHostBuilder().with_oauth_token(None).build()
    result = await GmailPlugin().execute({"op": "list", **_OAUTH}, _CTX, host)

    assert result.error["code"] == "auth_error"


async def test_list_caps_max_results() -> None:
    body = {"messages": [{"id": "m1", "threadId": "t1"}], "resultSizeEstimate": 1, "nextPageToken": "n"}
    host = FakeHostBuilder().with_http_response("GET", _BASE, _ok(body)).build()
    result = await GmailPlugin().execute(
        {"op": "list", **_OAUTH, "query": "is:unread", "label_ids": ["INBOX"], "max_results": 1000}, _CTX, host
    )

    assert result.data == {
        "messages": [{"id": "m1", "thread_id": "t1"}],
        "result_size_estimate": 1,
        "next_page_token": "n",
    }
    sent = host.http.calls[0]
    assert sent["params"]["maxResults"] == 500
    assert sent["params"]["labelIds"] == ["INBOX"]
    assert sent["headers"]["Authorization"] == "Bearer fake-oauth-token"


async def test_get_converts_full_message() -> None:
    raw = {
        "id": "m1",
        "threadId": "t1",
        "labelIds": ["INBOX"],
        "historyId": 42,
        "internalDate": "1735732860000",
        "sizeEstimate": 1024,
        "payload": {
            "mimeType": "multipart/mixed",
            "headers": [
                {"name": "Subject", "value": "Report"},
                {"name": "From", "value": "boss@x.com"},
                {"name": "To", "value": "a@x.com, b@x.com"},
            ],
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [
                        {"mimeType": "text/plain", "body": {"data": _b64("hello")}},
                        {"mimeType": "text/html", "body": {"data": _b64("<p>hello</p>")}},
                    ],
                },
                {
                    "mimeType": "application/pdf",
                    "filename": "r.pdf",
                    "body": {"attachmentId": "att1", "size": 10},
                },
            ],
        },
    }
    host = FakeHostBuilder().with_http_response("GET", f"{_BASE}/m1", _ok(raw), params={"format": "full"}).build()
    result = await GmailPlugin().execute({"op": "get", **_OAUTH, "message_id": "m1"}, _CTX, host)

    message = result.data["message"]
    assert message["subject"] == "Report"
    assert message["to"] == ["a@x.com", "b@x.com"]
    assert message["cc"] is None
    assert message["headers"]["from"] == "boss@x.com"
    assert message["text_plain"] == "hello"
    assert message["text_html"] == "<p>hello</p>"
    assert message["history_id"] == "42"
    assert message["internal_date"] == "2025-01-01T12:01:00Z"
    assert message["attachments"] == [
        {"attachment_id": "att1", "mime_type": "application/pdf", "filename": "r.pdf", "size": 10, "data": None}
    ]


async def test_get_unknown_message() -> None:
    host = FakeHostBuilder().with_http_error("GET", f"{_BASE}/nope", 404).build()
    result = await GmailPlugin().execute({"op": "get", **_OAUTH, "message_id": "nope"}, _CTX, host)

    assert result.error["code"] == "not_found"


async def test_send_encodes_raw_message() -> None:
    uri = "storage:///out/notes.txt"
    host = (
        FakeHostBuilder()
        .with_storage_file(uri, b"notes")
        .with_http_response("POST", f"{_BASE}/send", _ok({"id": "s1", "threadId": "t9"}))
        .build()
    )
    result = await GmailPlugin().execute(
        {
            "op": "send",
            **_OAUTH,
            "to": ["a@x.com", "b@x.com"],
            "cc": ["c@x.com"],
            "subject": "Weekly",
            "html_body": "<p>hi</p>",
            "attachments": [uri],
        },
        _CTX,
        host,
    )

    assert result.data == {"message_id": "s1", "thread_id": "t9"}
    raw = host.http.calls[0]["json"]["raw"]
    assert "=" not in raw
    parsed = email.message_from_bytes(b64url_decode(raw), policy=policy.default)
    assert parsed["To"] == "a@x.com, b@x.com"
    assert parsed["Cc"] == "c@x.com"
    assert parsed.get_content_type() == "multipart/mixed"
    body, attachment = parsed.get_payload()
    assert body.get_content_type() == "text/html"
    assert attachment.get_filename() == "notes.txt"
    assert attachment.get_payload(decode=True) == b"notes"


# ---------------------------------------------------------------------------
# mail_received
# ---------------------------------------------------------------------------

_NEXT = datetime(2025, 1, 1, 12, 5, tzinfo=UTC)
_TRIGGER_CTX = type("Ctx", (), {"user_id": "test_user", "agent_key": None, "next_execution_date": _NEXT})()
_AFTER_CUTOFF = "1735732860000"  # 12:01
_BEFORE_CUTOFF = "1735732740000"  # 11:59


def _full(message_id: str, subject: str) -> dict:
    return {
        "id": message_id,
        "threadId": f"t-{message_id}",
        "snippet": subject.lower(),
        "internalDate": _AFTER_CUTOFF,
        "payload": {"mimeType": "text/plain", "headers": [{"name": "Subject", "value": subject}]},
    }


async def test_mail_received_filters_by_internal_date() -> None:
    listing = {"messages": [{"id": "new"}, {"id": "old"}, {"id": "broken"}, {"id": "nodate"}]}
    host = (
        FakeHostBuilder()
        .with_http_response("GET", _BASE, _ok(listing))
        .with_http_response("GET", f"{_BASE}/new", _ok({"internalDate": _AFTER_CUTOFF}), params={"format": "minimal"})
        .with_http_response("GET", f"{_BASE}/new", _ok(_full("new", "Hello")), params={"format": "full"})
        .with_http_response("GET", f"{_BASE}/old", _ok({"internalDate": _BEFORE_CUTOFF}), params={"format": "minimal"})
        .with_http_error("GET", f"{_BASE}/broken", 404)
        .with_http_response("GET", f"{_BASE}/nodate", _ok({"id": "nodate"}), params={"format": "minimal"})
        .build()
    )
    result = await GmailPlugin().execute({"op": "mail_received", **_OAUTH, "query": "label:inbox"}, _TRIGGER_CTX, host)

    assert result.is_triggered
    assert result.data["count"] == 1
    assert result.data["id"] == "new"
    assert result.data["thread_id"] == "t-new"
    assert result.data["subject"] == "Hello"
    assert result.data["internal_date"] == "2025-01-01T12:01:00Z"
    assert [m["id"] for m in result.data["messages"]] == ["new"]
    assert host.http.calls[0]["params"]["q"] == "label:inbox after:2024/12/31"
    assert host.http.calls[0]["params"]["maxResults"] == 100
    assert host.log.warning.call_count == 2


async def test_mail_received_stops_at_max_messages() -> None:
    listing = {"messages": [{"id": "a"}, {"id": "b"}]}
    host = (
        FakeHostBuilder()
        .with_http_response("GET", _BASE, _ok(listing))
        .with_http_response("GET", f"{_BASE}/a", _ok({"internalDate": _AFTER_CUTOFF}), params={"format": "minimal"})
        .with_http_response("GET", f"{_BASE}/a", _ok(_full("a", "A")), params={"format": "full"})
        .build()
    )
    result = await GmailPlugin().execute(
        {"op": "mail_received", **_OAUTH, "max_messages_per_poll": 1}, _TRIGGER_CTX, host
    )

    assert result.data["count"] == 1
    assert all("/b" not in c["url"] for c in host.http.calls)


async def test_mail_received_paginates_until_enough_candidates() -> None:
    host = (
        FakeHostBuilder()
        .with_http_response("GET", _BASE, _ok({"messages": [{"id": "a"}], "nextPageToken": "p2"}), times=1)
        .with_http_response("GET", _BASE, _ok({"messages": [{"id": "b"}], "nextPageToken": "p3"}), params={"pageToken": "p2"})
        .with_http_response("GET", f"{_BASE}/a", _ok({"internalDate": _BEFORE_CUTOFF}), params={"format": "minimal"})
        .with_http_response("GET", f"{_BASE}/b", _ok({"internalDate": _BEFORE_CUTOFF}), params={"format": "minimal"})
        .build()
    )
    result = await GmailPlugin().execute(
        {"op": "mail_received", **_OAUTH, "max_messages_per_poll": 1}, _TRIGGER_CTX, host
    )

    assert result.data == {"triggered": False}
    list_calls = [c for c in host.http.calls if c["url"] == _BASE]
    assert len(list_calls) == 2


async def test_mail_received_nothing_listed() -> None:
    host = FakeHostBuilder().with_http_response("GET", _BASE, _ok({})).build()
    result = await GmailPlugin().execute({"op": "mail_received", **_OAUTH}, _TRIGGER_CTX, host)

    assert result.data == {"triggered": False}
