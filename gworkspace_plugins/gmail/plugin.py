"""Gmail plugin: list, read and send messages, and poll for new mail.

Gmail acts on the mailbox of a user, so every op authenticates with that
user's OAuth client and refresh token through ``host.auth.oauth_token``.
"""

from __future__ import annotations

from typing import Any

from gworkspace_sdk import HttpRequestFailed, NonRetryableError, PluginResult, RetryableError

from .._google import OAUTH_PROPERTIES, map_api_error, read_timeout, resolve_oauth_token
from .client import GMAIL_SCOPES, _GmailClient
from .mime import build_message, convert_message, encode_raw
from .triggers import mail_received

MAX_LIST_RESULTS = 500


def _op(name: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"op": {"type": "string", "enum": [name]}, **OAUTH_PROPERTIES, **properties},
        "required": ["op", *required],
        "additionalProperties": False,
    }


_ADDRESSES = {"type": ["array", "null"], "items": {"type": "string"}}

_OP_SCHEMAS: dict[str, dict[str, Any]] = {
    "list": _op(
        "list",
        {
            "query": {"type": ["string", "null"], "description": "Gmail search query, e.g. 'is:unread'"},
            "label_ids": {"type": ["array", "null"], "items": {"type": "string"}},
            "max_results": {"type": "integer", "minimum": 1, "default": 100},
            "include_spam_trash": {"type": "boolean", "default": False},
        },
        [],
    ),
    "get": _op(
        "get",
        {
            "message_id": {"type": "string"},
            "format": {"type": "string", "enum": ["minimal", "full", "raw", "metadata"], "default": "full"},
        },
        ["message_id"],
    ),
    "send": _op(
        "send",
        {
            "to": {"type": "array", "items": {"type": "string"}, "minItems": 1},
            "cc": _ADDRESSES,
            "bcc": _ADDRESSES,
            "subject": {"type": ["string", "null"]},
            "text_body": {"type": ["string", "null"]},
            "html_body": {"type": ["string", "null"]},
            "from": {"type": ["string", "null"]},
            "attachments": {"type": ["array", "null"], "items": {"type": "string"}, "description": "storage:/// URIs"},
        },
        ["to"],
    ),
    "mail_received": _op(
        "mail_received",
        {
            "query": {"type": ["string", "null"]},
            "label_ids": {"type": ["array", "null"], "items": {"type": "string"}},
            "include_spam_trash": {"type": "boolean", "default": False},
            "interval": {"type": "string", "default": "PT5M"},
            "max_messages_per_poll": {"type": "integer", "minimum": 1, "default": 50},
            "initial_lookback": {"type": ["string", "null"], "description": "ISO-8601 duration for the first poll"},
        },
        [],
    ),
}


class GmailPlugin:
    name: str = "gmail"
    version: str = "1"

    def get_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for schema in _OP_SCHEMAS.values():
            properties.update(schema["properties"])
        properties["op"] = {"type": "string", "enum": list(_OP_SCHEMAS)}
        return {"type": "object", "properties": properties, "required": ["op"]}

    def get_output_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "messages": {"type": "array", "items": {"type": "object"}},
                "result_size_estimate": {"type": "integer"},
                "next_page_token": {"type": ["string", "null"]},
                "message": {"type": "object"},
                "message_id": {"type": ["string", "null"]},
                "triggered": {"type": "boolean"},
                "count": {"type": "integer"},
                "id": {"type": ["string", "null"]},
                "thread_id": {"type": ["string", "null"]},
                "subject": {"type": ["string", "null"]},
                "from": {"type": ["string", "null"]},
                "to": {"type": ["array", "null"]},
                "cc": {"type": ["array", "null"]},
                "bcc": {"type": ["array", "null"]},
                "snippet": {"type": ["string", "null"]},
                "internal_date": {"type": ["string", "null"]},
                "headers": {"type": ["object", "null"]},
                "label_ids": {"type": ["array", "null"]},
                "history_id": {"type": ["string", "null"]},
                "size_estimate": {"type": ["integer", "null"]},
            },
            "additionalProperties": False,
        }

    def get_schema_for_op(self, op_name: str) -> dict[str, Any] | None:
        return _OP_SCHEMAS.get(op_name)

    async def execute(self, params: dict[str, Any], context: Any, host: Any) -> PluginResult:
        op = params.get("op")
        if op not in _OP_SCHEMAS:
            return PluginResult.err(f"Unknown op: {op}", code="invalid_params")

        token, err = await resolve_oauth_token(params, host, GMAIL_SCOPES)
        if err:
            return err
        client = _GmailClient(token, host, timeout=read_timeout(params))

        try:
            if op == "mail_received":
                return await mail_received(client, params, context, host)
            return await getattr(self, f"_{op}")(client, params, host)
        except (RetryableError, NonRetryableError, HttpRequestFailed) as exc:
            return map_api_error(exc, not_found=f"Message not found: {params.get('message_id')}")

    async def _list(self, client: _GmailClient, params: dict[str, Any], host: Any) -> PluginResult:
        query: dict[str, Any] = {
            "maxResults": min(int(params.get("max_results") or 100), MAX_LIST_RESULTS),
            "includeSpamTrash": bool(params.get("include_spam_trash", False)),
        }
        if (params.get("query") or "").strip():
            query["q"] = params["query"]
        if params.get("label_ids"):
            query["labelIds"] = list(params["label_ids"])
        body = await client.list(query)
        messages = body.get("messages") or []
        host.log.info(f"Retrieved {len(messages)} messages")
        return PluginResult.ok(
            data={
                "messages": [{"id": m.get("id"), "thread_id": m.get("threadId")} for m in messages],
                "result_size_estimate": int(body.get("resultSizeEstimate") or 0),
                "next_page_token": body.get("nextPageToken"),
            }
        )

    async def _get(self, client: _GmailClient, params: dict[str, Any], host: Any) -> PluginResult:
        raw = await client.get(params["message_id"], params.get("format") or "full")
        return PluginResult.ok(data={"message": convert_message(raw)})

    async def _send(self, client: _GmailClient, params: dict[str, Any], host: Any) -> PluginResult:
        attachments: list[tuple[str, bytes]] = []
        for uri in params.get("attachments") or []:
            try:
                data = await host.storage.read_file(uri)
            except Exception as e:
                return PluginResult.err(f"Unable to read attachment '{uri}': {e}", code="invalid_params")
            attachments.append((uri.rstrip("/").rsplit("/", 1)[-1], data))

        msg = build_message(
            to=list(params["to"]),
            cc=params.get("cc"),
            bcc=params.get("bcc"),
            subject=params.get("subject"),
            text_body=params.get("text_body"),
            html_body=params.get("html_body"),
            sender=params.get("from"),
            attachments=attachments,
        )
        sent = await client.send(encode_raw(msg))
        host.log.info(f"Email sent successfully with message ID: {sent.get('id')}")
        return PluginResult.ok(data={"message_id": sent.get("id"), "thread_id": sent.get("threadId")})
