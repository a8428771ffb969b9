"""Polling trigger for messages received in a Gmail mailbox."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from gworkspace_sdk import PluginResult
from gworkspace_sdk.polling import compute_cutoff, from_epoch_millis, parse_duration, to_rfc3339

from .client import _GmailClient
from .mime import convert_message

DEFAULT_INTERVAL = timedelta(minutes=5)
LIST_PAGE_SIZE = 100

_FIRST_MESSAGE_FIELDS = (
    "id",
    "thread_id",
    "subject",
    "from",
    "to",
    "cc",
    "bcc",
    "snippet",
    "internal_date",
    "headers",
    "label_ids",
    "history_id",
    "size_estimate",
)


def build_search_query(query: str | None, cutoff: datetime) -> str:
    """User query plus a day-granular ``after:`` filter one day before ``cutoff``."""
    parts = []
    if query and query.strip():
        parts.append(query)
    parts.append("after:" + (cutoff - timedelta(days=1)).strftime("%Y/%m/%d"))
    return " ".join(parts)


async def _candidate_ids(client: _GmailClient, params: dict[str, Any], query: str, limit: int) -> list[str]:
    ids: list[str] = []
    page_token: str | None = None
    while True:
        list_params: dict[str, Any] = {
            "q": query,
            "includeSpamTrash": bool(params.get("include_spam_trash", False)),
            "maxResults": LIST_PAGE_SIZE,
        }
        if params.get("label_ids"):
            list_params["labelIds"] = list(params["label_ids"])
        if page_token:
            list_params["pageToken"] = page_token
        body = await client.list(list_params)
        ids.extend(m["id"] for m in body.get("messages") or [] if m.get("id"))
        page_token = body.get("nextPageToken")
        if not page_token or len(ids) >= limit:
            return ids


async def mail_received(client: _GmailClient, params: dict[str, Any], context: Any, host: Any) -> PluginResult:
    try:
        interval = parse_duration(params.get("interval"), DEFAULT_INTERVAL)
        lookback = parse_duration(params.get("initial_lookback"))
    except ValueError as e:
        return PluginResult.err(str(e), code="invalid_params")
    max_messages = int(params.get("max_messages_per_poll") or 50)

    cutoff = compute_cutoff(getattr(context, "next_execution_date", None), interval, lookback=lookback)
    host.log.debug(f"Checking for messages received after: {to_rfc3339(cutoff)}")

    query = build_search_query(params.get("query"), cutoff)
    host.log.debug(f"Gmail search query: {query}")
    candidates = await _candidate_ids(client, params, query, max_messages * 2)
    if not candidates:
        host.log.debug("No candidate messages found")
        return PluginResult.not_triggered()

    messages: list[dict[str, Any]] = []
    for message_id in candidates:
        if len(messages) >= max_messages:
            host.log.debug(f"Reached max_messages_per_poll limit of {max_messages}")
            break
        try:
            minimal = await client.get(message_id, "minimal")
            received = from_epoch_millis(minimal.get("internalDate"))
            if received is None:
                host.log.warning(f"Message {message_id} has no internalDate, skipping")
                continue
            if received > cutoff:
                messages.append(convert_message(await client.get(message_id, "full")))
            else:
                host.log.debug(f"Skipped message {message_id} (too old: {to_rfc3339(received)})")
        except Exception as e:
            host.log.warning(f"Error processing message {message_id}: {e}")

    if not messages:
        host.log.debug("No new messages after timestamp filtering")
        return PluginResult.not_triggered()

    host.log.info(f"Found {len(messages)} new message(s) after {to_rfc3339(cutoff)}")
    first = messages[0]
    return PluginResult.triggered(
        {
            "messages": messages,
            "count": len(messages),
            **{field: first.get(field) for field in _FIRST_MESSAGE_FIELDS},
        }
    )
