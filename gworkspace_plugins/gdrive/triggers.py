"""Polling trigger for files created in Google Drive."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from gworkspace_sdk import PluginResult
from gworkspace_sdk.polling import compute_cutoff, parse_duration, to_rfc3339

from .client import _DriveClient

DEFAULT_INTERVAL = timedelta(minutes=5)

TRIGGER_FIELDS = (
    "files(id,name,mimeType,createdTime,modifiedTime,owners,parents,size,webViewLink,iconLink,thumbnailLink)"
)


def _quote(value: str) -> str:
    # Drive query string literals escape backslash and single quote
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_query(
    cutoff: datetime | None,
    *,
    folder_id: str | None = None,
    mime_types: list[str] | None = None,
    owner_email: str | None = None,
) -> str:
    parts = ["trashed = false"]
    if folder_id:
        parts.append(f"'{_quote(folder_id)}' in parents")
    if mime_types:
        parts.append("(" + " or ".join(f"mimeType = '{_quote(mt)}'" for mt in mime_types) + ")")
    if owner_email:
        parts.append(f"'{_quote(owner_email)}' in owners")
    if cutoff is not None:
        parts.append(f"createdTime > '{to_rfc3339(cutoff)}'")
    return " and ".join(parts)


def _file_variables(f: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": f.get("id"),
        "name": f.get("name"),
        "mime_type": f.get("mimeType"),
        "created_time": f.get("createdTime"),
        "modified_time": f.get("modifiedTime"),
        "owners": [
            {"email": o.get("emailAddress"), "display_name": o.get("displayName")} for o in f.get("owners") or []
        ],
        "parents": f.get("parents") or [],
        "size": int(f["size"]) if f.get("size") is not None else None,
        "web_view_link": f.get("webViewLink"),
        "icon_link": f.get("iconLink"),
        "thumbnail_link": f.get("thumbnailLink"),
    }


async def file_created_trigger(
    client: _DriveClient, params: dict[str, Any], context: Any, host: Any
) -> PluginResult:
    try:
        interval = parse_duration(params.get("interval"), DEFAULT_INTERVAL)
    except ValueError as e:
        return PluginResult.err(str(e), code="invalid_params")
    cutoff = compute_cutoff(getattr(context, "next_execution_date", None), interval)

    query = build_query(
        cutoff,
        folder_id=params.get("folder_id") or None,
        mime_types=list(params.get("mime_types") or []),
        owner_email=params.get("owner_email") or None,
    )
    host.log.debug(f"Executing Drive query: {query}")

    body = await client.list_page(
        {
            "q": query,
            "pageSize": int(params.get("max_files_per_poll") or 100),
            "orderBy": "createdTime",
            "fields": TRIGGER_FIELDS,
        }
    )
    files = body.get("files") or []
    if not files:
        host.log.debug("No new files found")
        return PluginResult.not_triggered()

    host.log.info(f"Found {len(files)} new file(s)")
    created = [f["createdTime"] for f in files if f.get("createdTime")]
    first = files[0]
    return PluginResult.triggered(
        {
            "files": [_file_variables(f) for f in files],
            "count": len(files),
            "file_id": first.get("id"),
            "file_name": first.get("name"),
            "mime_type": first.get("mimeType"),
            "created_time": first.get("createdTime"),
            "last_created_time": max(created) if created else to_rfc3339(cutoff),
        }
    )
