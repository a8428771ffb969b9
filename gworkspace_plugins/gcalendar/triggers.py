"""Polling trigger for newly created calendar events."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from gworkspace_sdk import PluginResult
from gworkspace_sdk.polling import compute_cutoff, parse_duration, parse_rfc3339, to_rfc3339

from .client import _CalendarClient

MAX_EVENTS_PER_POLL = 2500
MIN_INTERVAL = timedelta(minutes=1)
DEFAULT_INTERVAL = timedelta(minutes=5)


def _event_time(raw: dict[str, Any] | None) -> dict[str, Any] | None:
    if not raw:
        return None
    return {
        "date_time": raw.get("dateTime"),
        "date": raw.get("date"),
        "time_zone": raw.get("timeZone"),
    }


def event_metadata(event: dict[str, Any]) -> dict[str, Any]:
    organizer = event.get("organizer")
    return {
        "id": event.get("id"),
        "summary": event.get("summary"),
        "description": event.get("description"),
        "location": event.get("location"),
        "status": event.get("status"),
        "html_link": event.get("htmlLink"),
        "created": event.get("created"),
        "updated": event.get("updated"),
        "start": _event_time(event.get("start")),
        "end": _event_time(event.get("end")),
        "organizer": (
            {
                "email": organizer.get("email"),
                "display_name": organizer.get("displayName"),
                "self": bool(organizer.get("self", False)),
            }
            if organizer
            else None
        ),
        "visibility": event.get("visibility"),
        "event_type": event.get("eventType"),
    }


def is_new_event(
    event: dict[str, Any],
    cutoff: datetime,
    *,
    organizer_email: str | None = None,
    event_status: str | None = None,
) -> bool:
    """Whether ``event`` was created after ``cutoff`` and matches the filters.

    An event without ``created`` passes the time check. Any failure while
    evaluating the event excludes it.
    """
    try:
        created = parse_rfc3339(event.get("created"))
        if created is not None and not created > cutoff:
            return False
        organizer = event.get("organizer")
        if organizer_email and organizer:
            if organizer_email.lower() != str(organizer.get("email") or "").lower():
                return False
        if event_status and event_status.lower() != str(event.get("status") or "").lower():
            return False
        return True
    except (TypeError, ValueError, AttributeError):
        return False


async def event_created_trigger(
    client: _CalendarClient, params: dict[str, Any], context: Any, host: Any
) -> PluginResult:
    try:
        interval = parse_duration(params.get("interval"), DEFAULT_INTERVAL)
    except ValueError as e:
        return PluginResult.err(str(e), code="invalid_params")
    if interval < MIN_INTERVAL:
        return PluginResult.err("Polling interval must be at least 1 minute (PT1M)", code="invalid_params")
    max_events = int(params.get("max_events_per_poll") or 100)
    if not 1 <= max_events <= MAX_EVENTS_PER_POLL:
        return PluginResult.err(
            f"max_events_per_poll must be between 1 and {MAX_EVENTS_PER_POLL}", code="invalid_params"
        )

    cutoff = compute_cutoff(getattr(context, "next_execution_date", None), interval)
    host.log.debug(f"Checking for events created after: {to_rfc3339(cutoff)}")

    calendar_ids = list(params.get("calendar_ids") or []) or ["primary"]
    query = (params.get("search_query") or "").strip()
    organizer_email = params.get("organizer_email") or None
    event_status = params.get("event_status") or None

    found: list[dict[str, Any]] = []
    for calendar_id in calendar_ids:
        list_params: dict[str, Any] = {
            "timeMin": to_rfc3339(cutoff),
            "orderBy": "updated",
            "singleEvents": True,
            "maxResults": max_events,
        }
        if query:
            list_params["q"] = query
        try:
            body = await client.list(calendar_id, list_params)
        except Exception as e:
            host.log.warning(f"Error checking calendar '{calendar_id}': {e}")
            continue
        items = body.get("items") or []
        host.log.debug(f"Found {len(items)} events in calendar '{calendar_id}', filtering for new ones")
        found.extend(
            event_metadata(ev)
            for ev in items
            if is_new_event(ev, cutoff, organizer_email=organizer_email, event_status=event_status)
        )

    if not found:
        return PluginResult.not_triggered()
    host.log.info(f"Found {len(found)} new event(s)")
    return PluginResult.triggered({"events": found})
