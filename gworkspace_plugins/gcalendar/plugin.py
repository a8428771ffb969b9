"""Google Calendar plugin: event CRUD and a polling trigger for new events.

Authenticates with a service account (or Application Default Credentials)
through ``host.auth.google_token``. Share the target calendars with the
service account's email address.
"""

from __future__ import annotations

from typing import Any

from gworkspace_sdk import HttpRequestFailed, NonRetryableError, PluginResult, RetryableError

from .._google import SERVICE_ACCOUNT_PROPERTIES, map_api_error, read_timeout, resolve_google_token
from .client import CALENDAR_SCOPE, _CalendarClient
from .triggers import MAX_EVENTS_PER_POLL, event_created_trigger


def _event(raw: dict[str, Any] | None) -> dict[str, Any] | None:
    if raw is None:
        return None
    return {
        "id": raw.get("id"),
        "status": raw.get("status"),
        "summary": raw.get("summary"),
        "description": raw.get("description"),
        "location": raw.get("location"),
    }


def _time_body(t: dict[str, Any] | None) -> dict[str, Any] | None:
    if not t:
        return None
    out = {}
    if t.get("date_time") is not None:
        out["dateTime"] = t["date_time"]
    if t.get("time_zone") is not None:
        out["timeZone"] = t["time_zone"]
    return out or None


def _attendee_body(a: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in (("displayName", a.get("display_name")), ("email", a.get("email"))) if v is not None}


def build_event_body(params: dict[str, Any]) -> dict[str, Any]:
    """Build an Events resource from op params, skipping absent fields."""
    body: dict[str, Any] = {}
    for key in ("summary", "description", "location", "status"):
        if params.get(key) is not None:
            body[key] = params[key]
    start = _time_body(params.get("start_time"))
    if start:
        body["start"] = start
    end = _time_body(params.get("end_time"))
    if end:
        body["end"] = end
    if params.get("attendees"):
        body["attendees"] = [_attendee_body(a) for a in params["attendees"]]
    if params.get("creator"):
        body["creator"] = _attendee_body(params["creator"])
    return body


# ---------------------------------------------------------------------------
# Per-op schemas
# ---------------------------------------------------------------------------

_TIME = {
    "type": "object",
    "properties": {
        "date_time": {"type": "string", "description": "RFC 3339 date-time"},
        "time_zone": {"type": ["string", "null"], "description": "IANA time zone, e.g. Europe/Paris"},
    },
    "additionalProperties": False,
}

_ATTENDEE = {
    "type": "object",
    "properties": {
        "display_name": {"type": ["string", "null"]},
        "email": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}

_SEND_UPDATES = {"type": "string", "enum": ["all", "none", "externalOnly"], "default": "none"}


def _op(name: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"op": {"type": "string", "enum": [name]}, **SERVICE_ACCOUNT_PROPERTIES, **properties},
        "required": ["op", *required],
        "additionalProperties": False,
    }


_OP_SCHEMAS: dict[str, dict[str, Any]] = {
    "insert_event": _op(
        "insert_event",
        {
            "calendar_id": {"type": "string"},
            "summary": {"type": "string"},
            "description": {"type": ["string", "null"]},
            "location": {"type": ["string", "null"]},
            "start_time": _TIME,
            "end_time": _TIME,
            "creator": _ATTENDEE,
            "attendees": {"type": ["array", "null"], "items": _ATTENDEE},
        },
        ["calendar_id", "summary", "start_time", "end_time"],
    ),
    "get_event": _op(
        "get_event",
        {
            "calendar_id": {"type": "string"},
            "event_id": {"type": "string"},
            "max_attendees": {"type": ["integer", "null"], "minimum": 1},
            "always_include_email": {"type": "boolean", "default": False},
        },
        ["calendar_id", "event_id"],
    ),
    "list_events": _op(
        "list_events",
        {
            "calendar_id": {"type": "string"},
            "time_min": {"type": ["string", "null"], "description": "RFC 3339 lower bound on event end time"},
            "time_max": {"type": ["string", "null"], "description": "RFC 3339 upper bound on event start time"},
            "q": {"type": ["string", "null"]},
            "single_events": {"type": "boolean", "default": True},
            "order_by": {"type": ["string", "null"], "enum": ["startTime", "updated", None]},
            "show_deleted": {"type": "boolean", "default": False},
            "max_results": {"type": ["integer", "null"], "minimum": 1, "maximum": 2500},
            "page_token": {"type": ["string", "null"]},
        },
        ["calendar_id"],
    ),
    "update_event": _op(
        "update_event",
        {
            "calendar_id": {"type": "string"},
            "event_id": {"type": "string"},
            "patch": {"type": "boolean", "default": True},
            "send_updates": _SEND_UPDATES,
            "summary": {"type": ["string", "null"]},
            "description": {"type": ["string", "null"]},
            "location": {"type": ["string", "null"]},
            "status": {"type": ["string", "null"], "enum": ["confirmed", "tentative", "cancelled", None]},
            "start_time": _TIME,
            "end_time": _TIME,
            "creator": _ATTENDEE,
            "attendees": {"type": ["array", "null"], "items": _ATTENDEE},
        },
        ["calendar_id", "event_id"],
    ),
    "delete_event": _op(
        "delete_event",
        {
            "calendar_id": {"type": "string"},
            "event_id": {"type": "string"},
            "send_updates": _SEND_UPDATES,
        },
        ["calendar_id", "event_id"],
    ),
    "event_created_trigger": _op(
        "event_created_trigger",
        {
            "calendar_ids": {"type": ["array", "null"], "items": {"type": "string"}, "default": ["primary"]},
            "search_query": {"type": ["string", "null"]},
            "organizer_email": {"type": ["string", "null"]},
            "event_status": {"type": ["string", "null"], "enum": ["CONFIRMED", "TENTATIVE", "CANCELLED", None]},
            "interval": {"type": "string", "default": "PT5M", "description": "ISO-8601 duration, at least PT1M"},
            "max_events_per_poll": {"type": "integer", "minimum": 1, "maximum": MAX_EVENTS_PER_POLL, "default": 100},
        },
        [],
    ),
}

_EVENT_OUT = {
    "type": ["object", "null"],
    "properties": {
        "id": {"type": ["string", "null"]},
        "status": {"type": ["string", "null"]},
        "summary": {"type": ["string", "null"]},
        "description": {"type": ["string", "null"]},
        "location": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}


class CalendarPlugin:
    name: str = "gcalendar"
    version: str = "1"

    def get_schema(self) -> dict[str, Any]:
        """Combined schema: the op enum plus the union of all op properties."""
        properties: dict[str, Any] = {}
        for schema in _OP_SCHEMAS.values():
            properties.update(schema["properties"])
        properties["op"] = {"type": "string", "enum": list(_OP_SCHEMAS)}
        return {"type": "object", "properties": properties, "required": ["op"]}

    def get_output_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "event": _EVENT_OUT,
                "metadata": {"type": "object"},
                "events": {"type": "array", "items": {"type": "object"}},
                "metadata_list": {"type": "array", "items": {"type": "object"}},
                "next_page_token": {"type": ["string", "null"]},
                "event_id": {"type": "string"},
                "triggered": {"type": "boolean"},
            },
            "additionalProperties": False,
        }

    def get_schema_for_op(self, op_name: str) -> dict[str, Any] | None:
        return _OP_SCHEMAS.get(op_name)

    async def execute(self, params: dict[str, Any], context: Any, host: Any) -> PluginResult:
        op = params.get("op")
        if op not in _OP_SCHEMAS:
            return PluginResult.err(f"Unknown op: {op}", code="invalid_params")

        token, err = await resolve_google_token(params, host, [CALENDAR_SCOPE])
        if err:
            return err
        client = _CalendarClient(token, host, timeout=read_timeout(params))

        try:
            if op == "event_created_trigger":
                return await event_created_trigger(client, params, context, host)
            return await getattr(self, f"_{op}")(client, params, host)
        except (RetryableError, NonRetryableError, HttpRequestFailed) as exc:
            return map_api_error(exc)

    async def _insert_event(self, client: _CalendarClient, params: dict[str, Any], host: Any) -> PluginResult:
        calendar_id = params["calendar_id"]
        created = await client.insert(calendar_id, build_event_body(params))
        host.log.debug(f"Inserted event '{created.get('id')}' in calendar '{calendar_id}'")
        return PluginResult.ok(data={"event": _event(created)})

    async def _get_event(self, client: _CalendarClient, params: dict[str, Any], host: Any) -> PluginResult:
        raw = await client.get(
            params["calendar_id"],
            params["event_id"],
            max_attendees=params.get("max_attendees"),
            always_include_email=bool(params.get("always_include_email", False)),
        )
        host.log.debug(f"Fetched event '{params['event_id']}' from calendar '{params['calendar_id']}'")
        return PluginResult.ok(data={"event": _event(raw), "metadata": raw or {}})

    async def _list_events(self, client: _CalendarClient, params: dict[str, Any], host: Any) -> PluginResult:
        query: dict[str, Any] = {
            "singleEvents": bool(params.get("single_events", True)),
            "showDeleted": bool(params.get("show_deleted", False)),
        }
        for key, api_key in (
            ("time_min", "timeMin"),
            ("time_max", "timeMax"),
            ("q", "q"),
            ("order_by", "orderBy"),
            ("max_results", "maxResults"),
            ("page_token", "pageToken"),
        ):
            if params.get(key) is not None:
                query[api_key] = params[key]
        body = await client.list(params["calendar_id"], query)
        items = body.get("items") or []
        return PluginResult.ok(
            data={
                "events": [_event(ev) for ev in items],
                "metadata_list": items,
                "next_page_token": body.get("nextPageToken"),
            }
        )

    async def _update_event(self, client: _CalendarClient, params: dict[str, Any], host: Any) -> PluginResult:
        calendar_id, event_id = params["calendar_id"], params["event_id"]
        send_updates = params.get("send_updates") or "none"
        changes = build_event_body(params)
        if params.get("patch", True):
            updated = await client.patch(calendar_id, event_id, changes, send_updates)
            action = "Patched"
        else:
            # PUT replaces the whole resource, so start from the stored event
            current = await client.get(calendar_id, event_id)
            updated = await client.update(calendar_id, event_id, {**(current or {}), **changes}, send_updates)
            action = "Updated"
        host.log.debug(f"{action} event '{event_id}' in calendar '{calendar_id}'")
        return PluginResult.ok(data={"event": _event(updated)})

    async def _delete_event(self, client: _CalendarClient, params: dict[str, Any], host: Any) -> PluginResult:
        await client.delete(params["calendar_id"], params["event_id"], params.get("send_updates") or "none")
        return PluginResult.ok(data={"event_id": params["event_id"]})
