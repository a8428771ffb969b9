"""Private Google Calendar REST client."""

from __future__ import annotations

import urllib.parse
from typing import Any

from .._google import GoogleApiClient

CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="")


class _CalendarClient(GoogleApiClient):
    BASE_URL: str = "https://www.googleapis.com/calendar/v3"

    def events_url(self, calendar_id: str, event_id: str | None = None) -> str:
        url = f"{self.BASE_URL}/calendars/{_quote(calendar_id)}/events"
        return f"{url}/{_quote(event_id)}" if event_id else url

    async def insert(self, calendar_id: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self.events_url(calendar_id), params={"fields": "id"}, json=body)

    async def get(
        self,
        calendar_id: str,
        event_id: str,
        *,
        max_attendees: int | None = None,
        always_include_email: bool = False,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"alwaysIncludeEmail": always_include_email}
        if max_attendees is not None:
            params["maxAttendees"] = max_attendees
        return await self._request("GET", self.events_url(calendar_id, event_id), params=params)

    async def list(self, calendar_id: str, params: dict[str, Any]) -> dict[str, Any]:
        return await self._request("GET", self.events_url(calendar_id), params=params) or {}

    async def patch(self, calendar_id: str, event_id: str, body: dict[str, Any], send_updates: str) -> dict[str, Any]:
        return await self._request(
            "PATCH", self.events_url(calendar_id, event_id), params={"sendUpdates": send_updates}, json=body
        )

    async def update(self, calendar_id: str, event_id: str, body: dict[str, Any], send_updates: str) -> dict[str, Any]:
        return await self._request(
            "PUT", self.events_url(calendar_id, event_id), params={"sendUpdates": send_updates}, json=body
        )

    async def delete(self, calendar_id: str, event_id: str, send_updates: str) -> None:
        await self._request("DELETE", self.events_url(calendar_id, event_id), params={"sendUpdates": send_updates})
