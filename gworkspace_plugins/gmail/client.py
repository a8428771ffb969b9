"""Private Gmail REST client for the authenticated user's mailbox."""

from __future__ import annotations

import urllib.parse
from typing import Any

from .._google import GoogleApiClient

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
]


class _GmailClient(GoogleApiClient):
    BASE_URL: str = "https://gmail.googleapis.com/gmail/v1/users/me"

    def message_url(self, message_id: str | None = None) -> str:
        url = f"{self.BASE_URL}/messages"
        return f"{url}/{urllib.parse.quote(message_id, safe='')}" if message_id else url

    async def list(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self._request("GET", self.message_url(), params=params) or {}

    async def get(self, message_id: str, fmt: str = "full") -> dict[str, Any]:
        return await self._request("GET", self.message_url(message_id), params={"format": fmt}) or {}

    async def send(self, raw: str) -> dict[str, Any]:
        return await self._request("POST", f"{self.message_url()}/send", json={"raw": raw}) or {}
