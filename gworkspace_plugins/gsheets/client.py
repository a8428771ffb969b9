"""Private Google Sheets REST client.

Also reaches the two Drive endpoints the Sheets API has no equivalent for:
file deletion and the revision list.
"""

from __future__ import annotations

import urllib.parse
from typing import Any

from gworkspace_sdk import RetryConfig

from .._google import GoogleApiClient

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
SHEETS_READONLY_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
DRIVE_METADATA_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.metadata.readonly"


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="")


class _SheetsClient(GoogleApiClient):
    BASE_URL: str = "https://sheets.googleapis.com/v4/spreadsheets"
    DRIVE_FILES_URL: str = "https://www.googleapis.com/drive/v3/files"
    RETRY = RetryConfig(max_retries=5, base_delay=1.0, max_delay=10.0, max_elapsed=120.0)

    def spreadsheet_url(self, spreadsheet_id: str) -> str:
        return f"{self.BASE_URL}/{_quote(spreadsheet_id)}"

    def values_url(self, spreadsheet_id: str, range_: str, action: str = "") -> str:
        return f"{self.spreadsheet_url(spreadsheet_id)}/values/{_quote(range_)}{action}"

    async def create(self, title: str) -> dict[str, Any]:
        return await self._request("POST", self.BASE_URL, json={"properties": {"title": title}})

    async def get(self, spreadsheet_id: str) -> dict[str, Any]:
        return await self._request("GET", self.spreadsheet_url(spreadsheet_id)) or {}

    async def get_values(self, spreadsheet_id: str, range_: str, params: dict[str, Any]) -> dict[str, Any]:
        return await self._request("GET", self.values_url(spreadsheet_id, range_), params=params) or {}

    async def batch_get(self, spreadsheet_id: str, ranges: list[str], params: dict[str, Any]) -> dict[str, Any]:
        # list values become a repeated query parameter
        query = {"ranges": list(ranges), **params}
        return await self._request(
            "GET", f"{self.spreadsheet_url(spreadsheet_id)}/values:batchGet", params=query
        ) or {}

    async def update(
        self, spreadsheet_id: str, range_: str, values: list[list[Any]], params: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "PUT", self.values_url(spreadsheet_id, range_), params=params, json={"values": values}
        ) or {}

    async def append(
        self, spreadsheet_id: str, range_: str, values: list[list[Any]], params: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "POST", self.values_url(spreadsheet_id, range_, ":append"), params=params, json={"values": values}
        ) or {}

    async def clear(self, spreadsheet_id: str, range_: str) -> dict[str, Any]:
        return await self._request("POST", self.values_url(spreadsheet_id, range_, ":clear"), json={}) or {}

    async def delete_file(self, file_id: str) -> None:
        await self._request(
            "DELETE", f"{self.DRIVE_FILES_URL}/{_quote(file_id)}", params={"supportsTeamDrives": True}
        )

    async def revisions(self, file_id: str) -> list[dict[str, Any]]:
        body = await self._request(
            "GET",
            f"{self.DRIVE_FILES_URL}/{_quote(file_id)}/revisions",
            params={"fields": "revisions(id,modifiedTime,lastModifyingUser)"},
        )
        return (body or {}).get("revisions") or []
