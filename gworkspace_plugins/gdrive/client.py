"""Private Google Drive REST client."""

from __future__ import annotations

import json
import urllib.parse
import uuid
from typing import Any

from .._google import GoogleApiClient

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
DRIVE_METADATA_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.metadata.readonly"

FILE_FIELDS = "id, name, size, version, createdTime, parents, trashed, mimeType"


def multipart_related(metadata: dict[str, Any], content: bytes, content_type: str) -> tuple[bytes, str]:
    """Encode a Drive multipart upload body, returning ``(body, content_type_header)``."""
    boundary = f"gworkspace-{uuid.uuid4().hex}"
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + content + tail, f"multipart/related; boundary={boundary}"


class _DriveClient(GoogleApiClient):
    BASE_URL: str = "https://www.googleapis.com/drive/v3"
    UPLOAD_URL: str = "https://www.googleapis.com/upload/drive/v3"

    def file_url(self, file_id: str | None = None, *, upload: bool = False) -> str:
        base = self.UPLOAD_URL if upload else self.BASE_URL
        if file_id is None:
            return f"{base}/files"
        return f"{base}/files/{urllib.parse.quote(file_id, safe='')}"

    async def create(self, metadata: dict[str, Any], fields: str) -> dict[str, Any]:
        return await self._request(
            "POST", self.file_url(), params={"fields": fields, "supportsAllDrives": True}, json=metadata
        )

    async def upload(
        self,
        metadata: dict[str, Any],
        content: bytes,
        content_type: str,
        *,
        file_id: str | None = None,
        fields: str = FILE_FIELDS,
    ) -> dict[str, Any]:
        body, header = multipart_related(metadata, content, content_type)
        params: dict[str, Any] = {"uploadType": "multipart", "fields": fields, "supportsAllDrives": True}
        method = "POST" if file_id is None else "PATCH"
        return await self._request(
            method, self.file_url(file_id, upload=True), params=params, content=body, headers={"Content-Type": header}
        )

    async def get(self, file_id: str, fields: str = FILE_FIELDS) -> dict[str, Any]:
        return await self._request(
            "GET", self.file_url(file_id), params={"fields": fields, "supportsAllDrives": True}
        )

    async def download(self, file_id: str) -> bytes:
        return await self._request_bytes(
            "GET", self.file_url(file_id), params={"alt": "media", "supportsAllDrives": True}
        )

    async def export(self, file_id: str, mime_type: str) -> bytes:
        return await self._request_bytes("GET", f"{self.file_url(file_id)}/export", params={"mimeType": mime_type})

    async def list_page(self, params: dict[str, Any]) -> dict[str, Any]:
        return await self._request("GET", self.file_url(), params=params) or {}

    async def delete(self, file_id: str, **params: Any) -> None:
        await self._request("DELETE", self.file_url(file_id), params=params)
