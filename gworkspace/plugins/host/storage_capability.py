"""``host.storage``: JSON entries and ``storage:///`` files for one user and plugin."""

from __future__ import annotations

import json
from typing import Any

from ...core.config import get_settings_instance
from ._storage_ops import file_put, file_read, storage_delete, storage_get, storage_set
from .base import ImmutableCapabilityMixin


class StorageCapability(ImmutableCapabilityMixin):
    """JSON values keyed by namespace, plus task files.

    Sheets reads land here as ``.jsonl`` files and Gmail attachments and
    Drive uploads are read back from here by URI.
    """

    __slots__ = ("_max_bytes", "_plugin_name", "_user_id")
    NAMESPACE = "storage"

    _plugin_name: str
    _user_id: str
    _max_bytes: int

    def __init__(self, *, plugin_name: str, user_id: str):
        self._bind(
            _plugin_name=plugin_name,
            _user_id=user_id,
            _max_bytes=int(get_settings_instance().storage_object_max_bytes),
        )

    async def put(self, key: str, value: Any, *, namespace: str | None = None) -> None:
        """Store a JSON-serializable value. Optionally override namespace."""
        ns = namespace or self.NAMESPACE
        payload = json.dumps(value, default=str)
        if self._max_bytes and len(payload.encode("utf-8")) > self._max_bytes:
            raise ValueError(f"storage object too large ({len(payload)} > {self._max_bytes})")
        await storage_set(self._user_id, self._plugin_name, ns, key, {"json": json.loads(payload)})

    async def get(self, key: str, *, namespace: str | None = None) -> Any | None:
        """Retrieve a value. Optionally override namespace."""
        ns = namespace or self.NAMESPACE
        raw = await storage_get(self._user_id, self._plugin_name, ns, key)
        return raw.get("json") if raw else None

    async def delete(self, key: str, *, namespace: str | None = None) -> None:
        """Delete a value. Optionally override namespace."""
        ns = namespace or self.NAMESPACE
        await storage_delete(self._user_id, self._plugin_name, ns, key)

    async def put_file(self, name: str, data: bytes) -> str:
        """Store a file and return its ``storage:///`` URI."""
        return await file_put(self._user_id, self._plugin_name, name, bytes(data))

    async def read_file(self, uri: str) -> bytes:
        return await file_read(uri)
