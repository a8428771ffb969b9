"""Low-level operations for plugin state and file storage.

JSON entries live under ``state_dir`` and are scoped by:

- ``user_id``: owner of the entry
- ``plugin_name``: the plugin identifier
- ``namespace``: logical grouping (e.g. "storage", "cursor")
- ``key``: the specific entry key

Files produced or consumed by tasks live under ``storage_dir`` and are
addressed by ``storage:///<relative path>`` URIs.

All disk access runs in a worker thread so callers never block the loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import urllib.parse
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ...core.config import get_settings_instance
from ...core.exceptions import InvalidStorageUriError, StorageObjectNotFoundError

logger = logging.getLogger(__name__)

STORAGE_SCHEME = "storage"

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def _safe(part: str) -> str:
    """Make an identifier usable as a single path segment."""
    cleaned = _UNSAFE.sub("_", part or "_")
    return cleaned if cleaned not in ("", ".", "..") else "_"


def _entry_path(user_id: str, plugin_name: str, namespace: str, key: str) -> Path:
    root = Path(get_settings_instance().state_dir)
    return root / _safe(plugin_name) / _safe(user_id) / _safe(namespace) / f"{_safe(key)}.json"


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: Path, value: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(f".{uuid.uuid4().hex}.tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(value, f)
    os.replace(tmp, path)


async def storage_get(user_id: str, plugin_name: str, namespace: str, key: str) -> dict[str, Any] | None:
    """Retrieve a storage entry's value dict, or None if not found."""
    path = _entry_path(user_id, plugin_name, namespace, key)
    try:
        return await asyncio.to_thread(_read_json, path)
    except json.JSONDecodeError as e:
        logger.warning(
            "Corrupt storage entry ignored",
            extra={"plugin_name": plugin_name, "namespace": namespace, "key": key, "error": str(e)},
        )
        return None


async def storage_set(user_id: str, plugin_name: str, namespace: str, key: str, value: dict[str, Any]) -> None:
    """Create or replace a storage entry."""
    path = _entry_path(user_id, plugin_name, namespace, key)
    entry = dict(value)
    entry["updated_at"] = datetime.now(UTC).isoformat()
    await asyncio.to_thread(_write_json, path, entry)


async def storage_delete(user_id: str, plugin_name: str, namespace: str, key: str) -> None:
    """Delete a storage entry. Missing entries are not an error."""
    path = _entry_path(user_id, plugin_name, namespace, key)
    await asyncio.to_thread(path.unlink, True)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def _file_root() -> Path:
    return Path(get_settings_instance().storage_dir).resolve()


def uri_to_path(uri: str) -> Path:
    """Resolve a ``storage:///`` URI to a path inside ``storage_dir``.

    Raises:
        InvalidStorageUriError: For other schemes or paths escaping the root.
    """
    parsed = urllib.parse.urlparse(uri or "")
    if parsed.scheme != STORAGE_SCHEME or parsed.netloc:
        raise InvalidStorageUriError(uri)
    rel = urllib.parse.unquote(parsed.path).lstrip("/")
    if not rel:
        raise InvalidStorageUriError(uri)
    root = _file_root()
    path = (root / rel).resolve()
    if root not in path.parents:
        raise InvalidStorageUriError(uri)
    return path


def path_to_uri(path: Path) -> str:
    rel = path.resolve().relative_to(_file_root()).as_posix()
    return f"{STORAGE_SCHEME}:///{urllib.parse.quote(rel)}"


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def file_put(user_id: str, plugin_name: str, name: str, data: bytes) -> str:
    """Store ``data`` under a fresh directory and return its URI."""
    path = _file_root() / _safe(plugin_name) / _safe(user_id) / uuid.uuid4().hex / _safe(name)
    await asyncio.to_thread(_write_bytes, path, data)
    return path_to_uri(path)


async def file_read(uri: str) -> bytes:
    """Read a stored file.

    Raises:
        InvalidStorageUriError: If ``uri`` is not a storage URI.
        StorageObjectNotFoundError: If nothing is stored at ``uri``.
    """
    path = uri_to_path(uri)
    if not path.is_file():
        raise StorageObjectNotFoundError(uri)
    return await asyncio.to_thread(path.read_bytes)
