"""Google Drive plugin: file management and a polling trigger for new files.

File content moves between Drive and the host's internal storage; ``upload``
reads a ``storage:///`` URI and ``download``/``export`` return one.
"""

from __future__ import annotations

from typing import Any

from gworkspace_sdk import HttpRequestFailed, NonRetryableError, PluginResult, RetryableError

from .._google import SERVICE_ACCOUNT_PROPERTIES, map_api_error, read_timeout, resolve_google_token
from .client import DRIVE_METADATA_READONLY_SCOPE, DRIVE_SCOPE, _DriveClient
from .triggers import file_created_trigger

CREATE_FIELDS = "id, name, size, version, createdTime, parents, trashed"
LIST_FIELDS = "nextPageToken, files(id, name, size, version, createdTime, parents, trashed, mimeType)"
CORPORA = ["user", "domain", "teamDrive", "allTeamDrives"]


def _int_or_none(value: Any) -> int | None:
    return int(value) if value is not None else None


def drive_file(raw: dict[str, Any] | None) -> dict[str, Any] | None:
    """Map a Drive ``File`` resource to the plugin's file model."""
    if raw is None:
        return None
    return {
        "id": raw.get("id"),
        "name": raw.get("name"),
        "size": _int_or_none(raw.get("size")),
        "version": _int_or_none(raw.get("version")),
        "mime_type": raw.get("mimeType"),
        "created_time": raw.get("createdTime"),
        "parents": raw.get("parents"),
        "trashed": raw.get("trashed"),
    }


def file_metadata(params: dict[str, Any]) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    if params.get("name") is not None:
        metadata["name"] = params["name"]
    if params.get("parents"):
        metadata["parents"] = list(params["parents"])
    if params.get("mime_type") is not None:
        metadata["mimeType"] = params["mime_type"]
    if params.get("team_drive_id") is not None:
        metadata["teamDriveId"] = params["team_drive_id"]
    if params.get("description") is not None:
        metadata["description"] = params["description"]
    return metadata


# ---------------------------------------------------------------------------
# Per-op schemas
# ---------------------------------------------------------------------------

_METADATA_PROPERTIES: dict[str, Any] = {
    "name": {"type": ["string", "null"]},
    "parents": {"type": ["array", "null"], "items": {"type": "string"}, "description": "Parent folder ids"},
    "mime_type": {"type": ["string", "null"], "description": "Target MIME type, e.g. a Google Apps type"},
    "team_drive_id": {"type": ["string", "null"]},
    "description": {"type": ["string", "null"]},
}


def _op(name: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"op": {"type": "string", "enum": [name]}, **SERVICE_ACCOUNT_PROPERTIES, **properties},
        "required": ["op", *required],
        "additionalProperties": False,
    }


_OP_SCHEMAS: dict[str, dict[str, Any]] = {
    "create": _op("create", dict(_METADATA_PROPERTIES), []),
    "upload": _op(
        "upload",
        {
            **_METADATA_PROPERTIES,
            "from": {"type": "string", "description": "storage:/// URI of the content to upload"},
            "file_id": {"type": ["string", "null"], "description": "Update this file instead of creating one"},
            "content_type": {"type": "string"},
        },
        ["from", "content_type"],
    ),
    "download": _op("download", {"file_id": {"type": "string"}}, ["file_id"]),
    "export": _op(
        "export",
        {"file_id": {"type": "string"}, "content_type": {"type": "string", "description": "Export MIME type"}},
        ["file_id", "content_type"],
    ),
    "list": _op(
        "list",
        {
            "query": {"type": ["string", "null"], "description": "Drive search query"},
            "corpora": {"type": ["array", "null"], "items": {"type": "string", "enum": CORPORA}},
        },
        [],
    ),
    "delete": _op("delete", {"file_id": {"type": "string"}}, ["file_id"]),
    "file_created_trigger": _op(
        "file_created_trigger",
        {
            "folder_id": {"type": ["string", "null"]},
            "mime_types": {"type": ["array", "null"], "items": {"type": "string"}},
            "owner_email": {"type": ["string", "null"]},
            "include_subfolders": {"type": "boolean", "default": False},
            "interval": {"type": "string", "default": "PT5M"},
            "max_files_per_poll": {"type": "integer", "minimum": 1, "maximum": 1000, "default": 100},
        },
        [],
    ),
}

_FILE_OUT = {
    "type": ["object", "null"],
    "properties": {
        "id": {"type": ["string", "null"]},
        "name": {"type": ["string", "null"]},
        "size": {"type": ["integer", "null"]},
        "version": {"type": ["integer", "null"]},
        "mime_type": {"type": ["string", "null"]},
        "created_time": {"type": ["string", "null"]},
        "parents": {"type": ["array", "null"], "items": {"type": "string"}},
        "trashed": {"type": ["boolean", "null"]},
    },
    "additionalProperties": False,
}


class DrivePlugin:
    name: str = "gdrive"
    version: str = "1"

    def get_schema(self) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        for schema in _OP_SCHEMAS.values():
            properties.update(schema["properties"])
        properties["op"] = {"type": "string", "enum": list(_OP_SCHEMAS)}
        return {"type": "object", "properties": properties, "required": ["op"]}

    def get_output_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file": _FILE_OUT,
                "files": {"type": "array", "items": {"type": "object"}},
                "uri": {"type": "string"},
                "file_id": {"type": ["string", "null"]},
                "triggered": {"type": "boolean"},
                "count": {"type": "integer"},
                "file_name": {"type": ["string", "null"]},
                "mime_type": {"type": ["string", "null"]},
                "created_time": {"type": ["string", "null"]},
                "last_created_time": {"type": "string"},
            },
            "additionalProperties": False,
        }

    def get_schema_for_op(self, op_name: str) -> dict[str, Any] | None:
        return _OP_SCHEMAS.get(op_name)

    async def execute(self, params: dict[str, Any], context: Any, host: Any) -> PluginResult:
        op = params.get("op")
        if op not in _OP_SCHEMAS:
            return PluginResult.err(f"Unknown op: {op}", code="invalid_params")

        default_scope = DRIVE_METADATA_READONLY_SCOPE if op == "file_created_trigger" else DRIVE_SCOPE
        token, err = await resolve_google_token(params, host, [default_scope])
        if err:
            return err
        client = _DriveClient(token, host, timeout=read_timeout(params))

        try:
            if op == "file_created_trigger":
                return await file_created_trigger(client, params, context, host)
            return await getattr(self, f"_{op}")(client, params, host)
        except (RetryableError, NonRetryableError, HttpRequestFailed) as exc:
            return map_api_error(exc, not_found=f"File not found: {params.get('file_id')}")

    async def _create(self, client: _DriveClient, params: dict[str, Any], host: Any) -> PluginResult:
        created = await client.create(file_metadata(params), CREATE_FIELDS)
        host.log.debug(f"Created '{created.get('name')}' in '{created.get('parents')}'")
        return PluginResult.ok(data={"file": drive_file(created)})

    async def _upload(self, client: _DriveClient, params: dict[str, Any], host: Any) -> PluginResult:
        try:
            content = await host.storage.read_file(params["from"])
        except Exception as e:
            return PluginResult.err(f"Unable to read '{params['from']}': {e}", code="invalid_params")
        metadata = file_metadata(params)
        file_id = params.get("file_id") or None
        if file_id:
            # parents cannot be set through the metadata of an update
            metadata.pop("parents", None)
        uploaded = await client.upload(metadata, content, params["content_type"], file_id=file_id)
        host.log.debug(f"Upload from '{params['from']}' to '{params.get('parents')}'")
        out = drive_file(uploaded) or {}
        # Drive reports no usable size for Google Apps files
        out["size"] = len(content)
        return PluginResult.ok(data={"file": out})

    async def _download(self, client: _DriveClient, params: dict[str, Any], host: Any) -> PluginResult:
        file_id = params["file_id"]
        meta = await client.get(file_id)
        content = await client.download(file_id)
        uri = await host.storage.put_file(meta.get("name") or file_id, content)
        host.log.debug(f"Download from '{file_id}'")
        return PluginResult.ok(data={"uri": uri, "file": drive_file(meta)})

    async def _export(self, client: _DriveClient, params: dict[str, Any], host: Any) -> PluginResult:
        file_id = params["file_id"]
        meta = await client.get(file_id)
        content = await client.export(file_id, params["content_type"])
        uri = await host.storage.put_file(meta.get("name") or file_id, content)
        out = drive_file(meta) or {}
        out["size"] = len(content)
        host.log.debug(f"Export of '{file_id}' as '{params['content_type']}'")
        return PluginResult.ok(data={"uri": uri, "file": out})

    async def _list(self, client: _DriveClient, params: dict[str, Any], host: Any) -> PluginResult:
        base: dict[str, Any] = {
            "fields": LIST_FIELDS,
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        if params.get("query"):
            base["q"] = params["query"]
        if params.get("corpora"):
            base["corpora"] = ",".join(params["corpora"])

        files: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            page_params = dict(base)
            if page_token:
                page_params["pageToken"] = page_token
            body = await client.list_page(page_params)
            files.extend(drive_file(f) for f in body.get("files") or [])
            page_token = body.get("nextPageToken")
            if not page_token:
                break
        host.log.debug(f"Found '{len(files)}' files from query '{params.get('query')}'")
        return PluginResult.ok(data={"files": files})

    async def _delete(self, client: _DriveClient, params: dict[str, Any], host: Any) -> PluginResult:
        await client.delete(params["file_id"], supportsTeamDrives=True)
        host.log.debug(f"Deleted '{params['file_id']}'")
        return PluginResult.ok(data={"file_id": params["file_id"]})
