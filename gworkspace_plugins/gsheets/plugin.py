"""Google Sheets plugin: spreadsheet lifecycle, reads, writes and file loads.

Reads can return rows inline (``fetch``) or store them as JSON lines in the
host's internal storage (``store``). Loads parse CSV, JSON, ION, Avro,
Parquet or ORC files from storage into a range.
"""

from __future__ import annotations

import json
from typing import Any

from gworkspace_sdk import HttpRequestFailed, NonRetryableError, PluginResult, RetryableError

from .._google import SERVICE_ACCOUNT_PROPERTIES, map_api_error, read_timeout, resolve_google_token
from .client import (
    DRIVE_METADATA_READONLY_SCOPE,
    DRIVE_SCOPE,
    SHEETS_READONLY_SCOPE,
    SHEETS_SCOPE,
    _SheetsClient,
)
from .formats import Format, parse
from .triggers import sheet_modified_trigger

_DEFAULT_SCOPES: dict[str, list[str]] = {
    "delete_spreadsheet": [SHEETS_SCOPE, DRIVE_SCOPE],
    "sheet_modified_trigger": [SHEETS_READONLY_SCOPE, DRIVE_METADATA_READONLY_SCOPE],
}


def transform_rows(values: list[list[Any]] | None, header: bool) -> list[Any]:
    """Turn raw values into row dicts keyed by the first row, or keep them as lists."""
    if not values:
        return []
    if not header:
        return [list(row) for row in values]
    keys = [str(k) for k in values[0]]
    return [{k: (row[i] if i < len(row) else None) for i, k in enumerate(keys)} for row in values[1:]]


def json_lines(rows: list[Any]) -> bytes:
    return "".join(json.dumps(row, default=str) + "\n" for row in rows).encode("utf-8")


def value_rows(value: Any, direction: str = "ROWS") -> list[list[Any]]:
    """Shape ``write_value`` input: a string is one cell, a list one row or column."""
    if isinstance(value, str):
        return [[value]]
    if isinstance(value, list):
        if direction == "COLUMNS":
            return [[v] for v in value]
        return [list(value)]
    raise ValueError(f"Invalid value type '{type(value).__name__}'")


def file_rows(data: bytes, separator: str | None) -> list[list[Any]]:
    lines = data.decode("utf-8").splitlines()
    if separator is None:
        return [[line] for line in lines]
    return [line.split(separator) for line in lines]


# ---------------------------------------------------------------------------
# Per-op schemas
# ---------------------------------------------------------------------------

_READ_PROPERTIES: dict[str, Any] = {
    "spreadsheet_id": {"type": "string"},
    "value_render": {
        "type": "string",
        "enum": ["FORMATTED_VALUE", "UNFORMATTED_VALUE", "FORMULA"],
        "default": "UNFORMATTED_VALUE",
    },
    "date_time_render": {
        "type": "string",
        "enum": ["SERIAL_NUMBER", "FORMATTED_STRING"],
        "default": "FORMATTED_STRING",
    },
    "header": {"type": "boolean", "default": True, "description": "Use the first row as keys"},
    "fetch": {"type": "boolean", "default": False, "description": "Return rows in the output"},
    "store": {"type": "boolean", "default": True, "description": "Store rows as JSON lines in storage"},
}

_WRITE_PROPERTIES: dict[str, Any] = {
    "spreadsheet_id": {"type": "string"},
    "range": {"type": "string", "description": "A1 or R1C1 notation, e.g. Sheet1!A1:B2"},
    "write_operation": {"type": "string", "enum": ["UPDATE", "APPEND"]},
    "insert_data": {"type": ["string", "null"], "enum": ["OVERWRITE", "INSERT_ROWS", None]},
    "value_input": {"type": "string", "enum": ["RAW", "USER_ENTERED"]},
    "include_values_in_response": {"type": "boolean", "default": False},
    "value_render": _READ_PROPERTIES["value_render"],
    "date_time_render": _READ_PROPERTIES["date_time_render"],
}

_WRITE_REQUIRED = ["spreadsheet_id", "range", "write_operation", "value_input"]


def _op(name: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"op": {"type": "string", "enum": [name]}, **SERVICE_ACCOUNT_PROPERTIES, **properties},
        "required": ["op", *required],
        "additionalProperties": False,
    }


_OP_SCHEMAS: dict[str, dict[str, Any]] = {
    "create_spreadsheet": _op("create_spreadsheet", {"title": {"type": "string"}}, ["title"]),
    "delete_spreadsheet": _op("delete_spreadsheet", {"spreadsheet_id": {"type": "string"}}, ["spreadsheet_id"]),
    "read": _op(
        "read",
        {
            **_READ_PROPERTIES,
            "selected_sheets_title": {"type": ["array", "null"], "items": {"type": "string"}},
        },
        ["spreadsheet_id"],
    ),
    "read_range": _op("read_range", {**_READ_PROPERTIES, "range": {"type": "string"}}, ["spreadsheet_id", "range"]),
    "load": _op(
        "load",
        {
            "spreadsheet_id": {"type": "string"},
            "from": {"type": "string", "description": "storage:/// URI of the file to load"},
            "range": {"type": "string", "default": "Sheet1"},
            "header": {"type": "boolean", "default": False},
            "format": {"type": ["string", "null"], "enum": [*(f.value for f in Format), None]},
            "csv_options": {
                "type": ["object", "null"],
                "properties": {
                    "field_delimiter": {"type": "string", "default": ","},
                    "skip_leading_rows": {"type": ["integer", "null"], "minimum": 0},
                    "quote": {"type": ["string", "null"]},
                    "encoding": {"type": "string", "default": "UTF-8"},
                },
                "additionalProperties": False,
            },
            "avro_schema": {"type": ["string", "null"]},
            "insert_type": {"type": "string", "enum": ["UPDATE", "OVERWRITE", "APPEND"], "default": "UPDATE"},
        },
        ["spreadsheet_id", "from"],
    ),
    "write_file": _op(
        "write_file",
        {
            **_WRITE_PROPERTIES,
            "from": {"type": "string", "description": "storage:/// URI; one line per row"},
            "data_separator": {"type": ["string", "null"]},
        },
        [*_WRITE_REQUIRED, "from"],
    ),
    "write_value": _op(
        "write_value",
        {
            **_WRITE_PROPERTIES,
            "value": {"anyOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}]},
            "array_direction": {"type": "string", "enum": ["ROWS", "COLUMNS"], "default": "ROWS"},
        },
        [*_WRITE_REQUIRED, "value"],
    ),
    "sheet_modified_trigger": _op(
        "sheet_modified_trigger",
        {
            "spreadsheet_id": {"type": "string"},
            "sheet_name": {"type": ["string", "null"]},
            "range": {"type": ["string", "null"]},
            "include_details": {"type": "boolean", "default": False},
            "state_key": {"type": ["string", "null"]},
            "state_ttl": {"type": ["string", "null"], "description": "ISO-8601 duration"},
            "on": {"type": "string", "enum": ["CREATE", "UPDATE", "CREATE_OR_UPDATE"], "default": "CREATE_OR_UPDATE"},
            "interval": {"type": "string", "default": "PT5M"},
        },
        ["spreadsheet_id"],
    ),
}


class SheetsPlugin:
    name: str = "gsheets"
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
                "spreadsheet_id": {"type": "string"},
                "spreadsheet_url": {"type": ["string", "null"]},
                "rows": {"type": ["object", "array", "integer"]},
                "uris": {"type": "object", "additionalProperties": {"type": "string"}},
                "uri": {"type": "string"},
                "size": {"type": "integer"},
                "range": {"type": ["string", "null"]},
                "columns": {"type": "integer"},
                "updated_rows": {"type": "integer"},
                "updated_columns": {"type": "integer"},
                "updated_cells": {"type": "integer"},
                "updated_range": {"type": ["string", "null"]},
                "modifications": {"type": "array", "items": {"type": "object"}},
                "count": {"type": "integer"},
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

        token, err = await resolve_google_token(params, host, _DEFAULT_SCOPES.get(op, [SHEETS_SCOPE]))
        if err:
            return err
        client = _SheetsClient(token, host, timeout=read_timeout(params))

        try:
            if op == "sheet_modified_trigger":
                return await sheet_modified_trigger(client, params, context, host)
            return await getattr(self, f"_{op}")(client, params, host)
        except (RetryableError, NonRetryableError, HttpRequestFailed) as exc:
            return map_api_error(exc, not_found=f"Spreadsheet not found: {params.get('spreadsheet_id')}")

    async def _create_spreadsheet(self, client: _SheetsClient, params: dict[str, Any], host: Any) -> PluginResult:
        created = await client.create(params["title"])
        host.log.debug(f"Created spreadsheet '{created.get('spreadsheetId')}'")
        return PluginResult.ok(
            data={"spreadsheet_id": created.get("spreadsheetId"), "spreadsheet_url": created.get("spreadsheetUrl")}
        )

    async def _delete_spreadsheet(self, client: _SheetsClient, params: dict[str, Any], host: Any) -> PluginResult:
        spreadsheet_id = params["spreadsheet_id"]
        try:
            await client.get(spreadsheet_id)
        except (RetryableError, NonRetryableError):
            return PluginResult.err(f"Spreadsheet not found: {spreadsheet_id}", code="not_found")
        await client.delete_file(spreadsheet_id)
        host.log.debug(f"Deleted spreadsheet '{spreadsheet_id}'")
        return PluginResult.ok(data={"spreadsheet_id": spreadsheet_id})

    def _render_params(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "valueRenderOption": params.get("value_render") or "UNFORMATTED_VALUE",
            "dateTimeRenderOption": params.get("date_time_render") or "FORMATTED_STRING",
        }

    async def _read(self, client: _SheetsClient, params: dict[str, Any], host: Any) -> PluginResult:
        spreadsheet_id = params["spreadsheet_id"]
        header = bool(params.get("header", True))
        fetch = bool(params.get("fetch", False))
        store = bool(params.get("store", True))
        selected = list(params.get("selected_sheets_title") or [])

        spreadsheet = await client.get(spreadsheet_id)
        sheets = [
            s.get("properties") or {}
            for s in spreadsheet.get("sheets") or []
            if not selected or (s.get("properties") or {}).get("title") in selected
        ]
        ranges = [
            f"{p.get('title')}!R1C1:R{(p.get('gridProperties') or {}).get('rowCount', 1)}"
            f"C{(p.get('gridProperties') or {}).get('columnCount', 1)}"
            for p in sheets
        ]
        batch = await client.batch_get(spreadsheet_id, ranges, self._render_params(params)) if ranges else {}
        value_ranges = batch.get("valueRanges") or []

        rows: dict[str, list[Any]] = {}
        uris: dict[str, str] = {}
        size = 0
        for props, value_range in zip(sheets, value_ranges):
            title = props.get("title")
            raw = value_range.get("values") or []
            host.log.info(f"Fetch {len(raw)} rows from range '{value_range.get('range')}'")
            size += len(raw)
            values = transform_rows(raw, header)
            if fetch:
                rows[title] = values
            elif store:
                uris[title] = await host.storage.put_file(f"{title}.jsonl", json_lines(values))

        data: dict[str, Any] = {"size": size}
        if fetch:
            data["rows"] = rows
        elif store:
            data["uris"] = uris
        return PluginResult.ok(data=data)

    async def _read_range(self, client: _SheetsClient, params: dict[str, Any], host: Any) -> PluginResult:
        body = await client.get_values(params["spreadsheet_id"], params["range"], self._render_params(params))
        raw = body.get("values") or []
        host.log.info(f"Fetch {len(raw)} rows from range '{body.get('range')}'")
        values = transform_rows(raw, bool(params.get("header", True)))

        data: dict[str, Any] = {"size": len(values)}
        if params.get("fetch", False):
            data["rows"] = values
        elif params.get("store", True):
            data["uri"] = await host.storage.put_file("range.jsonl", json_lines(values))
        return PluginResult.ok(data=data)

    async def _load(self, client: _SheetsClient, params: dict[str, Any], host: Any) -> PluginResult:
        source = params["from"]
        try:
            fmt = Format(params["format"]) if params.get("format") else Format.from_uri(source)
        except ValueError:
            return PluginResult.err("Not supported format", code="invalid_params")
        try:
            data = await host.storage.read_file(source)
            values = parse(
                data,
                fmt,
                header=bool(params.get("header", False)),
                csv_options=params.get("csv_options"),
                avro_schema=params.get("avro_schema"),
            )
        except Exception as e:
            return PluginResult.err(f"Unable to parse '{source}' as {fmt.value}: {e}", code="invalid_params")

        spreadsheet_id = params["spreadsheet_id"]
        range_ = params.get("range") or "Sheet1"
        mode = params.get("insert_type") or "UPDATE"
        if mode == "APPEND":
            resp = await client.append(
                spreadsheet_id,
                range_,
                values,
                {"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS", "includeValuesInResponse": False},
            )
            result = resp.get("updates") or {}
        else:
            if mode == "OVERWRITE":
                await client.clear(spreadsheet_id, range_)
            result = await client.update(spreadsheet_id, range_, values, {"valueInputOption": "RAW"})

        out = {
            "range": result.get("updatedRange") or range_,
            "rows": int(result.get("updatedRows") or 0),
            "columns": int(result.get("updatedColumns") or 0),
        }
        host.log.debug(f"Rows updated '{out['rows']}', columns '{out['columns']}', range '{out['range']}'")
        return PluginResult.ok(data=out)

    async def _write(
        self, client: _SheetsClient, params: dict[str, Any], values: list[list[Any]], host: Any
    ) -> PluginResult:
        query: dict[str, Any] = {
            "valueInputOption": params["value_input"],
            "includeValuesInResponse": bool(params.get("include_values_in_response", False)),
            "responseValueRenderOption": params.get("value_render") or "UNFORMATTED_VALUE",
            "responseDateTimeRenderOption": params.get("date_time_render") or "FORMATTED_STRING",
        }
        if params["write_operation"] == "APPEND":
            if not params.get("insert_data"):
                return PluginResult.err("insert_data is required for APPEND", code="invalid_params")
            query["insertDataOption"] = params["insert_data"]
            resp = await client.append(params["spreadsheet_id"], params["range"], values, query)
            result = resp.get("updates") or {}
        else:
            result = await client.update(params["spreadsheet_id"], params["range"], values, query)

        host.log.debug(f"Wrote {sum(len(r) for r in values)} cells to '{params['range']}'")
        return PluginResult.ok(
            data={
                "updated_rows": int(result.get("updatedRows") or 0),
                "updated_columns": int(result.get("updatedColumns") or 0),
                "updated_cells": int(result.get("updatedCells") or 0),
                "updated_range": result.get("updatedRange"),
            }
        )

    async def _write_file(self, client: _SheetsClient, params: dict[str, Any], host: Any) -> PluginResult:
        try:
            data = await host.storage.read_file(params["from"])
        except Exception as e:
            return PluginResult.err(f"Unable to read '{params['from']}': {e}", code="invalid_params")
        return await self._write(client, params, file_rows(data, params.get("data_separator")), host)

    async def _write_value(self, client: _SheetsClient, params: dict[str, Any], host: Any) -> PluginResult:
        try:
            values = value_rows(params.get("value"), params.get("array_direction") or "ROWS")
        except ValueError as e:
            return PluginResult.err(str(e), code="invalid_params")
        return await self._write(client, params, values, host)
