"""Parsers turning a stored file into spreadsheet rows for the ``load`` op.

Every parser returns ``list[list[value]]`` with JSON-safe cell values. When a
header is requested the column names come first.
"""

from __future__ import annotations

import base64
import csv
import io
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

import fastavro
import pyarrow.orc as pa_orc
import pyarrow.parquet as pq
from amazon.ion import simpleion
from amazon.ion.core import IonType
from amazon.ion.simple_types import IonPyNull


class Format(str, Enum):
    CSV = "CSV"
    JSON = "JSON"
    ION = "ION"
    AVRO = "AVRO"
    PARQUET = "PARQUET"
    ORC = "ORC"

    @classmethod
    def from_uri(cls, uri: str) -> "Format":
        """Infer the format from the file extension of ``uri``."""
        name = uri.rsplit("/", 1)[-1]
        ext = name.rsplit(".", 1)[-1].upper() if "." in name else ""
        try:
            return cls(ext)
        except ValueError:
            raise ValueError("Not supported format") from None


def cell(value: Any) -> Any:
    """Coerce a decoded value into something the Sheets JSON API accepts."""
    if value is None or isinstance(value, IonPyNull):
        return None
    # ion and pyarrow hand back subclasses of the plain types; ion bools are ints
    if isinstance(value, bool) or getattr(value, "ion_type", None) is IonType.BOOL:
        return bool(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(bytes(value)).decode("ascii")
    return str(value)


def _records_to_rows(records: list[dict[str, Any]], columns: list[str], header: bool) -> list[list[Any]]:
    rows: list[list[Any]] = [list(columns)] if header and records else []
    rows.extend([cell(rec.get(col)) for col in columns] for rec in records)
    return rows


def parse_csv(
    data: bytes,
    *,
    field_delimiter: str = ",",
    quote: str = '"',
    skip_leading_rows: int = 0,
    encoding: str = "utf-8",
) -> list[list[Any]]:
    text = data.decode(encoding or "utf-8")
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=field_delimiter or ",", quotechar=(quote or '"')[0])
    rows = [row for row in reader if row]
    return rows[max(skip_leading_rows, 0):]


def _mapping_rows(items: list[dict[str, Any]], header: bool) -> list[list[Any]]:
    """Rows for a list of objects; each distinct key set adds one header row."""
    rows: list[list[Any]] = []
    if header:
        seen: list[list[str]] = []
        for item in items:
            keys = [str(k) for k in item]
            if keys not in seen:
                seen.append(keys)
        rows.extend(seen)
    rows.extend([cell(v) for v in item.values()] for item in items)
    return rows


def parse_json(data: bytes, *, header: bool = False) -> list[list[Any]]:
    text = data.decode("utf-8").strip()
    if not text:
        return []
    try:
        items = json.loads(text)
    except json.JSONDecodeError:
        # one document per line
        items = [json.loads(line) for line in text.splitlines() if line.strip()]
    if isinstance(items, dict):
        items = [items]
    return _mapping_rows([i for i in items if isinstance(i, dict)], header)


def parse_ion(data: bytes, *, header: bool = False) -> list[list[Any]]:
    values = simpleion.loads(data, single_value=False)
    items: list[Any] = []
    for value in values:
        if isinstance(value, list):
            items.extend(value)
        else:
            items.append(value)
    return _mapping_rows([dict(i) for i in items if isinstance(i, Mapping)], header)


def parse_avro(data: bytes, *, header: bool = False, avro_schema: str | None = None) -> list[list[Any]]:
    reader_schema = fastavro.parse_schema(json.loads(avro_schema)) if avro_schema else None
    reader = fastavro.reader(io.BytesIO(data), reader_schema=reader_schema)
    schema = reader_schema or reader.writer_schema
    columns = [f["name"] for f in schema.get("fields", [])]
    return _records_to_rows(list(reader), columns, header)


def parse_parquet(data: bytes, *, header: bool = False) -> list[list[Any]]:
    table = pq.read_table(io.BytesIO(data))
    return _records_to_rows(table.to_pylist(), table.column_names, header)


def parse_orc(data: bytes, *, header: bool = False) -> list[list[Any]]:
    table = pa_orc.ORCFile(io.BytesIO(data)).read()
    return _records_to_rows(table.to_pylist(), table.column_names, header)


def parse(
    data: bytes,
    fmt: Format,
    *,
    header: bool = False,
    csv_options: dict[str, Any] | None = None,
    avro_schema: str | None = None,
) -> list[list[Any]]:
    if fmt is Format.CSV:
        opts = csv_options or {}
        return parse_csv(
            data,
            field_delimiter=opts.get("field_delimiter") or ",",
            quote=opts.get("quote") or '"',
            skip_leading_rows=int(opts.get("skip_leading_rows") or 0),
            encoding=opts.get("encoding") or "utf-8",
        )
    if fmt is Format.JSON:
        return parse_json(data, header=header)
    if fmt is Format.ION:
        return parse_ion(data, header=header)
    if fmt is Format.AVRO:
        return parse_avro(data, header=header, avro_schema=avro_schema)
    if fmt is Format.PARQUET:
        return parse_parquet(data, header=header)
    return parse_orc(data, header=header)
