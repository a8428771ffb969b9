"""Static contract checks for Workspace plugins.

``assert_plugin_contract(MyPlugin)`` is the first test in every plugin's
``test_plugin.py``. It checks the manifest against the class and every op
schema against the conventions the executor relies on:

* ``get_schema()`` lists every op in ``properties.op.enum``;
* ``get_schema_for_op(op)`` returns a closed (``additionalProperties: false``)
  Draft 7 schema whose ``op`` property admits only that op;
* polling ops named in ``allowed_feed_ops`` accept ``interval``.

Hard violations raise ``AssertionError``; an open output schema only warns.
"""

from __future__ import annotations

import importlib
import inspect
import re
import warnings
from typing import Any

import jsonschema

KNOWN_CAPABILITIES: frozenset[str] = frozenset({"http", "auth", "storage", "cursor", "log"})
MANIFEST_KEYS = ("name", "version", "module", "capabilities")

_MODULE_PATTERN = re.compile(r"^[\w.]+:\w+$")


def assert_plugin_contract(plugin_cls: type, manifest: dict[str, Any] | None = None) -> None:
    if manifest is None:
        manifest = _manifest_next_to(plugin_cls)
    _check_manifest(manifest, plugin_cls)

    try:
        plugin = plugin_cls()
    except Exception as exc:
        raise AssertionError(f"{plugin_cls.__name__}() failed without arguments: {exc}") from exc

    assert inspect.iscoroutinefunction(getattr(plugin, "execute", None)), (
        f"{plugin_cls.__name__}.execute must be 'async def execute(self, params, context, host)'"
    )
    for attr in ("name", "version"):
        assert getattr(plugin, attr, None) == manifest[attr], (
            f"{plugin_cls.__name__}.{attr}={getattr(plugin, attr, None)!r} but manifest says {manifest[attr]!r}"
        )

    ops = _check_input_schema(plugin)
    for op in ops:
        _check_op_schema(plugin, op)
    assert plugin.get_schema_for_op("__unknown_op__") is None, "get_schema_for_op() must return None for unknown ops"

    for field in ("chat_callable_ops", "allowed_feed_ops", "op_auth"):
        stray = sorted(set(manifest.get(field, [])) - set(ops))
        assert not stray, f"manifest '{field}' names ops missing from get_schema(): {stray}"
    for op in manifest.get("allowed_feed_ops", []):
        assert "interval" in plugin.get_schema_for_op(op)["properties"], f"feed op '{op}' must accept 'interval'"

    _check_output_schema(plugin)


def _manifest_next_to(plugin_cls: type) -> dict[str, Any]:
    package, _, _ = plugin_cls.__module__.rpartition(".")
    if not package:
        raise AssertionError(f"{plugin_cls.__module__} is not inside a package; pass manifest= explicitly")
    try:
        module = importlib.import_module(f"{package}.manifest")
    except ImportError as exc:
        raise AssertionError(f"cannot import {package}.manifest") from exc
    try:
        return module.PLUGIN_MANIFEST
    except AttributeError as exc:
        raise AssertionError(f"{package}.manifest does not define PLUGIN_MANIFEST") from exc


def _check_manifest(manifest: dict[str, Any], plugin_cls: type) -> None:
    missing = [key for key in MANIFEST_KEYS if key not in manifest]
    assert not missing, f"manifest is missing {missing}"

    unknown = sorted(set(manifest["capabilities"]) - KNOWN_CAPABILITIES)
    assert not unknown, f"manifest declares unknown capabilities {unknown}"

    module = manifest["module"]
    assert _MODULE_PATTERN.match(module), f"manifest module {module!r} is not 'dotted.path:ClassName'"
    assert module == f"{plugin_cls.__module__}:{plugin_cls.__name__}", (
        f"manifest module {module!r} does not point at {plugin_cls.__module__}:{plugin_cls.__name__}"
    )


def _check_input_schema(plugin: Any) -> list[str]:
    schema = plugin.get_schema()
    _draft7(schema, "get_schema()")
    ops = schema.get("properties", {}).get("op", {}).get("enum")
    assert isinstance(ops, list) and ops, "get_schema() must list the ops in properties.op.enum"
    _required_are_defined(schema, "get_schema()")
    return ops


def _check_op_schema(plugin: Any, op: str) -> None:
    where = f"get_schema_for_op({op!r})"
    schema = plugin.get_schema_for_op(op)
    assert isinstance(schema, dict), f"{where} returned {schema!r}"
    _draft7(schema, where)
    _required_are_defined(schema, where)
    assert schema.get("additionalProperties") is False, f"{where} must set additionalProperties: false"
    assert "op" in schema.get("required", []), f"{where} must require 'op'"
    validator = jsonschema.Draft7Validator(schema["properties"]["op"])
    assert validator.is_valid(op), f"{where} rejects its own op"
    assert not validator.is_valid("__other__"), f"{where} accepts ops other than {op!r}"


def _check_output_schema(plugin: Any) -> None:
    schema = plugin.get_output_schema()
    assert schema and schema.get("properties"), "get_output_schema() must define properties"
    _draft7(schema, "get_output_schema()")
    _required_are_defined(schema, "get_output_schema()")
    if schema.get("additionalProperties") is not False:
        warnings.warn(
            f"{type(plugin).__name__}.get_output_schema() does not set additionalProperties: false",
            UserWarning,
            stacklevel=3,
        )


def _required_are_defined(schema: dict[str, Any], where: str) -> None:
    phantom = [f for f in schema.get("required", []) if f not in schema.get("properties", {})]
    assert not phantom, f"{where} requires undefined properties {phantom}"


def _draft7(schema: dict[str, Any], where: str) -> None:
    try:
        jsonschema.Draft7Validator.check_schema(schema)
    except jsonschema.SchemaError as exc:
        raise AssertionError(f"{where} is not a valid Draft 7 schema: {exc.message}") from exc
