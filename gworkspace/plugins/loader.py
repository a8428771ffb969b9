"""
Plugins loader: discovers plugin packages that ship a manifest.

Each plugin package provides a ``manifest.py`` with a ``PLUGIN_MANIFEST`` dict:
  {"name": str, "version": str, "module": "gworkspace_plugins.pkg.plugin:PluginClass",
   "capabilities": [...], "allowed_feed_ops": [...]}
"""

from __future__ import annotations

import importlib
import pkgutil
from dataclasses import dataclass, field

from ..core.exceptions import PluginLoadError
from ..core.logging import get_logger
from .base import Plugin

logger = get_logger(__name__)

DEFAULT_PLUGIN_PACKAGE = "gworkspace_plugins"


@dataclass
class PluginRecord:
    name: str
    version: str
    entry: str  # dotted path "package.module:Class"
    capabilities: list[str] = field(default_factory=list)
    display_name: str | None = None
    op_auth: dict | None = None
    allowed_feed_ops: list[str] = field(default_factory=list)
    chat_callable_ops: list[str] = field(default_factory=list)

    def is_feed_op(self, op: str) -> bool:
        return op in self.allowed_feed_ops


def record_from_manifest(m: dict) -> PluginRecord:
    name = m.get("name")
    entry = m.get("module")
    if not (name and entry):
        raise PluginLoadError(str(entry or name or "?"), "manifest must define 'name' and 'module'")
    op_auth = m.get("op_auth")
    return PluginRecord(
        name=name,
        version=str(m.get("version", "0")),
        entry=entry,
        capabilities=list(m.get("capabilities") or []),
        display_name=m.get("display_name"),
        op_auth=dict(op_auth) if isinstance(op_auth, dict) else None,
        allowed_feed_ops=list(m.get("allowed_feed_ops") or []),
        chat_callable_ops=list(m.get("chat_callable_ops") or []),
    )


class PluginLoader:
    def __init__(self, *, package: str = DEFAULT_PLUGIN_PACKAGE):
        self.package = package

    def discover(self) -> dict[str, PluginRecord]:
        records: dict[str, PluginRecord] = {}
        try:
            pkg = importlib.import_module(self.package)
        except ImportError as e:
            logger.warning("Plugin package %s not importable: %s", self.package, e)
            return records
        for info in pkgutil.iter_modules(pkg.__path__):
            if not info.ispkg:
                continue
            manifest_name = f"{self.package}.{info.name}.manifest"
            try:
                manifest = importlib.import_module(manifest_name)
            except ModuleNotFoundError:
                continue
            m = getattr(manifest, "PLUGIN_MANIFEST", None)
            if not m:
                continue
            try:
                rec = record_from_manifest(m)
            except PluginLoadError as e:
                logger.warning("Skipping plugin %s: %s", info.name, e.message)
                continue
            records[rec.name] = rec
        logger.info("Discovered %d plugins in %s", len(records), self.package)
        return records

    def load(self, record: PluginRecord) -> Plugin:
        module_path, _, class_name = record.entry.partition(":")
        if not class_name:
            raise PluginLoadError(record.entry, "module string must look like 'package.module:Class'")
        try:
            mod = importlib.import_module(module_path)
        except ImportError as e:
            raise PluginLoadError(record.entry, str(e)) from e
        cls = getattr(mod, class_name, None)
        if cls is None:
            raise PluginLoadError(record.entry, f"'{class_name}' not found in {module_path}")
        plugin = cls()
        schema = plugin.get_schema() or {}
        enum_vals = schema.get("properties", {}).get("op", {}).get("enum")
        if not (isinstance(enum_vals, (list, tuple)) and enum_vals):
            raise PluginLoadError(record.entry, "input schema does not declare properties.op.enum")
        if getattr(plugin, "name", None) != record.name:
            logger.warning("Plugin name mismatch: manifest=%s class=%s", record.name, getattr(plugin, "name", None))
        return plugin
