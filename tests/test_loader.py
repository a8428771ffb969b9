"""Tests for plugin discovery and loading."""

import pytest

from gworkspace.core.exceptions import PluginLoadError
from gworkspace.plugins.loader import PluginLoader, PluginRecord, record_from_manifest


class TestDiscovery:
    def test_discovers_bundled_plugins(self) -> None:
        records = PluginLoader().discover()
        assert set(records) == {"gcalendar", "gdrive", "gsheets", "gmail", "gchat"}

    def test_feed_ops(self) -> None:
        records = PluginLoader().discover()
        assert records["gsheets"].is_feed_op("sheet_modified_trigger")
        assert records["gmail"].is_feed_op("mail_received")
        assert not records["gchat"].allowed_feed_ops

    def test_missing_package(self) -> None:
        assert PluginLoader(package="no_such_package_here").discover() == {}

    @pytest.mark.parametrize("name", ["gcalendar", "gdrive", "gsheets", "gmail", "gchat"])
    def test_load(self, name: str) -> None:
        loader = PluginLoader()
        record = loader.discover()[name]
        plugin = loader.load(record)

        assert plugin.name == name
        assert plugin.version == record.version


class TestRecords:
    def test_record_from_manifest(self) -> None:
        record = record_from_manifest(
            {"name": "x", "version": 2, "module": "pkg.mod:Cls", "capabilities": ["http"], "allowed_feed_ops": ["t"]}
        )
        assert record.version == "2"
        assert record.capabilities == ["http"]
        assert record.op_auth is None

    def test_manifest_without_module(self) -> None:
        with pytest.raises(PluginLoadError):
            record_from_manifest({"name": "x"})

    def test_bad_entry(self) -> None:
        with pytest.raises(PluginLoadError, match="module string"):
            PluginLoader().load(PluginRecord(name="x", version="1", entry="gworkspace_plugins.gchat.plugin"))

    def test_unknown_class(self) -> None:
        with pytest.raises(PluginLoadError, match="not found"):
            PluginLoader().load(PluginRecord(name="x", version="1", entry="gworkspace_plugins.gchat.plugin:Nope"))

    def test_unimportable_module(self) -> None:
        with pytest.raises(PluginLoadError):
            PluginLoader().load(PluginRecord(name="x", version="1", entry="gworkspace_plugins.nope.plugin:Nope"))
