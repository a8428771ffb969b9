"""Tests for log formatters and logger naming."""

import json
import logging
import sys

from gworkspace.core import logging as logging_module
from gworkspace.core.logging import ColoredFormatter, JSONFormatter, get_logger, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("gworkspace.test", logging.WARNING, __file__, 10, "sheet %s changed", ("s1",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_get_logger_namespaces() -> None:
    assert get_logger("plugins.executor").name == "gworkspace.plugins.executor"
    assert get_logger("gworkspace.core").name == "gworkspace.core"


def test_json_formatter_includes_extras() -> None:
    payload = json.loads(JSONFormatter().format(_record(plugin_name="gsheets", count=2)))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "gworkspace.test"
    assert payload["message"] == "sheet s1 changed"
    assert payload["plugin_name"] == "gsheets"
    assert payload["count"] == 2


def test_json_formatter_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("gworkspace.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    payload = json.loads(JSONFormatter().format(record))

    assert payload["exception"]["type"] == "RuntimeError"
    assert payload["exception"]["message"] == "boom"


def test_colored_formatter_plain_output() -> None:
    line = ColoredFormatter(use_colors=False).format(_record(user_id="u1", payload={"big": "dict"}))

    assert " - WARNING - gworkspace.test - sheet s1 changed" in line
    assert "user_id=u1" in line
    assert "payload=" not in line
    assert "\033[" not in line


def test_colored_formatter_plugin_prefix() -> None:
    line = ColoredFormatter(use_colors=False).format(
        _record(plugin_name="gmail", operation="mail_received", flow_id="inbox")
    )

    assert "gworkspace.test - [gmail.mail_received] sheet s1 changed | flow_id=inbox" in line
    assert "plugin_name=" not in line


def test_setup_logging_keeps_existing_handlers(monkeypatch) -> None:
    monkeypatch.setattr(logging_module, "_LOGGING_CONFIGURED", False)
    root = logging.getLogger()
    existing = logging.NullHandler()
    root.addHandler(existing)
    before = list(root.handlers)
    try:
        setup_logging()
        setup_logging()

        assert existing in root.handlers
        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert isinstance(added[0].formatter, ColoredFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers[:]:
            if handler not in before or handler is existing:
                root.removeHandler(handler)
