"""Every bundled plugin satisfies the plugin contract."""

import pytest

from gworkspace_sdk import assert_plugin_contract
from gworkspace_plugins.gcalendar.plugin import CalendarPlugin
from gworkspace_plugins.gchat.plugin import ChatPlugin
from gworkspace_plugins.gdrive.plugin import DrivePlugin
from gworkspace_plugins.gmail.plugin import GmailPlugin
from gworkspace_plugins.gsheets.plugin import SheetsPlugin


@pytest.mark.parametrize("plugin_cls", [CalendarPlugin, DrivePlugin, SheetsPlugin, GmailPlugin, ChatPlugin])
def test_contract(plugin_cls) -> None:
    assert_plugin_contract(plugin_cls)


@pytest.mark.parametrize("plugin_cls", [CalendarPlugin, DrivePlugin, SheetsPlugin, GmailPlugin, ChatPlugin])
@pytest.mark.asyncio
async def test_unknown_op(plugin_cls) -> None:
    result = await plugin_cls().execute({"op": "nope"}, None, None)
    assert result.error["code"] == "invalid_params"
