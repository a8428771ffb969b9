"""
Shared pytest fixtures for the host runtime tests.
"""

import pytest

from gworkspace.core.config import reset_settings_instance
from gworkspace.plugins.host.auth_capability import clear_token_cache


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point storage and state at a temp dir and rebuild settings for each test."""
    monkeypatch.setenv("GWS_STORAGE_DIR", str(tmp_path / "storage"))
    monkeypatch.setenv("GWS_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.delenv("GWS_HTTP_EGRESS_ALLOWLIST", raising=False)
    monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_JSON", raising=False)
    monkeypatch.delenv("GOOGLE_SERVICE_ACCOUNT_FILE", raising=False)
    reset_settings_instance()
    clear_token_cache()
    yield tmp_path
    reset_settings_instance()
    clear_token_cache()
