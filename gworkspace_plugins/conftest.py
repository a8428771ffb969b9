"""Shared fixtures for the plugin test suites.

Google API clients retry 429/5xx through ``@with_retry``; the sleeps between
attempts are skipped so rate-limit tests run instantly.
"""

from __future__ import annotations

import pytest

from gworkspace_sdk.testing import patch_retry_sleep


@pytest.fixture(autouse=True)
def retry_sleep():
    """The patched ``asyncio.sleep``; tests may inspect the backoff delays."""
    with patch_retry_sleep() as sleep:
        yield sleep
