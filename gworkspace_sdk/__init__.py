"""gworkspace-sdk: developer SDK for building and testing Google Workspace plugins."""

from __future__ import annotations

from gworkspace_sdk.contracts import assert_plugin_contract
from gworkspace_sdk.exceptions import CapabilityDenied, EgressDenied, HttpRequestFailed
from gworkspace_sdk.result import PluginResult
from gworkspace_sdk.retry import NonRetryableError, RetryableError, RetryConfig, retry_error_for, with_retry
from gworkspace_sdk.testing import FakeHostBuilder, patch_retry_sleep

__all__ = [
    "assert_plugin_contract",
    "CapabilityDenied",
    "EgressDenied",
    "FakeHostBuilder",
    "HttpRequestFailed",
    "NonRetryableError",
    "patch_retry_sleep",
    "PluginResult",
    "RetryableError",
    "RetryConfig",
    "retry_error_for",
    "with_retry",
]
