"""Host exceptions.

The classes live in ``gworkspace_sdk`` so the exception a plugin catches is
the same class the host raises.
"""

from gworkspace_sdk.exceptions import CapabilityDenied, EgressDenied, HttpRequestFailed

__all__ = ["CapabilityDenied", "EgressDenied", "HttpRequestFailed"]
