from .exceptions import CapabilityDenied, EgressDenied, HttpRequestFailed
from .host_builder import Host, make_host

__all__ = ["CapabilityDenied", "EgressDenied", "Host", "HttpRequestFailed", "make_host"]
