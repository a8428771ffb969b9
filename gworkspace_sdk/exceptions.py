"""Exceptions shared between the plugin host and plugins."""

from __future__ import annotations


class HttpRequestFailed(Exception):
    """Raised by ``host.http`` when a non-success HTTP status is returned.

    Plugins can let this bubble up (the executor converts it to a
    ``provider_error`` result) or inspect the semantic properties below.

    Attributes:
        status_code: HTTP status code as int.
        url: Request URL as str.
        body: Parsed response body (dict, list, str, or None).
        headers: Response headers dict.
    """

    def __init__(
        self,
        status_code: int,
        url: str,
        body: object = None,
        headers: dict | None = None,
    ) -> None:
        self.status_code = int(status_code)
        self.url = str(url)
        self.body = body
        self.headers = dict(headers or {})
        super().__init__(f"HTTP {self.status_code} calling {self.url}")

    @property
    def error_category(self) -> str:
        """Semantic error category based on HTTP status code.

        Returns:
            One of: ``auth_error`` (401), ``forbidden`` (403), ``not_found``
            (404), ``gone`` (410), ``rate_limited`` (429), ``server_error``
            (5xx), ``client_error`` (all other 4xx).
        """
        if self.status_code == 401:
            return "auth_error"
        if self.status_code == 403:
            return "forbidden"
        if self.status_code == 404:
            return "not_found"
        if self.status_code == 410:
            return "gone"
        if self.status_code == 429:
            return "rate_limited"
        if self.status_code >= 500:
            return "server_error"
        return "client_error"

    @property
    def is_retryable(self) -> bool:
        """True for errors that may succeed on retry (429, 5xx)."""
        return self.status_code == 429 or self.status_code >= 500

    @property
    def retry_after_seconds(self) -> int | None:
        """Parse the ``Retry-After`` header value (case-insensitive lookup)."""
        retry_after = None
        for key, value in self.headers.items():
            if key.lower() == "retry-after":
                retry_after = value
                break
        if not retry_after:
            return None
        try:
            return int(retry_after)
        except (ValueError, TypeError):
            return None

    @property
    def provider_message(self) -> str:
        """Best-effort extraction of an error message from the response body.

        Google APIs answer with ``{"error": {"code": 404, "message": "...",
        "status": "NOT_FOUND"}}``; OAuth endpoints with ``error_description``.
        """
        if self.body is None:
            return ""
        if isinstance(self.body, str):
            return self.body[:500]
        if isinstance(self.body, dict):
            error_obj = self.body.get("error")
            if isinstance(error_obj, dict):
                msg = error_obj.get("message")
                if msg:
                    return str(msg)
            for key in ("error_description", "message", "error", "detail"):
                val = self.body.get(key)
                if val and isinstance(val, str):
                    return val
            return str(self.body)[:500]
        return str(self.body)[:500]

    @property
    def provider_error_code(self) -> str | None:
        """Google ``error.status`` (e.g. ``NOT_FOUND``), falling back to ``error.code``."""
        if not isinstance(self.body, dict):
            return None
        error_obj = self.body.get("error")
        if isinstance(error_obj, dict):
            code = error_obj.get("status") or error_obj.get("code")
            if code:
                return str(code)
        code = self.body.get("code")
        if code:
            return str(code)
        return None


class EgressDenied(Exception):
    """Raised when a URL is blocked by the host egress allowlist."""


class CapabilityDenied(Exception):
    """Raised when a plugin touches a host capability it did not declare."""

    def __init__(self, capability: str):
        super().__init__(f"Host capability '{capability}' not declared in plugin manifest")
