"""Pieces shared by the Google Workspace plugins.

Credential parameters and token resolution, a REST client base that routes
every call through ``host.http`` with retry, and the mapping from API
failures to ``PluginResult`` errors.
"""

from __future__ import annotations

from typing import Any

from gworkspace_sdk import (
    HttpRequestFailed,
    NonRetryableError,
    PluginResult,
    RetryableError,
    RetryConfig,
    retry_error_for,
    with_retry,
)

SERVICE_ACCOUNT_PROPERTIES: dict[str, Any] = {
    "service_account": {
        "type": ["string", "null"],
        "description": "Service account key JSON. Application Default Credentials are used when absent.",
    },
    "scopes": {
        "type": ["array", "null"],
        "items": {"type": "string"},
        "description": "OAuth scopes requested for the credentials",
    },
    "read_timeout": {
        "type": ["number", "null"],
        "minimum": 1,
        "description": "HTTP read timeout in seconds (default 120)",
    },
}

OAUTH_PROPERTIES: dict[str, Any] = {
    "client_id": {"type": ["string", "null"], "description": "OAuth client id"},
    "client_secret": {"type": ["string", "null"], "description": "OAuth client secret"},
    "refresh_token": {"type": ["string", "null"], "description": "OAuth refresh token"},
    "access_token": {"type": ["string", "null"], "description": "Optional current access token"},
    "scopes": {"type": ["array", "null"], "items": {"type": "string"}},
    "read_timeout": {"type": ["number", "null"], "minimum": 1},
}


def read_timeout(params: dict[str, Any]) -> float | None:
    """Explicit read timeout, or None to use the host default for Google APIs."""
    value = params.get("read_timeout")
    return float(value) if value else None


async def resolve_google_token(
    params: dict[str, Any], host: Any, default_scopes: list[str]
) -> tuple[str, PluginResult | None]:
    """Return ``(token, None)`` or ``("", error_result)``."""
    scopes = list(params.get("scopes") or default_scopes)
    try:
        token = await host.auth.google_token(scopes=scopes, service_account=params.get("service_account") or None)
    except Exception as e:
        host.log.warning(f"Google credential resolution failed: {e}")
        return "", PluginResult.err(f"Unable to obtain Google credentials: {e}", code="auth_error")
    return token, None


async def resolve_oauth_token(
    params: dict[str, Any], host: Any, default_scopes: list[str]
) -> tuple[str, PluginResult | None]:
    for field in ("client_id", "client_secret", "refresh_token"):
        if not (params.get(field) or "").strip():
            return "", PluginResult.err(f"{field} is required for OAuth authentication", code="invalid_params")
    try:
        token = await host.auth.oauth_token(
            client_id=params["client_id"],
            client_secret=params["client_secret"],
            refresh_token=params["refresh_token"],
            access_token=params.get("access_token") or None,
            scopes=list(params.get("scopes") or default_scopes),
        )
    except Exception as e:
        host.log.warning(f"OAuth token refresh failed: {e}")
        return "", PluginResult.err(f"OAuth token refresh failed: {e}", code="auth_error")
    return token, None


def map_api_error(exc: Exception, *, not_found: str | None = None) -> PluginResult:
    """Map a client failure to a ``PluginResult`` error.

    ``RetryableError`` means retries were exhausted; ``NonRetryableError``
    carries the original ``HttpRequestFailed`` as its cause.
    """
    cause = exc.__cause__ if isinstance(exc, (RetryableError, NonRetryableError)) else exc
    if isinstance(exc, RetryableError):
        if isinstance(cause, HttpRequestFailed) and cause.error_category == "rate_limited":
            return PluginResult.err("Google API rate limit exceeded after retries.", code="rate_limited")
        status = cause.status_code if isinstance(cause, HttpRequestFailed) else "unknown"
        return PluginResult.err(f"Google API server error after retries: {status}", code="server_error")
    if not isinstance(cause, HttpRequestFailed):
        return PluginResult.err(str(exc), code="tool_error")

    details = {"status_code": cause.status_code, "provider_error": cause.provider_error_code}
    message = cause.provider_message or str(cause)
    category = cause.error_category
    if category == "auth_error":
        return PluginResult.err(f"Google credentials were rejected: {message}", code="auth_error", details=details)
    if category == "forbidden":
        return PluginResult.err(f"Permission denied: {message}", code="forbidden", details=details)
    if category in ("not_found", "gone"):
        return PluginResult.err(not_found or f"Not found: {message}", code="not_found", details=details)
    if category == "client_error":
        return PluginResult.err(message, code="invalid_params", details=details)
    return PluginResult.err(message, code=category, details=details)


class GoogleApiClient:
    """Base for the private per-service REST clients.

    Instantiated once per ``execute()`` call with the resolved bearer token.
    Every request goes through ``_request``, which adds the ``Authorization``
    header and wraps the call in ``with_retry`` so 429 and 5xx responses are
    retried and other failures surface immediately as ``NonRetryableError``.
    """

    RETRY = RetryConfig(max_retries=3, base_delay=1.0, max_delay=10.0)

    def __init__(self, token: str, host: Any, *, timeout: float | None = None) -> None:
        self._token = token
        self._host = host
        self._timeout = timeout

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._token}"}
        if extra:
            headers.update(extra)
        return headers

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Perform a request and return the decoded body."""
        kwargs["headers"] = self._headers(kwargs.get("headers"))
        if self._timeout is not None:
            kwargs.setdefault("timeout", self._timeout)

        @with_retry(self.RETRY)
        async def _do() -> dict[str, Any]:
            try:
                return await self._host.http.fetch(method, url, **kwargs)
            except HttpRequestFailed as e:
                raise retry_error_for(e) from e

        response = await _do()
        return response.get("body")

    async def _request_bytes(self, method: str, url: str, **kwargs: Any) -> bytes:
        kwargs["headers"] = self._headers(kwargs.get("headers"))
        if self._timeout is not None:
            kwargs.setdefault("timeout", self._timeout)

        @with_retry(self.RETRY)
        async def _do() -> dict[str, Any]:
            try:
                return await self._host.http.fetch_bytes(method, url, **kwargs)
            except HttpRequestFailed as e:
                raise retry_error_for(e) from e

        response = await _do()
        return bytes(response.get("content") or b"")
