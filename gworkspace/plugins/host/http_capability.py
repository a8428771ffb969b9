from __future__ import annotations

import hashlib
import logging
import urllib.parse
from typing import Any

import httpx

from ...core.config import get_settings_instance
from ...core.http_client import get_http_client
from .base import ImmutableCapabilityMixin
from .exceptions import EgressDenied, HttpRequestFailed

logger = logging.getLogger(__name__)


def _is_allowed_url(url: str, allowlist: list[str] | None) -> bool:
    if not allowlist:
        return True
    try:
        host = urllib.parse.urlparse(url).hostname or ""
    except ValueError:
        return False
    host = host.lower()
    for pat in allowlist:
        pat = (pat or "").lower().strip()
        if not pat:
            continue
        # suffix match for ".domain" patterns, exact match for hosts
        if host == pat or (pat.startswith(".") and host.endswith(pat)):
            return True
    return False


def _bearer_hash(headers: dict[str, Any]) -> str | None:
    auth = headers.get("Authorization")
    if isinstance(auth, str) and auth.startswith("Bearer "):
        return hashlib.sha256(auth.split(" ", 1)[1].encode("utf-8")).hexdigest()[:10]
    return None


def _log_url(url: str, params: Any) -> str:
    if not params:
        return url
    return f"{url}?" + urllib.parse.urlencode(params, doseq=True)


def _normalize_params(params: Any) -> Any:
    """Render booleans the way Google APIs expect them in query strings."""
    if not isinstance(params, dict):
        return params
    out: dict[str, Any] = {}
    for k, v in params.items():
        if v is None:
            continue
        if isinstance(v, bool):
            out[k] = "true" if v else "false"
        else:
            out[k] = v
    return out


def _decode_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    if "json" in resp.headers.get("content-type", ""):
        try:
            return resp.json()
        except ValueError:
            return resp.text
    return resp.text


class HttpCapability(ImmutableCapabilityMixin):
    """HTTP client for plugins with egress policy enforcement and audit logging."""

    __slots__ = ("_allowlist", "_default_timeout", "_google_timeout", "_plugin_name", "_user_id")

    _plugin_name: str
    _user_id: str
    _allowlist: list[str] | None
    _default_timeout: float
    _google_timeout: float

    def __init__(self, *, plugin_name: str, user_id: str) -> None:
        s = get_settings_instance()
        self._bind(
            _plugin_name=plugin_name,
            _user_id=user_id,
            _allowlist=s.http_egress_allowlist,
            _default_timeout=float(s.http_default_timeout),
            _google_timeout=float(s.google_read_timeout),
        )

    def _timeout_for(self, url: str) -> float:
        host = (urllib.parse.urlsplit(url).hostname or "").lower()
        if host == "googleapis.com" or host.endswith(".googleapis.com"):
            return self._google_timeout
        return self._default_timeout

    def _prepare(self, method: str, url: str, kwargs: dict[str, Any]) -> dict[str, Any]:
        if not _is_allowed_url(url, self._allowlist):
            logger.warning(
                "Egress denied by allowlist",
                extra={"plugin": self._plugin_name, "user_id": self._user_id, "url": url},
            )
            raise EgressDenied(f"URL not allowed by policy: {url}")
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self._timeout_for(url)
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("User-Agent", f"gworkspace/{self._plugin_name}")
        kwargs["headers"] = headers
        if "params" in kwargs:
            kwargs["params"] = _normalize_params(kwargs["params"])
        logger.info(
            "host.http.fetch",
            extra={
                "plugin": self._plugin_name,
                "user_id": self._user_id,
                "method": method.upper(),
                "url": _log_url(url, kwargs.get("params")),
                "auth_bearer_hash": _bearer_hash(headers),
            },
        )
        return kwargs

    def _raise_for_status(self, method: str, url: str, status: int, body: Any, headers: dict[str, Any]) -> None:
        if status < 400:
            return
        logger.warning(
            "host.http error",
            extra={
                "plugin": self._plugin_name,
                "user_id": self._user_id,
                "method": method.upper(),
                "url": url,
                "status": status,
            },
        )
        raise HttpRequestFailed(status, url, body=body, headers=headers)

    async def fetch(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Perform a request and return ``{"status_code", "headers", "body"}``.

        JSON responses are decoded; anything else is returned as text. An empty
        body (e.g. ``204 No Content``) is returned as ``None``.

        Raises:
            EgressDenied: When the URL is blocked by the allowlist.
            HttpRequestFailed: On any HTTP status >= 400.
        """
        kwargs = self._prepare(method, url, kwargs)
        client = await get_http_client()
        resp: httpx.Response = await client.request(method.upper(), url, **kwargs)
        body = _decode_body(resp)
        status = int(resp.status_code)
        headers = dict(resp.headers)
        self._raise_for_status(method, url, status, body, headers)
        return {"status_code": status, "headers": headers, "body": body}

    async def fetch_bytes(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Like :meth:`fetch` but returns the raw payload under ``content``."""
        kwargs = self._prepare(method, url, kwargs)
        client = await get_http_client()
        resp: httpx.Response = await client.request(method.upper(), url, **kwargs)
        status = int(resp.status_code)
        headers = dict(resp.headers)
        # error payloads are JSON even on media endpoints
        error_body = _decode_body(resp) if status >= 400 else None
        self._raise_for_status(method, url, status, error_body, headers)
        return {"status_code": status, "headers": headers, "content": resp.content}
