"""The shared ``httpx.AsyncClient`` behind ``host.http``.

Google APIs and Chat webhooks are a handful of hosts, so one pooled client
serves every plugin. Per-request timeouts passed by plugins override the
defaults set here.
"""

from __future__ import annotations

import httpx

from .config import get_settings_instance
from .logging import get_logger

logger = get_logger(__name__)

_client: httpx.AsyncClient | None = None


def _build_client() -> httpx.AsyncClient:
    settings = get_settings_instance()
    return httpx.AsyncClient(
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=50, keepalive_expiry=60.0),
        timeout=httpx.Timeout(settings.http_default_timeout, connect=settings.http_connect_timeout),
        follow_redirects=True,
        headers={"User-Agent": f"{settings.app_name}/{settings.version}"},
    )


async def get_http_client() -> httpx.AsyncClient:
    """Return the shared client, creating it on first use or after a close."""
    global _client  # noqa: PLW0603
    if _client is None or _client.is_closed:
        logger.debug("Opening pooled HTTP client")
        _client = _build_client()
    return _client


async def close_http_client() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        logger.debug("Closing pooled HTTP client")
        await _client.aclose()
        _client = None
