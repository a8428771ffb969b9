"""Test scaffolding for plugin development.

Provides :class:`FakeHostBuilder`, a fluent factory for an in-memory host, and
:func:`patch_retry_sleep` for retry tests. Nothing here touches the network or
the filesystem.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator
from unittest.mock import AsyncMock, MagicMock, patch

from gworkspace_sdk.exceptions import HttpRequestFailed

__all__ = ["FakeHostBuilder", "HttpRequestFailed", "patch_retry_sleep"]


@contextmanager
def patch_retry_sleep() -> Generator[AsyncMock, None, None]:
    """Suppress ``asyncio.sleep`` delays inside ``@with_retry`` decorated functions.

    Yields:
        The :class:`~unittest.mock.AsyncMock` replacing ``asyncio.sleep``, in case
        you want to assert on call count or arguments.
    """
    with patch("gworkspace_sdk.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


def _params_match(expected: dict[str, Any] | None, actual: dict[str, Any] | None) -> bool:
    if expected is None:
        return True
    actual = actual or {}
    for key, value in expected.items():
        if key not in actual or str(actual[key]) != str(value):
            return False
    return True


class FakeHostBuilder:
    """Fluent builder for an in-memory plugin host.

    Usage::

        host = (
            FakeHostBuilder()
            .with_google_token("tok")
            .with_http_response("GET", EVENTS_URL, {"status_code": 200, "headers": {}, "body": {...}})
            .build()
        )
        result = await plugin.execute({"op": "list_events", ...}, ctx, host)
        assert host.http.calls[0]["params"]["singleEvents"] is True

    Routes match on method and URL. When a route is registered with
    ``params``, each listed query parameter must also match (compared as
    strings); unlisted parameters are ignored. Routes registered with
    ``times=n`` are consumed after ``n`` matches so a later route for the same
    URL can answer subsequent calls (pagination, retries).
    """

    def __init__(self) -> None:
        self._routes: list[dict[str, Any]] = []
        self._files: dict[str, bytes] = {}
        self._cursor: dict[str, Any] = {}
        self._google_token: str | None = "fake-google-token"
        self._oauth_token: str | None = "fake-oauth-token"

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def with_google_token(self, token: str | None) -> "FakeHostBuilder":
        """Configure ``host.auth.google_token()``; ``None`` makes it raise."""
        self._google_token = token
        return self

    def with_oauth_token(self, token: str | None) -> "FakeHostBuilder":
        """Configure ``host.auth.oauth_token()``; ``None`` makes it raise."""
        self._oauth_token = token
        return self

    def with_http_response(
        self,
        method: str,
        url: str,
        response: dict,
        *,
        params: dict[str, Any] | None = None,
        times: int | None = None,
    ) -> "FakeHostBuilder":
        """Configure ``host.http.fetch(method, url, ...)`` to return *response*.

        Args:
            response: ``{"status_code": int, "headers": dict, "body": ...}``,
                the shape the real ``HttpCapability.fetch`` returns.
        """
        self._routes.append(
            {"method": method.upper(), "url": url, "params": params, "times": times, "kind": "json", "data": response}
        )
        return self

    def with_http_bytes(
        self,
        method: str,
        url: str,
        content: bytes,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> "FakeHostBuilder":
        """Configure ``host.http.fetch_bytes(method, url, ...)`` to return *content*."""
        self._routes.append(
            {
                "method": method.upper(),
                "url": url,
                "params": params,
                "times": None,
                "kind": "bytes",
                "data": {"status_code": 200, "headers": headers or {}, "content": content},
            }
        )
        return self

    def with_http_error(
        self,
        method: str,
        url: str,
        status_code: int,
        body: object = None,
        headers: dict | None = None,
        *,
        params: dict[str, Any] | None = None,
        times: int | None = None,
    ) -> "FakeHostBuilder":
        """Configure ``host.http.fetch(method, url, ...)`` to raise :class:`HttpRequestFailed`."""
        exc = HttpRequestFailed(status_code, url, body, headers)
        self._routes.append(
            {"method": method.upper(), "url": url, "params": params, "times": times, "kind": "error", "exc": exc}
        )
        return self

    def with_storage_file(self, uri: str, data: bytes) -> "FakeHostBuilder":
        """Seed ``host.storage.read_file(uri)``."""
        self._files[uri] = data
        return self

    def with_cursor(self, key: str, value: Any) -> "FakeHostBuilder":
        """Seed ``host.cursor.get(key)``."""
        self._cursor[key] = value
        return self

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self) -> MagicMock:
        """Build and return the configured fake host.

        Extra attributes for assertions:

        - ``host.http.calls``: list of recorded requests
        - ``host.storage.files``: dict of stored files by URI
        - ``host.cursor.values``: dict of cursor values by key
        """
        host = MagicMock()
        for cap in ("http", "auth", "storage", "cursor"):
            setattr(host, cap, AsyncMock())
        host.log = MagicMock()

        routes = [dict(r) for r in self._routes]
        calls: list[dict[str, Any]] = []

        def _match(method: str, url: str, params: dict[str, Any] | None, kind: str) -> dict[str, Any]:
            for route in routes:
                if route["method"] != method.upper() or route["url"] != url:
                    continue
                if kind == "bytes" and route["kind"] != "bytes":
                    continue
                if kind != "bytes" and route["kind"] == "bytes":
                    continue
                if not _params_match(route["params"], params):
                    continue
                if route["times"] is not None:
                    if route["times"] <= 0:
                        continue
                    route["times"] -= 1
                return route
            raise AssertionError(f"No fake route for {method.upper()} {url} params={params!r}")

        def _record(method: str, url: str, kwargs: dict[str, Any]) -> None:
            calls.append(
                {
                    "method": method.upper(),
                    "url": url,
                    "params": kwargs.get("params"),
                    "json": kwargs.get("json"),
                    "content": kwargs.get("content"),
                    "headers": kwargs.get("headers"),
                    "timeout": kwargs.get("timeout"),
                }
            )

        async def _fetch(method: str, url: str, **kwargs: Any) -> dict:
            _record(method, url, kwargs)
            route = _match(method, url, kwargs.get("params"), "json")
            if route["kind"] == "error":
                raise route["exc"]
            return route["data"]

        async def _fetch_bytes(method: str, url: str, **kwargs: Any) -> dict:
            _record(method, url, kwargs)
            route = _match(method, url, kwargs.get("params"), "bytes")
            return route["data"]

        host.http.fetch = _fetch
        host.http.fetch_bytes = _fetch_bytes
        host.http.calls = calls

        google_token = self._google_token
        oauth_token = self._oauth_token

        async def _google_token(*_args: Any, **_kwargs: Any) -> str:
            if google_token is None:
                raise RuntimeError("No Google credentials configured")
            return google_token

        async def _oauth_token(*_args: Any, **_kwargs: Any) -> str:
            if oauth_token is None:
                raise RuntimeError("OAuth token refresh failed")
            return oauth_token

        host.auth.google_token = AsyncMock(side_effect=_google_token)
        host.auth.oauth_token = AsyncMock(side_effect=_oauth_token)

        files = dict(self._files)
        counter = {"n": 0}

        async def _put_file(name: str, data: bytes, **_kwargs: Any) -> str:
            counter["n"] += 1
            uri = f"storage:///fake/{counter['n']}/{name}"
            files[uri] = bytes(data)
            return uri

        async def _read_file(uri: str) -> bytes:
            if uri not in files:
                raise FileNotFoundError(uri)
            return files[uri]

        host.storage.put_file = _put_file
        host.storage.read_file = _read_file
        host.storage.files = files

        cursor_values = dict(self._cursor)

        async def _cursor_get(key: str) -> Any:
            return cursor_values.get(key)

        async def _cursor_set(key: str, value: Any) -> None:
            cursor_values[key] = value

        async def _cursor_delete(key: str) -> None:
            cursor_values.pop(key, None)

        host.cursor.get = _cursor_get
        host.cursor.set = _cursor_set
        host.cursor.delete = _cursor_delete
        host.cursor.values = cursor_values

        return host
