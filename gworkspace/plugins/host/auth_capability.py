from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import time
from datetime import UTC
from typing import Any

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import credentials as oauth2_credentials
from google.oauth2 import service_account as google_service_account

from ...core.config import get_settings_instance
from ...core.exceptions import CredentialsError
from .base import ImmutableCapabilityMixin

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Refresh a cached token this many seconds before Google says it expires
_EXPIRY_SKEW = 60

# (kind, identity, scopes, subject) -> (token, expires_at epoch seconds)
_TOKEN_CACHE: dict[tuple[str, str, tuple[str, ...], str | None], tuple[str, float]] = {}


def clear_token_cache() -> None:
    _TOKEN_CACHE.clear()


def _load_service_account_info(raw: str | dict[str, Any]) -> dict[str, Any]:
    """Accept a dict, inline JSON, or a path to a JSON key file."""
    if isinstance(raw, dict):
        info = dict(raw)
    else:
        raw_str = str(raw).strip()
        try:
            if raw_str.startswith("{"):
                info = json.loads(raw_str)
            elif os.path.exists(raw_str):
                with open(raw_str, encoding="utf-8") as f:
                    info = json.load(f)
            else:
                raise CredentialsError("service account value is neither inline JSON nor an existing file")
        except json.JSONDecodeError as e:
            raise CredentialsError(f"invalid service account JSON: {e}") from e
    if not (info.get("client_email") and info.get("private_key")):
        raise CredentialsError("service account JSON missing client_email or private_key")
    if "\\n" in info["private_key"]:
        info["private_key"] = info["private_key"].replace("\\n", "\n")
    return info


def _expiry_epoch(creds: Any) -> float:
    expiry = getattr(creds, "expiry", None)
    if expiry is None:
        return time.time() + 3000
    # google-auth stores naive UTC datetimes
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=UTC)
    return expiry.timestamp()


def _cache_get(key: tuple[str, str, tuple[str, ...], str | None]) -> str | None:
    hit = _TOKEN_CACHE.get(key)
    if hit and hit[1] - _EXPIRY_SKEW > time.time():
        return hit[0]
    return None


class AuthCapability(ImmutableCapabilityMixin):
    """Access-token provider for Google APIs.

    ``google_token`` resolves credentials in this order: an explicit service
    account passed by the task, ``GOOGLE_SERVICE_ACCOUNT_JSON``,
    ``GOOGLE_SERVICE_ACCOUNT_FILE``, then Application Default Credentials.
    ``oauth_token`` refreshes an end-user OAuth grant.

    google-auth refreshes synchronously, so refreshes run in a worker thread.
    """

    __slots__ = ("_plugin_name", "_settings", "_user_id")

    _plugin_name: str
    _user_id: str
    _settings: Any

    def __init__(self, *, plugin_name: str, user_id: str) -> None:
        self._bind(_plugin_name=plugin_name, _user_id=user_id, _settings=get_settings_instance())

    async def _refresh(self, creds: Any) -> str:
        try:
            await asyncio.to_thread(creds.refresh, GoogleAuthRequest())
        except google.auth.exceptions.GoogleAuthError as e:
            raise CredentialsError(str(e)) from e
        token = getattr(creds, "token", None)
        if not token:
            raise CredentialsError("token refresh returned no access token")
        return str(token)

    def _configured_service_account(self) -> str | None:
        return self._settings.google_service_account_json or self._settings.google_service_account_file

    async def google_token(
        self,
        *,
        scopes: list[str],
        service_account: str | dict[str, Any] | None = None,
        subject: str | None = None,
    ) -> str:
        """Return a bearer token for ``scopes``.

        Args:
            scopes: OAuth scopes the call needs.
            service_account: Service account key as a dict, inline JSON or file path.
            subject: User to impersonate through domain-wide delegation.

        Raises:
            CredentialsError: When no credentials are available or refresh fails.
        """
        sc = tuple(sorted(scopes or []))
        raw = service_account or self._configured_service_account()
        if raw:
            info = _load_service_account_info(raw)
            key = ("service_account", str(info["client_email"]), sc, subject)
            cached = _cache_get(key)
            if cached:
                return cached
            try:
                creds = google_service_account.Credentials.from_service_account_info(
                    info, scopes=list(sc), subject=subject
                )
            except ValueError as e:
                raise CredentialsError(f"invalid service account key: {e}") from e
        else:
            key = ("adc", "default", sc, subject)
            cached = _cache_get(key)
            if cached:
                return cached
            try:
                creds, _project = await asyncio.to_thread(google.auth.default, scopes=list(sc))
            except google.auth.exceptions.DefaultCredentialsError as e:
                raise CredentialsError(
                    "no service account configured and Application Default Credentials are unavailable"
                ) from e

        token = await self._refresh(creds)
        _TOKEN_CACHE[key] = (token, _expiry_epoch(creds))
        logger.info(
            "auth.google_token issued",
            extra={
                "plugin": self._plugin_name,
                "user_id": self._user_id,
                "source": key[0],
                "scopes": list(sc),
                "subject": subject,
            },
        )
        return token

    async def oauth_token(
        self,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        access_token: str | None = None,
        scopes: list[str] | None = None,
        token_uri: str = GOOGLE_TOKEN_URI,
    ) -> str:
        """Refresh an end-user OAuth grant and return its access token.

        The grant is refreshed once and the new token cached until it expires;
        ``access_token`` is only a hint passed through to google-auth.
        """
        sc = tuple(sorted(scopes or []))
        ident = hashlib.sha256(f"{client_id}:{refresh_token}".encode()).hexdigest()[:16]
        key = ("oauth", ident, sc, None)
        cached = _cache_get(key)
        if cached:
            return cached
        creds = oauth2_credentials.Credentials(
            token=access_token,
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
            token_uri=token_uri,
            scopes=list(sc) or None,
        )
        token = await self._refresh(creds)
        _TOKEN_CACHE[key] = (token, _expiry_epoch(creds))
        logger.info(
            "auth.oauth_token refreshed",
            extra={"plugin": self._plugin_name, "user_id": self._user_id, "scopes": list(sc)},
        )
        return token

