from __future__ import annotations

import logging
from typing import Any

from .base import ImmutableCapabilityMixin
from .storage_capability import StorageCapability

logger = logging.getLogger(__name__)


class CursorCapability(ImmutableCapabilityMixin):
    """Trigger state scoped by the executing flow.

    Delegates to StorageCapability with namespace='cursor'. The host prefixes
    every plugin key with the flow scope; when no flow is known (ad-hoc runs)
    an 'adhoc' scope is used.
    """

    __slots__ = ("_plugin_name", "_scope", "_storage", "_user_id")
    NAMESPACE = "cursor"

    _plugin_name: str
    _user_id: str
    _scope: str
    _storage: StorageCapability

    def __init__(self, *, plugin_name: str, user_id: str, scope: str | None = None):
        self._bind(
            _plugin_name=plugin_name,
            _user_id=user_id,
            _scope=str(scope) if scope else "adhoc",
            _storage=StorageCapability(plugin_name=plugin_name, user_id=user_id),
        )

    def _key(self, key: str) -> str:
        return f"{self._scope}:{key}"

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or unreadable."""
        try:
            return await self._storage.get(self._key(key), namespace=self.NAMESPACE)
        except OSError as e:
            logger.warning(
                f"CursorCapability.get failed for key '{key}': {e}",
                extra={"plugin_name": self._plugin_name, "user_id": self._user_id, "key": key},
            )
            return None

    async def set(self, key: str, value: Any) -> None:
        await self._storage.put(self._key(key), value, namespace=self.NAMESPACE)

    async def delete(self, key: str) -> None:
        await self._storage.delete(self._key(key), namespace=self.NAMESPACE)
