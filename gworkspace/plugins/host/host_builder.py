"""Builds the ``host`` object handed to ``plugin.execute``."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any

from .auth_capability import AuthCapability
from .cursor_capability import CursorCapability
from .exceptions import CapabilityDenied
from .http_capability import HttpCapability
from .log_capability import LogCapability
from .storage_capability import StorageCapability

GATED_CAPABILITIES = frozenset({"http", "auth", "storage", "cursor"})


class Host:
    """Read-only bag of capabilities.

    Only capabilities declared in the plugin manifest are present; touching
    an undeclared one raises ``CapabilityDenied``. ``log`` is always present.
    """

    __slots__ = ("_caps",)

    def __init__(self, caps: dict[str, Any]) -> None:
        object.__setattr__(self, "_caps", MappingProxyType(dict(caps)))

    def __getattr__(self, name: str) -> Any:
        caps = object.__getattribute__(self, "_caps")
        if name in caps:
            return caps[name]
        if name in GATED_CAPABILITIES:
            raise CapabilityDenied(name)
        raise AttributeError(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Host attributes are immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Host attributes are immutable")

    @property
    def capabilities(self) -> frozenset[str]:
        return frozenset(self._caps)


def cursor_scope(execution: dict[str, Any] | None, trigger_id: str | None) -> str | None:
    """``{namespace}_{flow_id}_{trigger_id}``, or None outside a flow.

    Two triggers in one flow, or one trigger id reused across flows, never
    share state.
    """
    ex = execution or {}
    parts = [str(ex.get("namespace") or ""), str(ex.get("flow_id") or ""), str(trigger_id or "")]
    if not any(parts):
        return None
    return "_".join(parts)


def make_host(
    *,
    plugin_name: str,
    user_id: str,
    capabilities: list[str] | None = None,
    operation: str | None = None,
    execution: dict[str, Any] | None = None,
    trigger_id: str | None = None,
) -> Host:
    declared = set(capabilities or [])
    owner = {"plugin_name": plugin_name, "user_id": user_id}
    caps: dict[str, Any] = {
        "log": LogCapability(**owner, operation=operation, execution=execution, trigger_id=trigger_id),
    }
    if "http" in declared:
        caps["http"] = HttpCapability(**owner)
    if "auth" in declared:
        caps["auth"] = AuthCapability(**owner)
    if "storage" in declared:
        caps["storage"] = StorageCapability(**owner)
    if "cursor" in declared:
        caps["cursor"] = CursorCapability(**owner, scope=cursor_scope(execution, trigger_id))
    return Host(caps)
