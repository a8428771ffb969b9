"""Shared pieces of the host capabilities."""

from __future__ import annotations

from typing import Any


class ImmutableCapabilityMixin:
    """Read-only capability objects.

    Subclasses declare ``__slots__`` and fill them once with :meth:`_bind`.
    A plugin holding ``host.storage`` cannot rebind ``_user_id`` or
    ``_plugin_name`` to reach another tenant's files or trigger state.
    """

    __slots__ = ()

    def _bind(self, **attrs: Any) -> None:
        for name, value in attrs.items():
            object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__}.{name} is read-only")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__}.{name} is read-only")
