"""Result envelope for plugin ``execute()`` return values.

Typical usage::

    return PluginResult.ok(data={"event": event})
    return PluginResult.err("Spreadsheet not found: abc", code="not_found")

Polling triggers report whether they fired through ``PluginResult.triggered``
and ``PluginResult.not_triggered`` so the scheduler can tell "nothing new"
apart from a failed poll.
"""

from __future__ import annotations

from typing import Any


class PluginResult:
    """Canonical result type for plugin ``execute()`` return values.

    Shape::

        {
            "status": "success" | "error" | "timeout",
            "data": {...},
            "error": {"code": ..., "message": ..., "details": {...}} | null,
            "diagnostics": [...] | null,
        }

    Prefer the classmethods over direct construction.
    """

    def __init__(
        self,
        status: str,
        data: dict[str, Any] | None = None,
        error: dict[str, Any] | None = None,
        diagnostics: list[str] | None = None,
    ) -> None:
        self.status = status
        self.data = data if data is not None else {}
        self.error = error
        self.diagnostics = diagnostics

    @classmethod
    def ok(
        cls,
        data: dict[str, Any] | None = None,
        diagnostics: list[str] | None = None,
    ) -> "PluginResult":
        """Return a successful result."""
        return cls("success", data=data or {}, diagnostics=diagnostics)

    @classmethod
    def err(
        cls,
        message: str,
        code: str = "tool_error",
        details: dict[str, Any] | None = None,
    ) -> "PluginResult":
        """Return an error result."""
        return cls(
            "error",
            data={},
            error={"code": code, "message": message, "details": details or {}},
        )

    @classmethod
    def triggered(cls, variables: dict[str, Any], diagnostics: list[str] | None = None) -> "PluginResult":
        """Return a trigger result that starts an execution with ``variables``."""
        return cls.ok(data={"triggered": True, **variables}, diagnostics=diagnostics)

    @classmethod
    def not_triggered(cls, diagnostics: list[str] | None = None) -> "PluginResult":
        """Return a trigger result meaning nothing new was detected."""
        return cls.ok(data={"triggered": False}, diagnostics=diagnostics)

    @property
    def is_triggered(self) -> bool:
        return self.status == "success" and bool(self.data.get("triggered"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "data": self.data,
            "error": self.error,
            "diagnostics": self.diagnostics,
        }

    def __repr__(self) -> str:
        return f"PluginResult(status={self.status!r}, data={self.data!r}, error={self.error!r})"
