"""Plugin interfaces and the execution context handed to ``execute()``."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from gworkspace_sdk.result import PluginResult

__all__ = ["ExecuteContext", "Plugin", "PluginResult"]


class ExecuteContext(BaseModel):
    user_id: str
    agent_key: str | None = None
    # id, namespace, flow_id, state, start_date, end_date, link, task_runs
    execution: dict[str, Any] | None = None
    trigger_id: str | None = None
    # Next scheduled evaluation; polling triggers derive their cutoff from it
    next_execution_date: datetime | None = None
    variables: dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class Plugin(Protocol):
    name: str
    version: str

    def get_schema(self) -> dict[str, Any] | None:
        """Return the combined JSON schema for parameters."""
        ...

    def get_schema_for_op(self, op: str) -> dict[str, Any] | None:
        """Return the JSON schema for a single op, or None if the op is unknown."""
        ...

    def get_output_schema(self) -> dict[str, Any] | None:
        """Return a JSON schema for PluginResult.data when status == 'success'."""
        ...

    async def execute(self, params: dict[str, Any], context: ExecuteContext, host: Any) -> PluginResult: ...
