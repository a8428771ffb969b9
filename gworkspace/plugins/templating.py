"""Jinja rendering of templated plugin parameters."""

from __future__ import annotations

from typing import Any

from jinja2 import DebugUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

from ..core.logging import get_logger
from .base import ExecuteContext

logger = get_logger(__name__)

_env = SandboxedEnvironment(autoescape=False, undefined=DebugUndefined)


def build_render_context(context: ExecuteContext) -> dict[str, Any]:
    """Variables visible to parameter templates.

    ``context.variables`` plus ``execution`` and ``trigger``; explicit
    variables with those names win.
    """
    variables = dict(context.variables or {})
    out: dict[str, Any] = {
        "execution": dict(context.execution or {}),
        "trigger": {"id": context.trigger_id},
    }
    out.update(variables)
    return out


def render_template(template: str, variables: dict[str, Any]) -> str:
    """Render a template, returning it unchanged on failure."""
    try:
        return _env.from_string(template).render(**variables)
    except TemplateError as e:
        logger.warning("Template rendering failed: %s", e)
        return template


def render_value(value: Any, variables: dict[str, Any]) -> Any:
    if isinstance(value, str):
        return render_template(value, variables) if "{{" in value else value
    if isinstance(value, list):
        return [render_value(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: render_value(v, variables) for k, v in value.items()}
    return value


def render_params(
    params: dict[str, Any] | None,
    variables: dict[str, Any],
    *,
    raw: frozenset[str] | set[str] = frozenset(),
) -> dict[str, Any]:
    """Render every string containing ``{{`` in ``params``, recursing into lists and dicts.

    Top-level keys in ``raw`` are passed through untouched; plugins that
    render those values themselves list them in ``raw_params``.
    """
    if not params:
        return {}
    return {key: value if key in raw else render_value(value, variables) for key, value in params.items()}
