"""Polling trigger firing on new spreadsheet revisions.

Revisions come from the Drive API. Which revisions were already reported is
kept in ``host.cursor`` as a :class:`~gworkspace_sdk.polling.RevisionState`,
so a revision fires once per state key regardless of the polling cadence.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from gworkspace_sdk import PluginResult
from gworkspace_sdk.polling import On, RevisionState, parse_duration, parse_rfc3339, to_rfc3339

from .client import _SheetsClient


def default_state_key(context: Any) -> str:
    execution = getattr(context, "execution", None) or {}
    parts = [
        str(execution.get("namespace") or ""),
        str(execution.get("flow_id") or ""),
        str(getattr(context, "trigger_id", None) or ""),
    ]
    return "_".join(parts)


def change_details(values_body: dict[str, Any]) -> dict[str, Any]:
    values = values_body.get("values") or []
    return {
        "affected_range": values_body.get("range"),
        "row_count": len(values),
        "column_count": max((len(row) for row in values), default=0),
        "has_data": len(values) > 0,
    }


def details_range(sheet_name: str | None, range_: str | None) -> str:
    if sheet_name:
        return f"{sheet_name}!{range_}" if range_ else sheet_name
    return range_ or ""


async def sheet_modified_trigger(
    client: _SheetsClient, params: dict[str, Any], context: Any, host: Any
) -> PluginResult:
    spreadsheet_id = params["spreadsheet_id"]
    sheet_name = params.get("sheet_name") or None
    range_ = params.get("range") or None
    include_details = bool(params.get("include_details", False))
    try:
        on = On(params.get("on") or On.CREATE_OR_UPDATE.value)
        ttl = parse_duration(params.get("state_ttl"))
    except ValueError as e:
        return PluginResult.err(str(e), code="invalid_params")

    host.log.debug(f"Checking spreadsheet {spreadsheet_id} for modification")
    try:
        revisions = await client.revisions(spreadsheet_id)
    except Exception as e:
        host.log.warning(f"Failed to fetch revisions: {e}")
        return PluginResult.not_triggered()
    if not revisions:
        host.log.debug("No revisions found")
        return PluginResult.not_triggered()
    host.log.info(f"Found {len(revisions)} revision(s) for spreadsheet")

    state_key = params.get("state_key") or default_state_key(context)
    now = datetime.now(UTC)
    state = RevisionState.load(await host.cursor.get(state_key), ttl=ttl, now=now)

    spreadsheet: dict[str, Any] | None = None
    modifications: list[dict[str, Any]] = []
    for revision in revisions:
        revision_id = str(revision.get("id"))
        modified_at = parse_rfc3339(revision.get("modifiedTime")) or now
        uri = f"sheet://{spreadsheet_id}/revision/{revision_id}"
        if not state.observe(uri, revision_id, modified_at, on, now=now):
            continue
        host.log.debug(f"New revision detected: {revision_id}")

        if spreadsheet is None:
            spreadsheet = await client.get(spreadsheet_id)
        user = revision.get("lastModifyingUser") or {}
        modification: dict[str, Any] = {
            "revision_id": revision_id,
            "modified_time": to_rfc3339(modified_at),
            "spreadsheet_title": (spreadsheet.get("properties") or {}).get("title"),
            "spreadsheet_id": spreadsheet_id,
            "last_modifying_user": user.get("displayName"),
            "sheet_name": None,
        }
        if sheet_name:
            titles = [(s.get("properties") or {}).get("title") for s in spreadsheet.get("sheets") or []]
            if sheet_name not in titles:
                host.log.warning(f"Sheet '{sheet_name}' not found in spreadsheet")
                continue
            modification["sheet_name"] = sheet_name
        if include_details:
            try:
                body = await client.get_values(spreadsheet_id, details_range(sheet_name, range_), {})
                modification["change_details"] = change_details(body)
            except Exception as e:
                host.log.warning(f"Failed to fetch change details: {e}")
        modifications.append(modification)

    await host.cursor.set(state_key, state.dump())

    if not modifications:
        host.log.debug("No new modifications detected after state evaluation")
        return PluginResult.not_triggered()
    host.log.info(f"Triggering flow with {len(modifications)} modification(s)")
    return PluginResult.triggered({"modifications": modifications, "count": len(modifications)})
