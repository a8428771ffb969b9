"""Helpers shared by polling triggers.

A polling trigger is evaluated on a schedule. It asks a list API for items
changed since a *cutoff* and fires when something new is found. The cutoff
is ``next_execution_date - interval`` when the scheduler provides the next
evaluation time, otherwise ``now - interval`` (or ``now - lookback``).

``RevisionState`` implements keyed de-duplication for triggers that compare
remote versions instead of timestamps.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def parse_duration(value: str | int | float | timedelta | None, default: timedelta | None = None) -> timedelta | None:
    """Parse an ISO-8601 duration (``PT5M``, ``P7D``, ``PT1H30M``) or a number of seconds.

    Raises:
        ValueError: If ``value`` is a string that is not a valid duration.
    """
    if value is None or value == "":
        return default
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=float(value))
    text = str(value).strip().upper()
    m = _DURATION_RE.match(text)
    if not m or text in ("P", "PT") or text.endswith("T"):
        raise ValueError(f"Invalid ISO-8601 duration: {value!r}")
    parts = {k: float(v) for k, v in m.groupdict().items() if v is not None}
    return timedelta(
        days=parts.get("days", 0.0),
        hours=parts.get("hours", 0.0),
        minutes=parts.get("minutes", 0.0),
        seconds=parts.get("seconds", 0.0),
    )


def compute_cutoff(
    next_execution_date: datetime | None,
    interval: timedelta,
    *,
    lookback: timedelta | None = None,
    now: datetime | None = None,
) -> datetime:
    """Return the instant after which items count as new for this evaluation."""
    if next_execution_date is not None:
        if next_execution_date.tzinfo is None:
            next_execution_date = next_execution_date.replace(tzinfo=UTC)
        return next_execution_date - interval
    current = now or datetime.now(UTC)
    return current - (lookback or interval)


def to_rfc3339(dt: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_rfc3339(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as returned by Google APIs. Returns None when absent."""
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def from_epoch_millis(value: str | int | None) -> datetime | None:
    if value is None or value == "":
        return None
    return datetime.fromtimestamp(int(value) / 1000.0, UTC)


class On(str, Enum):
    """Which state transitions fire a stateful trigger."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    CREATE_OR_UPDATE = "CREATE_OR_UPDATE"


@dataclass
class StateEntry:
    uri: str
    version: str
    modified_at: datetime
    last_seen_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "uri": self.uri,
            "version": self.version,
            "modified_at": to_rfc3339(self.modified_at),
            "last_seen_at": to_rfc3339(self.last_seen_at),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "StateEntry":
        return cls(
            uri=str(raw["uri"]),
            version=str(raw.get("version") or ""),
            modified_at=parse_rfc3339(raw.get("modified_at")) or datetime.now(UTC),
            last_seen_at=parse_rfc3339(raw.get("last_seen_at")) or datetime.now(UTC),
        )


class RevisionState:
    """Keyed version store deciding whether a candidate is new or changed.

    Entries are keyed by a stable URI. ``observe`` records the candidate and
    reports whether it should fire according to the ``On`` mode:

    - ``CREATE``: the URI was never seen before
    - ``UPDATE``: the URI was seen and its version or modification time changed
    - ``CREATE_OR_UPDATE``: either of the above
    """

    def __init__(self, entries: dict[str, StateEntry] | None = None) -> None:
        self.entries: dict[str, StateEntry] = dict(entries or {})

    @classmethod
    def load(cls, raw: Any, *, ttl: timedelta | None = None, now: datetime | None = None) -> "RevisionState":
        """Rebuild state from its stored JSON form, dropping entries older than ``ttl``."""
        current = now or datetime.now(UTC)
        entries: dict[str, StateEntry] = {}
        if isinstance(raw, dict):
            for uri, value in raw.items():
                if not isinstance(value, dict):
                    continue
                try:
                    entry = StateEntry.from_dict({"uri": uri, **value})
                except (KeyError, ValueError):
                    continue
                if ttl is not None and current - entry.last_seen_at > ttl:
                    continue
                entries[uri] = entry
        return cls(entries)

    def dump(self) -> dict[str, Any]:
        return {uri: entry.to_dict() for uri, entry in self.entries.items()}

    def observe(
        self,
        uri: str,
        version: str,
        modified_at: datetime,
        on: On = On.CREATE_OR_UPDATE,
        *,
        now: datetime | None = None,
    ) -> bool:
        current = now or datetime.now(UTC)
        previous = self.entries.get(uri)
        is_new = previous is None
        is_updated = previous is not None and (
            previous.version != version or previous.modified_at != modified_at
        )
        self.entries[uri] = StateEntry(uri=uri, version=version, modified_at=modified_at, last_seen_at=current)

        if on == On.CREATE:
            return is_new
        if on == On.UPDATE:
            return is_updated
        return is_new or is_updated
