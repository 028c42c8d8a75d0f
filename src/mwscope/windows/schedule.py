"""Maintenance window read model.

Turns stored maintenance-window settings objects into display summaries and
answers "is this window active now" for one-off schedules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mwscope.entities.models import PersistedFilter
from mwscope.integrations.environment import SettingsObject
from mwscope.windows.tables import timezone_city, timezone_offset

_DISPLAY_DATETIME = re.compile(r"(\d{4}-\d{2}-\d{2})T?(\d{2}:\d{2})")
_API_DATETIME = re.compile(r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})")
_AUTHOR_SUFFIX = re.compile(r"\s*\[([^\]]+@[^\]]+)\]\s*$")

_RECURRENCE_KEYS = ("onceRecurrence", "dailyRecurrence", "weeklyRecurrence", "monthlyRecurrence")


@dataclass(frozen=True)
class MaintenanceWindowSummary:
    """A stored maintenance window, flattened for listing."""

    object_id: str
    name: str
    description: str = ""
    author: str = "Unknown"
    enabled: bool = False
    suppression: str = ""
    schedule_type: str = ""
    start_time: str = "N/A"
    end_time: str = "N/A"
    timezone: str = ""
    utc_offset: str = "?"
    city: str = "?"
    filters: tuple[PersistedFilter, ...] = ()
    raw: dict = field(default_factory=dict, compare=False, repr=False)


def format_datetime(value: str) -> str:
    """``YYYY-MM-DD HH:MM`` for display; "N/A" when empty, input when unparseable."""
    if not value:
        return "N/A"
    match = _DISPLAY_DATETIME.search(value)
    return f"{match.group(1)} {match.group(2)}" if match else value


def to_api_datetime(value: datetime | str) -> str:
    """``YYYY-MM-DDTHH:MM:SS`` as the schedule API expects (no zone suffix)."""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%dT%H:%M:%S")
    if not value:
        return ""
    match = _API_DATETIME.search(value)
    return match.group(1) if match else value


def parse_description(description: str) -> tuple[str, str]:
    """Split a trailing ``[author@domain]`` off a description."""
    if not description:
        return "", "Unknown"
    match = _AUTHOR_SUFFIX.search(description)
    if not match:
        return description, "Unknown"
    return description[: match.start()].strip(), match.group(1)


def compose_description(text: str, author_email: str) -> str:
    text = text.strip()
    return f"{text} [{author_email}]" if text else f"[{author_email}]"


def summarize(item: SettingsObject) -> MaintenanceWindowSummary:
    """Flatten one maintenance-window settings object. Missing fields get defaults."""
    value = item.value or {}
    props = value.get("generalProperties") or {}
    schedule = value.get("schedule") or {}
    enabled = bool(value.get("enabled", False))

    recurrence: dict = {}
    for key in _RECURRENCE_KEYS:
        if schedule.get(key):
            recurrence = schedule[key]
            break

    text, author = parse_description(props.get("description") or "")
    tz_id = recurrence.get("timeZone") or ""
    name = props.get("name") or "Unnamed"

    return MaintenanceWindowSummary(
        object_id=item.object_id,
        name=name if enabled else f"[Disabled] {name}",
        description=text,
        author=author,
        enabled=enabled,
        suppression=props.get("suppression") or "",
        schedule_type=schedule.get("scheduleType") or "",
        start_time=format_datetime(recurrence.get("startTime") or ""),
        end_time=format_datetime(recurrence.get("endTime") or ""),
        timezone=tz_id,
        utc_offset=timezone_offset(tz_id),
        city=timezone_city(tz_id),
        filters=tuple(PersistedFilter.from_payload(f) for f in value.get("filters") or [] if isinstance(f, dict)),
        raw=value,
    )


def _localize(display: str, tz_id: str) -> datetime | None:
    try:
        naive = datetime.strptime(display, "%Y-%m-%d %H:%M")
        return naive.replace(tzinfo=ZoneInfo(tz_id or "UTC"))
    except (ValueError, ZoneInfoNotFoundError):
        return None


def is_window_active(window: MaintenanceWindowSummary, now: datetime | None = None) -> bool:
    """Check if a one-off window is currently active. Recurring windows are never reported active."""
    if now is None:
        now = datetime.now(UTC)
    if not window.enabled or window.schedule_type != "ONCE":
        return False
    start = _localize(window.start_time, window.timezone)
    end = _localize(window.end_time, window.timezone)
    if start is None or end is None:
        return False
    return start <= now <= end


def find_active_windows(
    windows: list[MaintenanceWindowSummary],
    now: datetime | None = None,
) -> list[MaintenanceWindowSummary]:
    """Return all currently active maintenance windows."""
    return [w for w in windows if is_window_active(w, now)]
