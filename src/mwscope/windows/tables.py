"""Static lookup tables for maintenance window display.

Built once at import as immutable mappings. Unknown timezone ids resolve to
``"?"``; unknown label keys resolve to the raw value.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

UNKNOWN = "?"


@dataclass(frozen=True)
class TimezoneEntry:
    id: str
    offset: str
    city: str
    aliases: tuple[str, ...] = ()
    hidden: bool = False


TIMEZONES: tuple[TimezoneEntry, ...] = (
    TimezoneEntry("Pacific/Honolulu", "−10:00", "Honolulu", ("US/Hawaii",)),
    TimezoneEntry("America/Anchorage", "−09:00/08:00", "Anchorage", ("US/Alaska",)),
    TimezoneEntry(
        "America/Los_Angeles", "−08:00/07:00", "Los Angeles",
        ("US/Pacific", "PST8PDT", "America/Vancouver", "Canada/Pacific"),
    ),
    TimezoneEntry("America/Phoenix", "−07:00", "Phoenix", ("US/Arizona",)),
    TimezoneEntry("America/Denver", "−07:00/06:00", "Denver", ("US/Mountain", "MST7MDT", "Canada/Mountain")),
    TimezoneEntry("America/Mexico_City", "−06:00", "Mexico City"),
    TimezoneEntry("America/Chicago", "−06:00/05:00", "Chicago", ("US/Central", "CST6CDT", "Canada/Central")),
    TimezoneEntry("America/Bogota", "−05:00", "Bogotá"),
    TimezoneEntry("America/Lima", "−05:00", "Lima", hidden=True),
    TimezoneEntry(
        "America/New_York", "−05:00/04:00", "New York",
        ("US/Eastern", "EST5EDT", "America/Toronto", "Canada/Eastern"),
    ),
    TimezoneEntry("America/Caracas", "−04:00", "Caracas"),
    TimezoneEntry("America/Halifax", "−04:00/03:00", "Halifax", ("AST4ADT", "Canada/Atlantic"), hidden=True),
    TimezoneEntry("America/Santiago", "−04:00/03:00", "Santiago"),
    TimezoneEntry("America/Sao_Paulo", "−03:00", "São Paulo"),
    TimezoneEntry("America/Buenos_Aires", "−03:00", "Buenos Aires", hidden=True),
    TimezoneEntry("UTC", "+00:00", "Accra", ("Etc/UTC", "Etc/GMT")),
    TimezoneEntry("Europe/London", "+00:00/01:00", "London", ("Europe/Dublin", "Europe/Lisbon")),
    TimezoneEntry("Africa/Lagos", "+01:00", "Lagos"),
    TimezoneEntry(
        "Europe/Paris", "+01:00/02:00", "Paris",
        ("Europe/Amsterdam", "Europe/Rome", "Europe/Madrid", "Europe/Stockholm", "Europe/Warsaw"),
    ),
    TimezoneEntry("Europe/Berlin", "+01:00/02:00", "Berlin", hidden=True),
    TimezoneEntry("Africa/Johannesburg", "+02:00", "Johannesburg", hidden=True),
    TimezoneEntry("Africa/Cairo", "+02:00", "Cairo"),
    TimezoneEntry("Europe/Athens", "+02:00/03:00", "Athens"),
    TimezoneEntry("Europe/Helsinki", "+02:00/03:00", "Helsinki", ("Europe/Bucharest",), hidden=True),
    TimezoneEntry("Asia/Jerusalem", "+02:00/03:00", "Jerusalem", hidden=True),
    TimezoneEntry("Europe/Moscow", "+03:00", "Moscow", hidden=True),
    TimezoneEntry("Europe/Istanbul", "+03:00", "Istanbul"),
    TimezoneEntry("Asia/Riyadh", "+03:00", "Riyadh", hidden=True),
    TimezoneEntry("Asia/Dubai", "+04:00", "Dubai"),
    TimezoneEntry("Asia/Karachi", "+05:00", "Karachi"),
    TimezoneEntry(
        "Asia/Kolkata", "+05:30", "Kolkata",
        ("Asia/Calcutta", "Asia/Mumbai", "Asia/Delhi", "Asia/Chennai", "Asia/Bangalore"),
    ),
    TimezoneEntry("Asia/Bangkok", "+07:00", "Bangkok", ("Asia/Ho_Chi_Minh",), hidden=True),
    TimezoneEntry("Asia/Jakarta", "+07:00", "Jakarta"),
    TimezoneEntry("Asia/Singapore", "+08:00", "Singapore", ("Asia/Kuala_Lumpur",), hidden=True),
    TimezoneEntry("Asia/Hong_Kong", "+08:00", "Hong Kong", hidden=True),
    TimezoneEntry("Asia/Shanghai", "+08:00", "Shanghai", ("Asia/Taipei",)),
    TimezoneEntry("Asia/Manila", "+08:00", "Manila", hidden=True),
    TimezoneEntry("Australia/Perth", "+08:00", "Perth", ("Australia/West",), hidden=True),
    TimezoneEntry("Asia/Seoul", "+09:00", "Seoul", hidden=True),
    TimezoneEntry("Asia/Tokyo", "+09:00", "Tokyo"),
    TimezoneEntry("Australia/Darwin", "+09:30", "Darwin", ("Australia/North",)),
    TimezoneEntry("Australia/Adelaide", "+09:30/10:30", "Adelaide", ("Australia/South",)),
    TimezoneEntry("Australia/Brisbane", "+10:00", "Brisbane", ("Australia/Queensland",)),
    TimezoneEntry(
        "Australia/Sydney", "+10:00/11:00", "Sydney",
        ("Australia/Melbourne", "Australia/Victoria", "Australia/NSW"),
    ),
    TimezoneEntry("Pacific/Auckland", "+12:00/13:00", "Auckland"),
)


def _build_timezone_lookup() -> MappingProxyType[str, TimezoneEntry]:
    lookup: dict[str, TimezoneEntry] = {}
    for entry in TIMEZONES:
        lookup[entry.id] = entry
        for alias in entry.aliases:
            lookup[alias] = entry
    return MappingProxyType(lookup)


_TIMEZONE_LOOKUP = _build_timezone_lookup()

TIMEZONE_OPTIONS: tuple[TimezoneEntry, ...] = tuple(tz for tz in TIMEZONES if not tz.hidden)

SUPPRESSION_LABELS = MappingProxyType(
    {
        "DONT_DETECT_PROBLEMS": "Problem detection",
        "DETECT_PROBLEMS_DONT_ALERT": "Alerts only",
        "DETECT_PROBLEMS_AND_ALERT": "None",
    }
)

SUPPRESSION_DESCRIPTIONS = MappingProxyType(
    {
        "DONT_DETECT_PROBLEMS": "Don't detect problems",
        "DETECT_PROBLEMS_DONT_ALERT": "Detect problems but don't alert",
        "DETECT_PROBLEMS_AND_ALERT": "Detect problems and alert",
    }
)

SCHEDULE_TYPE_LABELS = MappingProxyType({"ONCE": "Once", "DAILY": "Daily", "WEEKLY": "Weekly", "MONTHLY": "Monthly"})


def timezone_offset(tz_id: str) -> str:
    entry = _TIMEZONE_LOOKUP.get(tz_id)
    return entry.offset if entry else UNKNOWN


def timezone_city(tz_id: str) -> str:
    entry = _TIMEZONE_LOOKUP.get(tz_id)
    return entry.city if entry else UNKNOWN


def canonical_timezone(tz_id: str, default: str = "UTC") -> str:
    """Canonical id for a known id or alias; ``default`` otherwise."""
    entry = _TIMEZONE_LOOKUP.get(tz_id)
    return entry.id if entry else default


def suppression_label(value: str) -> str:
    return SUPPRESSION_LABELS.get(value, value)


def suppression_description(value: str) -> str:
    return SUPPRESSION_DESCRIPTIONS.get(value, value)


def schedule_type_label(value: str) -> str:
    return SCHEDULE_TYPE_LABELS.get(value, value)
