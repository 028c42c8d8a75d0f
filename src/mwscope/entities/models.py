"""Domain types for entity filters, compiled selectors and preview results.

Entity identity is ``entity_id`` alone. ``entity_type`` and ``display_name``
are descriptive and never take part in equality or hashing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import uuid4


@dataclass(frozen=True)
class EntityReference:
    """A monitored entity pinned by a filter or produced by host resolution."""

    entity_id: str
    entity_type: str = field(default="", compare=False)
    display_name: str = field(default="", compare=False)


@dataclass(frozen=True)
class ManagementZone:
    """Zone reference. Stored by id, addressed by name in selectors."""

    id: str
    name: str = field(default="", compare=False)


@dataclass(frozen=True)
class TagCriterion:
    """A ``key`` or ``key:value`` tag condition."""

    key: str
    value: str | None = None

    def render(self) -> str:
        return f"{self.key}:{self.value}" if self.value else self.key


@dataclass(frozen=True)
class UnderlyingOptions:
    """Which related resources to pull in alongside a pinned entity."""

    include_processes: bool = False
    include_services: bool = False
    include_hosts: bool = False
    include_process_groups: bool = False

    def any_selected(self) -> bool:
        return (
            self.include_processes
            or self.include_services
            or self.include_hosts
            or self.include_process_groups
        )


def _filter_id() -> str:
    return f"filter-{uuid4().hex[:12]}"


@dataclass(frozen=True)
class EntityFilter:
    """One logical selection rule of a maintenance window.

    A filter with no entities is "criteria-only": its zones and tags apply
    across the fleet.
    """

    management_zones: tuple[ManagementZone, ...] = ()
    tags: tuple[TagCriterion, ...] = ()
    entities: tuple[EntityReference, ...] = ()
    underlying: UnderlyingOptions = field(default_factory=UnderlyingOptions)
    id: str = field(default_factory=_filter_id, compare=False)

    def __post_init__(self) -> None:
        # Zones are a set keyed by id; keep first-seen order.
        seen: set[str] = set()
        zones: list[ManagementZone] = []
        for zone in self.management_zones:
            if zone.id not in seen:
                seen.add(zone.id)
                zones.append(zone)
        object.__setattr__(self, "management_zones", tuple(zones))
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "entities", tuple(self.entities))

    def is_empty(self) -> bool:
        return not (self.entities or self.management_zones or self.tags)


def is_filter_non_empty(entity_filter: EntityFilter) -> bool:
    """True iff the filter has at least one entity, zone or tag."""
    return not entity_filter.is_empty()


@dataclass(frozen=True)
class CompiledSelector:
    """An entity selector string plus the entity type it targets."""

    selector: str
    entity_type: str


@dataclass(frozen=True)
class PreviewEntity:
    """Display-ready entity returned from the remote index."""

    entity_id: str
    display_name: str
    entity_type: str


@dataclass(frozen=True)
class AutoTagRule:
    """A single rule of an environment-wide auto-tagging setting."""

    entity_selector: str
    value_format: str
    type: str = "SELECTOR"
    enabled: bool = True
    value_normalization: str = "Leave text as-is"

    def to_payload(self) -> dict:
        return {
            "type": self.type,
            "enabled": self.enabled,
            "valueFormat": self.value_format,
            "valueNormalization": self.value_normalization,
            "entitySelector": self.entity_selector,
        }


@dataclass(frozen=True)
class PersistedFilter:
    """A filter as stored on a maintenance window.

    Zones are referenced by id here; tags are pre-rendered ``key[:value]``.
    """

    entity_type: str | None = None
    entity_id: str | None = None
    entity_tags: tuple[str, ...] = ()
    management_zones: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, data: dict) -> PersistedFilter:
        return cls(
            entity_type=data.get("entityType") or None,
            entity_id=data.get("entityId") or None,
            entity_tags=tuple(data.get("entityTags") or ()),
            management_zones=tuple(data.get("managementZones") or ()),
        )

    def to_payload(self) -> dict:
        payload: dict = {}
        if self.entity_type:
            payload["entityType"] = self.entity_type
        if self.entity_id:
            payload["entityId"] = self.entity_id
        payload["entityTags"] = list(self.entity_tags)
        payload["managementZones"] = list(self.management_zones)
        return payload


@dataclass(frozen=True)
class EntityTypeOption:
    value: str
    label: str
