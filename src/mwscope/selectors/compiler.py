"""Entity filter → selector compilation.

Pure functions — no I/O, no side effects.

Functions:
    compile_filter: Compiles one EntityFilter into its selectors
    underlying_selectors: Anchor + relationship fan-out for one pinned entity
    needs_auto_tagging: Whether a filter requires an auto-tag rule at save time
    compile_persisted_filters: Selectors for filters already stored on a window
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from mwscope.entities import taxonomy as t
from mwscope.entities.models import (
    CompiledSelector,
    EntityFilter,
    EntityReference,
    PersistedFilter,
    UnderlyingOptions,
)
from mwscope.selectors import grammar as g


@dataclass(frozen=True)
class FanOutEdge:
    """One row of the relationship fan-out table."""

    source_type: str
    flag: str
    target_type: str
    build: Callable[[str], str]

    def applies(self, options: UnderlyingOptions) -> bool:
        return bool(getattr(options, self.flag, False))


def _hosts_of_group(entity_id: str) -> str:
    return g.join((g.type_clause(t.HOST), g.from_relationship("isInstanceOf", g.entity_id_clause(entity_id))))


FAN_OUT_TABLE: tuple[FanOutEdge, ...] = (
    FanOutEdge(
        t.HOST, "include_processes", t.PROCESS_GROUP_INSTANCE,
        lambda i: g.join((
            g.type_clause(t.PROCESS_GROUP_INSTANCE),
            g.from_relationship("isProcessOf", g.entity_id_clause(i)),
        )),
    ),
    FanOutEdge(
        t.HOST, "include_services", t.SERVICE_INSTANCE,
        lambda i: g.join((g.type_clause(t.SERVICE), g.from_relationship("runsOnHost", g.entity_id_clause(i)))),
    ),
    FanOutEdge(t.HOST_GROUP, "include_hosts", t.HOST, _hosts_of_group),
    FanOutEdge(
        t.HOST_GROUP, "include_processes", t.PROCESS_GROUP_INSTANCE,
        lambda i: g.join((
            g.type_clause(t.PROCESS_GROUP_INSTANCE),
            g.from_relationship("isProcessOf", _hosts_of_group(i)),
        )),
    ),
    FanOutEdge(
        t.HOST_GROUP, "include_services", t.SERVICE_INSTANCE,
        lambda i: g.join((g.type_clause(t.SERVICE), g.from_relationship("runsOnHost", _hosts_of_group(i)))),
    ),
    FanOutEdge(
        t.PROCESS_GROUP, "include_hosts", t.HOST,
        lambda i: g.join((g.type_clause(t.HOST), g.to_relationship("runsOn", g.entity_id_clause(i)))),
    ),
    FanOutEdge(
        t.PROCESS_GROUP, "include_services", t.SERVICE,
        lambda i: g.join((g.type_clause(t.SERVICE), g.from_relationship("runsOn", g.entity_id_clause(i)))),
    ),
    FanOutEdge(
        t.SERVICE, "include_hosts", t.HOST,
        lambda i: g.join((g.type_clause(t.HOST), g.to_relationship("runsOnHost", g.entity_id_clause(i)))),
    ),
    FanOutEdge(
        t.SERVICE, "include_process_groups", t.PROCESS_GROUP,
        lambda i: g.join((g.type_clause(t.PROCESS_GROUP), g.to_relationship("runsOn", g.entity_id_clause(i)))),
    ),
)


def fans_out(entity: EntityReference, options: UnderlyingOptions) -> bool:
    """True when the entity's type can fan out and at least one flag is set."""
    return t.is_underlying_capable(entity.entity_type) and options.any_selected()


def underlying_selectors(entity: EntityReference, options: UnderlyingOptions) -> list[CompiledSelector]:
    """Anchor selector followed by one selector per applicable fan-out edge.

    The anchor always comes first so the pinned entity itself stays included.
    Flags with no edge for the entity's type are ignored.
    """
    selectors = [
        CompiledSelector(g.entity_anchor(entity.entity_type, entity.entity_id), entity.entity_type),
    ]
    for edge in FAN_OUT_TABLE:
        if edge.source_type == entity.entity_type and edge.applies(options):
            selectors.append(CompiledSelector(edge.build(entity.entity_id), edge.target_type))
    return selectors


def _criteria_clauses(entity_filter: EntityFilter) -> list[str]:
    tags = [g.tag_clause(tag.key, tag.value) for tag in entity_filter.tags]
    zones = [g.mz_name_clause(zone.name) for zone in entity_filter.management_zones]
    return tags + zones


def compile_filter(entity_filter: EntityFilter) -> list[CompiledSelector]:
    """Compile a filter into the selectors that together describe its entities.

    An empty filter compiles to nothing; callers must treat that as a
    rejection, never as "match everything".

    Args:
        entity_filter: The filter to compile.

    Returns:
        Compiled selectors in a deterministic order.
    """
    if entity_filter.is_empty():
        return []

    criteria = _criteria_clauses(entity_filter)
    compiled: list[CompiledSelector] = []

    if entity_filter.entities:
        for entity in entity_filter.entities:
            if fans_out(entity, entity_filter.underlying):
                for base in underlying_selectors(entity, entity_filter.underlying):
                    compiled.append(CompiledSelector(g.join([base.selector, *criteria]), base.entity_type))
            else:
                anchor = g.entity_anchor(entity.entity_type, entity.entity_id)
                compiled.append(CompiledSelector(g.join([anchor, *criteria]), entity.entity_type))
        return compiled

    for entity_type in t.CRITERIA_FALLBACK_TYPES:
        compiled.append(CompiledSelector(g.join([g.type_clause(entity_type), *criteria]), entity_type))
    return compiled


def compile_filters(filters: Iterable[EntityFilter]) -> list[list[CompiledSelector]]:
    """Compile each non-empty filter; empty filters are dropped."""
    return [compile_filter(f) for f in filters if not f.is_empty()]


def needs_auto_tagging(entity_filter: EntityFilter) -> bool:
    return any(fans_out(entity, entity_filter.underlying) for entity in entity_filter.entities)


def compile_persisted_filters(
    filters: Iterable[PersistedFilter],
    zone_names: Mapping[str, str],
) -> list[str]:
    """Selectors for the filters stored on an existing maintenance window.

    Zone ids are translated to names through ``zone_names``; ids with no
    known name are dropped. A filter with neither type nor id fans out across
    the persisted fallback types.
    """
    selectors: list[str] = []
    for persisted in filters:
        parts: list[str] = []
        if persisted.entity_type:
            parts.append(g.type_clause(persisted.entity_type))
        if persisted.entity_id:
            parts.append(g.entity_id_clause(persisted.entity_id))
        parts.extend(g.raw_tag_clause(tag) for tag in persisted.entity_tags)
        for zone_id in persisted.management_zones:
            name = zone_names.get(zone_id)
            if name:
                parts.append(g.mz_name_clause(name))

        if not parts:
            continue

        if not persisted.entity_type and not persisted.entity_id:
            for entity_type in t.PERSISTED_FALLBACK_TYPES:
                selectors.append(g.join([g.type_clause(entity_type), *parts]))
        else:
            selectors.append(g.join(parts))
    return selectors
