"""Clause builders for the remote entity selector grammar.

A selector is a comma-joined list of predicates; the comma means AND.
String arguments are double-quoted, with ``~`` and ``"`` escaped by a
leading ``~`` as the remote grammar requires.
"""

from __future__ import annotations

from collections.abc import Iterable


def quote(value: str) -> str:
    escaped = value.replace("~", "~~").replace('"', '~"')
    return f'"{escaped}"'


def type_clause(entity_type: str) -> str:
    return f"type({entity_type})"


def entity_id_clause(entity_id: str) -> str:
    return f"entityId({quote(entity_id)})"


def tag_clause(key: str, value: str | None = None) -> str:
    return f"tag({quote(f'{key}:{value}' if value else key)})"


def raw_tag_clause(tag: str) -> str:
    """Tag predicate from an already rendered ``key`` or ``key:value`` string."""
    return f"tag({quote(tag)})"


def mz_name_clause(zone_name: str) -> str:
    return f"mzName({quote(zone_name)})"


def name_equals(name: str) -> str:
    return f"entityName.equals({quote(name)})"


def name_contains(term: str) -> str:
    return f"entityName.contains({quote(term)})"


def detected_name_equals(name: str) -> str:
    return f"detectedName.equals({quote(name)})"


def from_relationship(relation: str, inner: str) -> str:
    return f"fromRelationships.{relation}({inner})"


def to_relationship(relation: str, inner: str) -> str:
    return f"toRelationships.{relation}({inner})"


def join(parts: Iterable[str]) -> str:
    return ",".join(part for part in parts if part)


def entity_anchor(entity_type: str, entity_id: str) -> str:
    """``type(T),entityId("id")`` — the direct selector for one entity."""
    return join((type_clause(entity_type), entity_id_clause(entity_id)))
