"""Stable de-duplication of fetched entities."""

from __future__ import annotations

from collections.abc import Iterable

from mwscope.entities.models import PreviewEntity


def dedupe(entities: Iterable[PreviewEntity]) -> list[PreviewEntity]:
    """Keep the first occurrence of each entity id, in input order.

    Idempotent: ``dedupe(dedupe(x)) == dedupe(x)``.
    """
    seen: set[str] = set()
    unique: list[PreviewEntity] = []
    for entity in entities:
        if entity.entity_id in seen:
            continue
        seen.add(entity.entity_id)
        unique.append(entity)
    return unique


def merge(groups: Iterable[Iterable[PreviewEntity]]) -> list[PreviewEntity]:
    """Concatenate per-selector (or per-filter) results in input order, then dedupe.

    ``groups`` must be ordered by input position, not by completion time.
    """
    return dedupe(entity for group in groups for entity in group)
