"""Entity fetching against the remote index.

Follows next-page cursors until exhaustion. A failing selector degrades to
zero results so sibling selectors and filters still complete.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import structlog
from pydantic import ValidationError

from mwscope.entities.merge import dedupe, merge
from mwscope.entities.models import (
    CompiledSelector,
    EntityFilter,
    EntityReference,
    EntityTypeOption,
    PreviewEntity,
)
from mwscope.entities.taxonomy import default_type_options, humanize_type
from mwscope.integrations.environment import EntityRecord, EnvironmentApiError, EnvironmentClient
from mwscope.selectors import grammar as g
from mwscope.selectors.compiler import compile_filter

logger = structlog.get_logger()

SEARCH_PAGE_SIZE = 20


def to_preview(record: EntityRecord) -> PreviewEntity:
    entity_id = record.entity_id
    entity_type = record.type or (entity_id.split("-")[0] if entity_id else "") or "UNKNOWN"
    return PreviewEntity(
        entity_id=entity_id,
        display_name=record.display_name or entity_id,
        entity_type=entity_type,
    )


class EntityFetcher:
    """Fetches preview entities for selectors and filters.

    Args:
        client: Remote index client.
        observation_window: Relative start of the activity horizon.
        page_size: Entities requested per page.
    """

    def __init__(
        self,
        client: EnvironmentClient,
        *,
        observation_window: str = "now-30d",
        page_size: int = 500,
    ) -> None:
        self._client = client
        self._observation_window = observation_window
        self._page_size = page_size

    async def fetch(self, selector: str) -> list[PreviewEntity]:
        """All entities matching one selector, or [] if any page fails."""
        results: list[PreviewEntity] = []
        cursor: str | None = None
        try:
            while True:
                page = await self._client.query_entities(
                    selector,
                    observation_window=self._observation_window,
                    page_size=self._page_size,
                    cursor=cursor,
                )
                results.extend(to_preview(record) for record in page.entities)
                cursor = page.next_page_key
                if not cursor:
                    break
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.aerror("entity_fetch_failed", selector=selector, error=str(exc))
            return []
        return results

    async def fetch_many(self, selectors: Iterable[str | CompiledSelector]) -> list[PreviewEntity]:
        """Fetch all selectors concurrently; raw concatenation in input order."""
        strings = [s.selector if isinstance(s, CompiledSelector) else s for s in selectors]
        groups = await asyncio.gather(*(self.fetch(s) for s in strings))
        return [entity for group in groups for entity in group]

    async def fetch_for_filter(self, entity_filter: EntityFilter) -> list[PreviewEntity]:
        """De-duplicated entities for one filter. Empty filters never reach the index."""
        selectors = compile_filter(entity_filter)
        if not selectors:
            return []
        return dedupe(await self.fetch_many(selectors))

    async def fetch_for_filters(self, filters: Iterable[EntityFilter]) -> list[PreviewEntity]:
        """De-duplicated entities across all non-empty filters, in filter order."""
        non_empty = [f for f in filters if not f.is_empty()]
        groups = await asyncio.gather(*(self.fetch_for_filter(f) for f in non_empty))
        return merge(groups)

    async def search(self, entity_type: str, term: str) -> list[EntityReference]:
        """Name-contains lookup within one entity type, for interactive pickers."""
        if not entity_type or not term:
            return []
        selector = g.join((g.type_clause(entity_type), g.name_contains(term)))
        try:
            page = await self._client.query_entities(
                selector,
                observation_window=self._observation_window,
                page_size=SEARCH_PAGE_SIZE,
            )
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.aerror("entity_search_failed", entity_type=entity_type, error=str(exc))
            return []
        return [
            EntityReference(
                entity_id=record.entity_id,
                entity_type=entity_type,
                display_name=record.display_name or record.entity_id,
            )
            for record in page.entities
        ]

    async def resolve_names(self, entity_ids: Iterable[str]) -> dict[str, str]:
        """Map entity ids to display names; unknown or failed ids map to themselves."""
        ids = list(dict.fromkeys(entity_ids))

        async def _one(entity_id: str) -> str:
            try:
                page = await self._client.query_entities(
                    g.entity_id_clause(entity_id),
                    observation_window=self._observation_window,
                    page_size=1,
                )
            except (EnvironmentApiError, ValidationError):
                return entity_id
            if page.entities and page.entities[0].display_name:
                return page.entities[0].display_name
            return entity_id

        names = await asyncio.gather(*(_one(i) for i in ids))
        return dict(zip(ids, names))

    async def entity_types(self) -> list[EntityTypeOption]:
        """Entity-type catalogue sorted by label; the static defaults on failure."""
        try:
            page = await self._client.query_entity_types(page_size=500)
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.awarning("entity_types_fetch_failed", error=str(exc))
            return [EntityTypeOption(value, label) for value, label in default_type_options()]
        options = [
            EntityTypeOption(value=record.type, label=record.display_name or humanize_type(record.type))
            for record in page.types
            if record.type
        ]
        return sorted(options, key=lambda o: o.label.lower())
