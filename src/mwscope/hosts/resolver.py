"""Free-text host name → HOST entity resolution.

Three tiers, each queried only when the previous one found nothing:

1. display name equals the input (first of at most 1)
2. detected name equals the input (first of at most 1)
3. display name contains the input (page of 5) — accepted only when
   exactly one host matches; ambiguous matches stay unresolved.

Any remote failure leaves the host unresolved instead of raising, so a
batch can carry on with the remaining names.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog
from pydantic import ValidationError

from mwscope.entities.models import EntityReference
from mwscope.entities.taxonomy import HOST
from mwscope.integrations.environment import EntityRecord, EnvironmentApiError, EnvironmentClient
from mwscope.selectors import grammar as g

logger = structlog.get_logger()


@dataclass(frozen=True)
class _Tier:
    name: str
    predicate: Callable[[str], str]
    page_size: int
    unique_only: bool


_TIERS: tuple[_Tier, ...] = (
    _Tier("exact_name", g.name_equals, 1, False),
    _Tier("detected_name", g.detected_name_equals, 1, False),
    _Tier("name_contains", g.name_contains, 5, True),
)


def _host_reference(record: EntityRecord) -> EntityReference:
    entity_id = record.entity_id
    return EntityReference(
        entity_id=entity_id,
        entity_type=HOST,
        display_name=record.display_name or entity_id,
    )


class HostResolver:
    """Resolves host names against the remote index.

    Args:
        client: Remote index client.
        observation_window: Relative start of the activity horizon.
    """

    def __init__(self, client: EnvironmentClient, *, observation_window: str = "now-30d") -> None:
        self._client = client
        self._observation_window = observation_window

    async def resolve(self, host_name: str) -> EntityReference | None:
        """Resolve one host name; None when unresolved or on any remote failure."""
        try:
            for tier in _TIERS:
                selector = g.join((g.type_clause(HOST), tier.predicate(host_name)))
                page = await self._client.query_entities(
                    selector,
                    observation_window=self._observation_window,
                    page_size=tier.page_size,
                )
                if not page.entities:
                    continue
                if tier.unique_only and len(page.entities) != 1:
                    await logger.ainfo(
                        "host_match_ambiguous",
                        host=host_name,
                        candidates=len(page.entities),
                    )
                    return None
                await logger.adebug("host_resolved", host=host_name, tier=tier.name)
                return _host_reference(page.entities[0])
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.aerror("host_resolution_failed", host=host_name, error=str(exc))
            return None
        return None
