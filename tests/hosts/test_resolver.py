"""Tests for three-tier host name resolution."""

from __future__ import annotations

import pytest

from mwscope.entities.models import EntityReference
from mwscope.hosts.resolver import HostResolver
from mwscope.integrations.environment import EnvironmentApiError

EXACT = 'type(HOST),entityName.equals("web-01")'
DETECTED = 'type(HOST),detectedName.equals("web-01")'
CONTAINS = 'type(HOST),entityName.contains("web-01")'


@pytest.fixture
def resolver(fake_env) -> HostResolver:
    return HostResolver(fake_env)


class TestResolve:
    async def test_exact_match_short_circuits(self, fake_env, resolver: HostResolver) -> None:
        fake_env.add_entities(EXACT, [{"entityId": "HOST-1", "displayName": "web-01"}])
        fake_env.add_entities(DETECTED, [{"entityId": "HOST-2"}])
        fake_env.add_entities(CONTAINS, [{"entityId": "HOST-3"}])

        result = await resolver.resolve("web-01")

        assert result == EntityReference("HOST-1", "HOST", "web-01")
        assert result.entity_type == "HOST"
        assert fake_env.selectors_queried() == [EXACT]
        assert fake_env.entity_calls[0]["page_size"] == 1

    async def test_detected_name_tier(self, fake_env, resolver: HostResolver) -> None:
        fake_env.add_entities(DETECTED, [{"entityId": "HOST-2", "displayName": "web-01.corp"}])
        result = await resolver.resolve("web-01")
        assert result is not None
        assert result.entity_id == "HOST-2"
        assert fake_env.selectors_queried() == [EXACT, DETECTED]

    async def test_unique_contains_match_accepted(self, fake_env, resolver: HostResolver) -> None:
        fake_env.add_entities(CONTAINS, [{"entityId": "HOST-3", "displayName": "web-01-prod"}])
        result = await resolver.resolve("web-01")
        assert result is not None
        assert result.entity_id == "HOST-3"
        assert fake_env.entity_calls[-1]["page_size"] == 5

    async def test_ambiguous_contains_is_unresolved(self, fake_env, resolver: HostResolver) -> None:
        fake_env.add_entities(
            CONTAINS,
            [{"entityId": "HOST-3"}, {"entityId": "HOST-4"}],
        )
        assert await resolver.resolve("web-01") is None

    async def test_no_match(self, fake_env, resolver: HostResolver) -> None:
        assert await resolver.resolve("web-01") is None
        assert fake_env.selectors_queried() == [EXACT, DETECTED, CONTAINS]

    async def test_network_failure_is_unresolved(self, fake_env, resolver: HostResolver) -> None:
        fake_env.add_entities(DETECTED, EnvironmentApiError("timeout"))
        assert await resolver.resolve("web-01") is None
        assert CONTAINS not in fake_env.selectors_queried()

    async def test_missing_display_name_falls_back_to_id(self, fake_env, resolver: HostResolver) -> None:
        fake_env.add_entities(EXACT, [{"entityId": "HOST-1"}])
        result = await resolver.resolve("web-01")
        assert result is not None
        assert result.display_name == "HOST-1"
