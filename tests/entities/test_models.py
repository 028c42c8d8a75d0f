"""Tests for domain types and the static entity-type tables."""

from __future__ import annotations

import pytest

from mwscope.entities.models import (
    AutoTagRule,
    EntityFilter,
    EntityReference,
    ManagementZone,
    PersistedFilter,
    TagCriterion,
    is_filter_non_empty,
)
from mwscope.entities.taxonomy import (
    DEFAULT_ENTITY_TYPES,
    entity_type_label,
    humanize_type,
    is_underlying_capable,
)


class TestEntityReference:
    def test_identity_ignores_descriptive_fields(self) -> None:
        assert EntityReference("HOST-1", "HOST", "a") == EntityReference("HOST-1", "", "b")
        assert len({EntityReference("HOST-1", "HOST", "a"), EntityReference("HOST-1", "HOST", "b")}) == 1


class TestEntityFilter:
    @pytest.mark.parametrize(
        ("entity_filter", "expected"),
        [
            (EntityFilter(), False),
            (EntityFilter(tags=(TagCriterion("x"),)), True),
            (EntityFilter(management_zones=(ManagementZone("1", "z"),)), True),
            (EntityFilter(entities=(EntityReference("HOST-1", "HOST"),)), True),
        ],
    )
    def test_non_empty(self, entity_filter: EntityFilter, expected: bool) -> None:
        assert is_filter_non_empty(entity_filter) is expected

    def test_lists_are_frozen_to_tuples(self) -> None:
        f = EntityFilter(tags=[TagCriterion("a")])  # type: ignore[arg-type]
        assert isinstance(f.tags, tuple)

    def test_ids_unique(self) -> None:
        assert EntityFilter().id != EntityFilter().id


class TestPayloads:
    def test_tag_render(self) -> None:
        assert TagCriterion("env").render() == "env"
        assert TagCriterion("env", "prod").render() == "env:prod"

    def test_auto_tag_rule_payload(self) -> None:
        rule = AutoTagRule(entity_selector="type(HOST)", value_format="2030-01-01 00:00:00 UTC")
        assert rule.to_payload() == {
            "type": "SELECTOR",
            "enabled": True,
            "valueFormat": "2030-01-01 00:00:00 UTC",
            "valueNormalization": "Leave text as-is",
            "entitySelector": "type(HOST)",
        }

    def test_persisted_filter_round_trip_defaults(self) -> None:
        parsed = PersistedFilter.from_payload({"entityTags": None})
        assert parsed == PersistedFilter()
        assert parsed.to_payload() == {"entityTags": [], "managementZones": []}


class TestTaxonomy:
    def test_capable_types(self) -> None:
        assert is_underlying_capable("HOST_GROUP")
        assert not is_underlying_capable("APPLICATION")

    def test_label_fallback_is_raw_value(self) -> None:
        assert entity_type_label("HOST") == "Host"
        assert entity_type_label("NOT_A_TYPE") == "NOT_A_TYPE"

    def test_tables_are_immutable(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_ENTITY_TYPES["HOST"] = "x"  # type: ignore[index]

    def test_humanize(self) -> None:
        assert humanize_type("PROCESS_GROUP_INSTANCE") == "Process Group Instance"
