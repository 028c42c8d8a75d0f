"""Tests for window validation, the save flow, listing and preview."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest

from mwscope.autotag.lifecycle import AutoTagCreationError, AutoTagManager
from mwscope.entities.fetcher import EntityFetcher
from mwscope.entities.models import (
    EntityFilter,
    EntityReference,
    ManagementZone,
    PersistedFilter,
    TagCriterion,
    UnderlyingOptions,
)
from mwscope.integrations.environment import (
    AUTO_TAG_SCHEMA,
    MAINTENANCE_WINDOW_SCHEMA,
    MANAGEMENT_ZONE_SCHEMA,
    EnvironmentApiError,
)
from mwscope.windows.schedule import MaintenanceWindowSummary
from mwscope.windows.service import (
    WindowDraft,
    WindowSaveError,
    WindowService,
    WindowValidationError,
    build_window_value,
    persisted_filters,
    validate_draft,
)

TAG_KEY = "Maintenance — DB patch"
TAG_VALUE = "2030-01-01 11:00:00 UTC"

HOST_WITH_PROCESSES = EntityFilter(
    entities=(EntityReference("HOST-1", "HOST", "web-01"),),
    underlying=UnderlyingOptions(include_processes=True),
)


def draft(**overrides) -> WindowDraft:
    values = {
        "name": "DB patch",
        "description": "Quarterly",
        "start": datetime(2030, 1, 1, 10, 0),
        "end": datetime(2030, 1, 1, 12, 0),
        "timezone": "Europe/Paris",
        "filters": [HOST_WITH_PROCESSES],
    }
    values.update(overrides)
    return WindowDraft(**values)


@pytest.fixture
def service(fake_env) -> WindowService:
    return WindowService(fake_env, EntityFetcher(fake_env), AutoTagManager(fake_env))


class TestValidateDraft:
    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"name": "  "}, "Name is required"),
            ({"start": None}, "Start time is required"),
            ({"end": None}, "End time is required"),
            ({"end": datetime(2030, 1, 1, 9, 0)}, "must be after start"),
            ({"timezone": "Mars/Olympus"}, "Unknown time zone"),
            ({"suppression": "SOMETIMES"}, "Unknown suppression"),
            ({"filters": []}, "at least one entity filter"),
            ({"filters": [EntityFilter()]}, "Each entity filter"),
        ],
    )
    def test_rejections(self, overrides: dict, message: str) -> None:
        with pytest.raises(WindowValidationError, match=message):
            validate_draft(draft(**overrides))

    def test_valid_draft_passes(self) -> None:
        validate_draft(draft())

    def test_end_utc_uses_window_timezone(self) -> None:
        assert draft().end_utc().strftime("%H:%M") == "11:00"

    def test_mixed_awareness_rejected(self) -> None:
        with pytest.raises(WindowValidationError, match="UTC offset"):
            validate_draft(draft(end=datetime(2030, 1, 1, 12, 0, tzinfo=UTC)))

    def test_end_utc_without_end(self) -> None:
        with pytest.raises(WindowValidationError, match="End time is required"):
            draft(end=None).end_utc()

    def test_window_value_rejects_invalid_draft(self) -> None:
        with pytest.raises(WindowValidationError, match="Start time is required"):
            build_window_value(draft(start=None), "ops@example.com")


class TestPersistedFilters:
    def test_fan_out_scoped_by_tag_per_target_type(self) -> None:
        result = persisted_filters([HOST_WITH_PROCESSES], (TAG_KEY, TAG_VALUE))
        assert result == [
            PersistedFilter(entity_type="HOST", entity_tags=(f"{TAG_KEY}:{TAG_VALUE}",)),
            PersistedFilter(entity_type="PROCESS_GROUP_INSTANCE", entity_tags=(f"{TAG_KEY}:{TAG_VALUE}",)),
        ]

    def test_plain_entity_stays_pinned(self) -> None:
        f = EntityFilter(entities=(EntityReference("SERVICE-1", "SERVICE"),), tags=(TagCriterion("env", "prod"),))
        assert persisted_filters([f]) == [
            PersistedFilter(entity_type="SERVICE", entity_id="SERVICE-1", entity_tags=("env:prod",)),
        ]

    def test_criteria_only(self) -> None:
        f = EntityFilter(management_zones=(ManagementZone("mz-1", "Payments"),), tags=(TagCriterion("team"),))
        assert persisted_filters([f]) == [PersistedFilter(entity_tags=("team",), management_zones=("mz-1",))]

    def test_window_value_shape(self) -> None:
        value = build_window_value(draft(), "ops@example.com")
        assert value["enabled"] is True
        assert value["generalProperties"]["description"] == "Quarterly [ops@example.com]"
        assert value["schedule"]["onceRecurrence"] == {
            "startTime": "2030-01-01T10:00:00",
            "endTime": "2030-01-01T12:00:00",
            "timeZone": "Europe/Paris",
        }
        assert value["filters"] == [
            {"entityType": "HOST", "entityId": "HOST-1", "entityTags": [], "managementZones": []},
        ]


class TestSave:
    async def test_invalid_draft_makes_no_calls(self, fake_env, service: WindowService) -> None:
        with pytest.raises(WindowValidationError):
            await service.save(draft(filters=[]), "ops@example.com")
        assert fake_env.created == []
        assert fake_env.settings_calls == []

    async def test_tag_then_window_then_cleanup(self, fake_env, service: WindowService) -> None:
        fake_env.create_results = ["tag-1", "mw-1"]
        object_id = await service.save(draft(), "ops@example.com")

        assert object_id == "mw-1"
        assert [c["schema"] for c in fake_env.created] == [AUTO_TAG_SCHEMA, MAINTENANCE_WINDOW_SCHEMA]
        tag_value = fake_env.created[0]["value"]
        assert tag_value["name"] == TAG_KEY
        assert {r["valueFormat"] for r in tag_value["rules"]} == {TAG_VALUE}
        window_filters = fake_env.created[1]["value"]["filters"]
        assert all(f["entityTags"] == [f"{TAG_KEY}:{TAG_VALUE}"] for f in window_filters)
        assert fake_env.settings_calls[-1]["schema"] == AUTO_TAG_SCHEMA

    async def test_no_fan_out_skips_tag(self, fake_env, service: WindowService) -> None:
        f = EntityFilter(entities=(EntityReference("HOST-1", "HOST"),))
        await service.save(draft(filters=[f]), "ops@example.com")
        assert [c["schema"] for c in fake_env.created] == [MAINTENANCE_WINDOW_SCHEMA]

    async def test_tag_failure_aborts_window(self, fake_env, service: WindowService) -> None:
        fake_env.create_results = [EnvironmentApiError("403")]
        with pytest.raises(AutoTagCreationError):
            await service.save(draft(), "ops@example.com")
        assert [c["schema"] for c in fake_env.created] == [AUTO_TAG_SCHEMA]
        assert fake_env.settings_calls == []

    async def test_window_failure_raises_save_error(self, fake_env, service: WindowService) -> None:
        fake_env.create_results = ["tag-1", EnvironmentApiError("500")]
        with pytest.raises(WindowSaveError):
            await service.save(draft(), "ops@example.com")

    async def test_cleanup_failure_does_not_fail_save(self, fake_env, service: WindowService) -> None:
        fake_env.create_results = ["tag-1", "mw-1"]
        boom = AsyncMock(side_effect=RuntimeError("boom"))
        with patch.object(AutoTagManager, "cleanup_expired", boom):
            object_id = await service.save(draft(), "ops@example.com")
        assert object_id == "mw-1"
        boom.assert_awaited_once()

    async def test_malformed_tag_rules_do_not_fail_save(self, fake_env, service: WindowService) -> None:
        fake_env.add_settings(
            AUTO_TAG_SCHEMA,
            [{"objectId": "x", "value": {"name": "Maintenance — x", "rules": ["oops"]}}],
        )
        assert await service.save(draft(), "ops@example.com") == "obj-2"
        assert fake_env.deleted == []


class TestListing:
    async def test_list_windows_pages(self, fake_env, service: WindowService) -> None:
        fake_env.add_settings(
            MAINTENANCE_WINDOW_SCHEMA,
            [{"objectId": "a", "value": {"enabled": True, "generalProperties": {"name": "A"}}}],
            [{"objectId": "b", "value": {"enabled": True, "generalProperties": {"name": "B"}}}],
        )
        windows = await service.list_windows()
        assert [w.name for w in windows] == ["A", "B"]

    async def test_list_windows_keeps_partial(self, fake_env, service: WindowService) -> None:
        fake_env.add_settings(
            MAINTENANCE_WINDOW_SCHEMA,
            [{"objectId": "a", "value": {"enabled": True, "generalProperties": {"name": "A"}}}],
            EnvironmentApiError("timeout"),
        )
        windows = await service.list_windows()
        assert [w.object_id for w in windows] == ["a"]

    async def test_management_zones_sorted(self, fake_env, service: WindowService) -> None:
        fake_env.add_settings(
            MANAGEMENT_ZONE_SCHEMA,
            [
                {"objectId": "mz-2", "value": {"name": "payments"}},
                {"objectId": "mz-1", "value": {"name": "Checkout"}},
            ],
        )
        zones = await service.list_management_zones()
        assert [z.name for z in zones] == ["Checkout", "payments"]

    async def test_management_zones_failure(self, fake_env, service: WindowService) -> None:
        fake_env.add_settings(MANAGEMENT_ZONE_SCHEMA, EnvironmentApiError("down"))
        assert await service.list_management_zones() == []


class TestPreviewWindow:
    async def test_zone_names_and_dedupe(self, fake_env, service: WindowService) -> None:
        window = MaintenanceWindowSummary(
            object_id="mw-1",
            name="x",
            filters=(
                PersistedFilter(entity_type="HOST", management_zones=("mz-1",)),
                PersistedFilter(entity_type="HOST", entity_id="HOST-1"),
            ),
        )
        fake_env.add_entities(
            'type(HOST),mzName("Payments")',
            [{"entityId": "HOST-1", "displayName": "web-01"}, {"entityId": "HOST-2"}],
        )
        fake_env.add_entities('type(HOST),entityId("HOST-1")', [{"entityId": "HOST-1", "displayName": "web-01"}])

        result = await service.preview_window(window, [ManagementZone("mz-1", "Payments")])

        assert [e.entity_id for e in result] == ["HOST-1", "HOST-2"]
