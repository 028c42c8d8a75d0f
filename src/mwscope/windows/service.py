"""Maintenance window composition, preview and persistence.

Save flow:
    1. Validate the draft (no network before this passes)
    2. Create the auto-tag rule if any filter fans out; failure aborts
    3. Persist the window
    4. Reclaim expired auto-tag rules (best-effort)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import ValidationError

from mwscope.autotag.lifecycle import (
    AutoTagManager,
    build_rules,
    tag_key_for,
    tag_value_for,
)
from mwscope.entities.fetcher import EntityFetcher
from mwscope.entities.merge import dedupe
from mwscope.entities.models import EntityFilter, ManagementZone, PersistedFilter, PreviewEntity
from mwscope.integrations.environment import (
    MAINTENANCE_WINDOW_SCHEMA,
    MANAGEMENT_ZONE_SCHEMA,
    EnvironmentApiError,
    EnvironmentClient,
)
from mwscope.selectors.compiler import compile_persisted_filters, fans_out, needs_auto_tagging, underlying_selectors
from mwscope.windows.schedule import (
    MaintenanceWindowSummary,
    compose_description,
    summarize,
    to_api_datetime,
)

logger = structlog.get_logger()

SUPPRESSION_OPTIONS = ("DETECT_PROBLEMS_AND_ALERT", "DETECT_PROBLEMS_DONT_ALERT", "DONT_DETECT_PROBLEMS")


class WindowValidationError(ValueError):
    """Raised for drafts that must not be sent anywhere."""


class WindowSaveError(Exception):
    """Raised when persisting the window fails."""


@dataclass
class WindowDraft:
    """A maintenance window being composed.

    ``start`` and ``end`` are wall-clock times in ``timezone``.
    """

    name: str = ""
    description: str = ""
    start: datetime | None = None
    end: datetime | None = None
    timezone: str = "UTC"
    suppression: str = "DETECT_PROBLEMS_AND_ALERT"
    disable_synthetics: bool = False
    filters: list[EntityFilter] = field(default_factory=list)

    def end_utc(self) -> datetime:
        if self.end is None:
            raise WindowValidationError("End time is required.")
        end = self.end
        if end.tzinfo is None:
            end = end.replace(tzinfo=ZoneInfo(self.timezone or "UTC"))
        return end.astimezone(UTC)


def validate_draft(draft: WindowDraft) -> None:
    """Reject drafts before any remote call.

    Raises:
        WindowValidationError: With a user-facing message.
    """
    if not draft.name.strip():
        raise WindowValidationError("Name is required.")
    if draft.start is None:
        raise WindowValidationError("Start time is required.")
    if draft.end is None:
        raise WindowValidationError("End time is required.")
    if (draft.start.tzinfo is None) != (draft.end.tzinfo is None):
        raise WindowValidationError("Start and end times must both carry a UTC offset, or neither.")
    if draft.end <= draft.start:
        raise WindowValidationError("End time must be after start time.")
    try:
        ZoneInfo(draft.timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise WindowValidationError(f"Unknown time zone: {draft.timezone}") from exc
    if draft.suppression not in SUPPRESSION_OPTIONS:
        raise WindowValidationError(f"Unknown suppression mode: {draft.suppression}")
    if not draft.filters:
        raise WindowValidationError(
            "You must add at least one entity filter. Without an entity filter, "
            "the maintenance window would apply to the entire environment."
        )
    if any(f.is_empty() for f in draft.filters):
        raise WindowValidationError("Each entity filter must contain at least one management zone, tag, or entity.")


def persisted_filters(
    filters: Iterable[EntityFilter],
    tag: tuple[str, str] | None = None,
) -> list[PersistedFilter]:
    """Window-level filters for the given entity filters.

    Entities that fan out become one filter per distinct target type scoped
    by the auto-tag ``(key, value)``; other entities stay pinned by id.
    """
    result: list[PersistedFilter] = []
    for entity_filter in filters:
        base_tags = tuple(t.render() for t in entity_filter.tags)
        zone_ids = tuple(z.id for z in entity_filter.management_zones)

        if not entity_filter.entities:
            result.append(PersistedFilter(entity_tags=base_tags, management_zones=zone_ids))
            continue

        for entity in entity_filter.entities:
            if tag is not None and fans_out(entity, entity_filter.underlying):
                key, value = tag
                target_types = dict.fromkeys(
                    s.entity_type for s in underlying_selectors(entity, entity_filter.underlying)
                )
                for entity_type in target_types:
                    result.append(
                        PersistedFilter(
                            entity_type=entity_type,
                            entity_tags=(*base_tags, f"{key}:{value}"),
                            management_zones=zone_ids,
                        )
                    )
            else:
                result.append(
                    PersistedFilter(
                        entity_type=entity.entity_type,
                        entity_id=entity.entity_id,
                        entity_tags=base_tags,
                        management_zones=zone_ids,
                    )
                )
    return result


def build_window_value(
    draft: WindowDraft,
    author_email: str,
    tag: tuple[str, str] | None = None,
) -> dict:
    """Settings value for a one-off maintenance window.

    Raises:
        WindowValidationError: If the draft does not pass ``validate_draft``.
    """
    validate_draft(draft)
    return {
        "enabled": True,
        "generalProperties": {
            "name": draft.name.strip(),
            "description": compose_description(draft.description, author_email),
            "maintenanceType": "PLANNED",
            "suppression": draft.suppression,
            "disableSyntheticMonitorExecution": draft.disable_synthetics,
        },
        "schedule": {
            "scheduleType": "ONCE",
            "onceRecurrence": {
                "startTime": to_api_datetime(draft.start),
                "endTime": to_api_datetime(draft.end),
                "timeZone": draft.timezone,
            },
        },
        "filters": [f.to_payload() for f in persisted_filters(draft.filters, tag)],
    }


class WindowService:
    """Preview, save and list maintenance windows.

    Args:
        client: Remote settings/entity client.
        fetcher: Entity fetcher used for previews.
        auto_tags: Auto-tag lifecycle manager.
    """

    def __init__(
        self,
        client: EnvironmentClient,
        fetcher: EntityFetcher,
        auto_tags: AutoTagManager,
    ) -> None:
        self._client = client
        self._fetcher = fetcher
        self._auto_tags = auto_tags

    async def preview_filter(self, entity_filter: EntityFilter) -> list[PreviewEntity]:
        return await self._fetcher.fetch_for_filter(entity_filter)

    async def preview_all(self, filters: Iterable[EntityFilter]) -> list[PreviewEntity]:
        return await self._fetcher.fetch_for_filters(filters)

    async def preview_window(
        self,
        window: MaintenanceWindowSummary,
        zones: Iterable[ManagementZone],
    ) -> list[PreviewEntity]:
        """Entities currently matched by a stored window's filters."""
        zone_names = {z.id: z.name for z in zones}
        selectors = compile_persisted_filters(window.filters, zone_names)
        return dedupe(await self._fetcher.fetch_many(selectors))

    async def save(self, draft: WindowDraft, author_email: str) -> str | None:
        """Validate and persist a draft; returns the new window's object id.

        Raises:
            WindowValidationError: Draft rejected before any remote call.
            AutoTagCreationError: Tag rule creation failed; nothing was persisted.
            WindowSaveError: The window itself could not be persisted.
        """
        validate_draft(draft)

        tag: tuple[str, str] | None = None
        if any(needs_auto_tagging(f) for f in draft.filters):
            key = tag_key_for(draft.name.strip(), self._auto_tags.prefix)
            value = tag_value_for(draft.end_utc())
            rules = build_rules(draft.filters, value)
            if rules:
                await self._auto_tags.create(key, value, rules)
                tag = (key, value)

        try:
            object_id = await self._client.create_settings_object(
                MAINTENANCE_WINDOW_SCHEMA,
                build_window_value(draft, author_email, tag),
            )
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.aerror("window_save_failed", window=draft.name, error=str(exc))
            raise WindowSaveError(f"Failed to create maintenance window: {exc}") from exc

        await logger.ainfo("window_saved", window=draft.name, object_id=object_id, auto_tag=tag is not None)
        try:
            await self._auto_tags.cleanup_expired()
        except Exception as exc:
            # The window is already persisted at this point.
            await logger.awarning("post_save_cleanup_failed", window=draft.name, error=str(exc))
        return object_id

    async def list_windows(self) -> list[MaintenanceWindowSummary]:
        """All stored windows. A failed page ends the listing with what was read so far."""
        windows: list[MaintenanceWindowSummary] = []
        cursor: str | None = None
        try:
            while True:
                page = await self._client.list_settings_objects(
                    MAINTENANCE_WINDOW_SCHEMA,
                    page_size=500,
                    fields="objectId,value,created,modified,author,schemaVersion",
                    cursor=cursor,
                )
                windows.extend(summarize(item) for item in page.items)
                cursor = page.next_page_key
                if not cursor:
                    break
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.aerror("window_list_failed", error=str(exc))
        return windows

    async def list_management_zones(self) -> list[ManagementZone]:
        try:
            page = await self._client.list_settings_objects(MANAGEMENT_ZONE_SCHEMA, page_size=500)
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.aerror("management_zone_list_failed", error=str(exc))
            return []
        zones = [ManagementZone(id=item.object_id, name=item.value.get("name") or "Unknown") for item in page.items]
        return sorted(zones, key=lambda z: z.name.lower())
