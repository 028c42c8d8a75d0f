"""Auto-tag lifecycle — ephemeral tagging rules for underlying-resource fan-out.

Maintenance window filters cannot express relationship traversal, so a save
that needs fan-out first creates an environment-wide tagging rule whose rules
are the fan-out selectors. The window then scopes to entities carrying that
tag. Each rule's value embeds the window end (UTC), which is what the cleanup
pass reads to decide when a rule may be deleted.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError

from mwscope.entities.models import AutoTagRule, EntityFilter
from mwscope.integrations.environment import EnvironmentApiError, EnvironmentClient
from mwscope.selectors.compiler import fans_out, underlying_selectors

logger = structlog.get_logger()

DEFAULT_TAG_PREFIX = "Maintenance — "

_DISALLOWED_TAG_CHARS = re.compile(r"[^\w\s\-—]")
_EXPIRY_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ](\d{2}:\d{2}:\d{2})")


class AutoTagCreationError(Exception):
    """Raised when the tagging rule for a save could not be created."""


def sanitize_tag_name(name: str) -> str:
    return _DISALLOWED_TAG_CHARS.sub("", name).strip()


def tag_key_for(window_name: str, prefix: str = DEFAULT_TAG_PREFIX) -> str:
    return f"{prefix}{sanitize_tag_name(window_name)}"


def tag_value_for(end_utc: datetime) -> str:
    """``YYYY-MM-DD HH:MM:SS UTC`` for an aware (or UTC-naive) end time."""
    if end_utc.tzinfo is not None:
        end_utc = end_utc.astimezone(UTC)
    return end_utc.strftime("%Y-%m-%d %H:%M:%S") + " UTC"


def parse_expiry(value_format: str) -> datetime | None:
    """The UTC timestamp embedded at the start of a rule value, if any."""
    match = _EXPIRY_PATTERN.match(value_format or "")
    if not match:
        return None
    try:
        return datetime.strptime(f"{match.group(1)} {match.group(2)}", "%Y-%m-%d %H:%M:%S").replace(tzinfo=UTC)
    except ValueError:
        return None


def build_rules(filters: Iterable[EntityFilter], tag_value: str) -> list[AutoTagRule]:
    """One SELECTOR rule per fan-out selector of every fanning-out entity.

    Rules carry only the anchor/relationship selector; zone and tag criteria
    stay on the window's own filters.
    """
    rules: list[AutoTagRule] = []
    for entity_filter in filters:
        for entity in entity_filter.entities:
            if not fans_out(entity, entity_filter.underlying):
                continue
            for compiled in underlying_selectors(entity, entity_filter.underlying):
                rules.append(AutoTagRule(entity_selector=compiled.selector, value_format=tag_value))
    return rules


class AutoTagManager:
    """Creates and reclaims auto-tagging rules.

    Args:
        client: Remote settings client.
        prefix: Name prefix that marks rules owned by this manager.
    """

    def __init__(self, client: EnvironmentClient, *, prefix: str = DEFAULT_TAG_PREFIX) -> None:
        self._client = client
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    async def create(self, name: str, value: str, rules: list[AutoTagRule]) -> str:
        """Create the tagging rule and return its object id.

        Raises:
            AutoTagCreationError: On any remote failure or a missing object id.
                The caller must not go on to persist a window that references it.
        """
        description = (
            f"Auto-generated tag for maintenance window. Value: {value}. "
            "This tag can be safely deleted after the maintenance window expires."
        )
        try:
            object_id = await self._client.create_tagging_rule(
                name, description, [rule.to_payload() for rule in rules]
            )
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.aerror("auto_tag_create_failed", tag=name, error=str(exc))
            raise AutoTagCreationError(
                "Failed to create auto-tagging rule. The maintenance window was not created."
            ) from exc
        if not object_id:
            raise AutoTagCreationError(
                "Failed to create auto-tagging rule. The maintenance window was not created."
            )
        await logger.ainfo("auto_tag_created", tag=name, object_id=object_id, rules=len(rules))
        return object_id

    def is_expired(self, item_value: dict, now: datetime) -> bool:
        """Prefix match first; only matching rules have their expiry read.

        Remote values are loosely typed: a non-string name, a non-list
        ``rules`` or a rule that is not a mapping is skipped, never raised on.
        """
        name = item_value.get("name")
        if not isinstance(name, str) or not name.startswith(self._prefix):
            return False
        rules = item_value.get("rules")
        if not isinstance(rules, list):
            return False
        for rule in rules:
            if not isinstance(rule, dict):
                continue
            value_format = rule.get("valueFormat")
            if not isinstance(value_format, str):
                continue
            expiry = parse_expiry(value_format)
            if expiry is not None and expiry < now:
                return True
        return False

    async def cleanup_expired(self, now: datetime | None = None) -> list[str]:
        """Delete owned tagging rules whose embedded end time has passed.

        Best-effort: a failed scan ends the pass quietly; a failed delete is
        logged and the remaining deletions continue.

        Returns:
            Object ids that were deleted.
        """
        if now is None:
            now = datetime.now(UTC)

        expired: list[str] = []
        cursor: str | None = None
        try:
            while True:
                page = await self._client.list_tagging_rules(page_size=500, cursor=cursor)
                for item in page.items:
                    if item.object_id and self.is_expired(item.value, now):
                        expired.append(item.object_id)
                cursor = page.next_page_key
                if not cursor:
                    break
        except (EnvironmentApiError, ValidationError) as exc:
            await logger.awarning("auto_tag_scan_failed", error=str(exc))
            return []

        deleted: list[str] = []
        for object_id in dict.fromkeys(expired):
            try:
                await self._client.delete_object(object_id)
            except EnvironmentApiError as exc:
                await logger.aerror("auto_tag_delete_failed", object_id=object_id, error=str(exc))
                continue
            deleted.append(object_id)
            await logger.ainfo("auto_tag_deleted", object_id=object_id)

        if deleted:
            await logger.ainfo("auto_tag_cleanup_complete", deleted=len(deleted))
        return deleted
