"""Bulk host resolution — many host names to one filter per host.

Names are resolved one after another. A slow or failed lookup delays the
batch but never stops it.
"""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from mwscope.entities.models import (
    EntityFilter,
    EntityReference,
    ManagementZone,
    TagCriterion,
    UnderlyingOptions,
)
from mwscope.hosts.resolver import HostResolver

logger = structlog.get_logger()

MAX_BULK_HOSTS = 1000

_SEPARATORS = re.compile(r"[,\s]+")


class HostBatchError(ValueError):
    """Raised when a host list is rejected before any lookup."""


class BatchOutcome(str, enum.Enum):
    """How a batch resolution should be handled by the caller."""

    ALL_RESOLVED = "all_resolved"
    NONE_RESOLVED = "none_resolved"
    MIXED = "mixed"


@dataclass
class BatchResolution:
    """Resolved references and unresolved names, both in input order."""

    resolved: list[EntityReference] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)

    @property
    def outcome(self) -> BatchOutcome:
        if not self.resolved:
            return BatchOutcome.NONE_RESOLVED
        if self.unresolved:
            return BatchOutcome.MIXED
        return BatchOutcome.ALL_RESOLVED

    @property
    def message(self) -> str | None:
        if self.outcome is BatchOutcome.NONE_RESOLVED:
            return "Could not find any of the hosts entered."
        if self.outcome is BatchOutcome.MIXED:
            return (
                f"Found {len(self.resolved)} of {len(self.resolved) + len(self.unresolved)} hosts. "
                f"Not found: {', '.join(self.unresolved)}"
            )
        return None


def parse_host_list(raw: str, limit: int = MAX_BULK_HOSTS) -> list[str]:
    """Split on commas and whitespace, drop blanks and exact duplicates.

    Raises:
        HostBatchError: If no names remain, or more than ``limit`` do.
    """
    names = list(dict.fromkeys(part.strip() for part in _SEPARATORS.split(raw) if part.strip()))
    if not names:
        raise HostBatchError("Please enter at least one host name.")
    if len(names) > limit:
        raise HostBatchError(f"Too many hosts. Maximum {limit} allowed. You entered {len(names)}.")
    return names


async def resolve_hosts(
    resolver: HostResolver,
    host_names: Iterable[str],
    limit: int = MAX_BULK_HOSTS,
) -> BatchResolution:
    """Resolve each name sequentially.

    Args:
        resolver: Single-host resolver.
        host_names: Already normalized names (see ``parse_host_list``).
        limit: Maximum batch size; larger batches are rejected up front.

    Raises:
        HostBatchError: If the batch exceeds ``limit``.
    """
    names = list(host_names)
    if len(names) > limit:
        raise HostBatchError(f"Too many hosts. Maximum {limit} allowed. You entered {len(names)}.")

    result = BatchResolution()
    for name in names:
        reference = await resolver.resolve(name)
        if reference is None:
            result.unresolved.append(name)
        else:
            result.resolved.append(reference)

    await logger.ainfo(
        "host_batch_resolved",
        resolved=len(result.resolved),
        unresolved=len(result.unresolved),
        outcome=result.outcome.value,
    )
    return result


def build_host_filters(
    hosts: Iterable[EntityReference],
    *,
    management_zones: Iterable[ManagementZone] = (),
    tags: Iterable[TagCriterion] = (),
    include_processes: bool = False,
    include_services: bool = False,
) -> list[EntityFilter]:
    """One filter per host, all sharing the same zones, tags and HOST flags."""
    zones = tuple(management_zones)
    tag_list = tuple(tags)
    options = UnderlyingOptions(include_processes=include_processes, include_services=include_services)
    return [
        EntityFilter(management_zones=zones, tags=tag_list, entities=(host,), underlying=options)
        for host in hosts
    ]
