"""CLI entrypoint — Typer-based command interface.

Commands:
    mwscope compile        — Print the selectors for a filter (no network)
    mwscope preview        — Fetch the entities a filter matches
    mwscope resolve-hosts  — Resolve host names to HOST entities
    mwscope cleanup-tags   — Delete expired maintenance auto-tag rules
    mwscope list-windows   — List stored maintenance windows
    mwscope timezones      — List selectable time zones (no network)
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from mwscope.entities.models import EntityFilter, EntityReference, ManagementZone, TagCriterion, UnderlyingOptions
from mwscope.selectors.compiler import compile_filter

app = typer.Typer(
    name="mwscope",
    help="Maintenance window scoping — entity filter compilation, host resolution and auto-tag cleanup",
)


def _parse_entity(value: str) -> EntityReference:
    entity_type, sep, entity_id = value.partition(":")
    if not sep or not entity_type or not entity_id:
        raise typer.BadParameter(f"Expected TYPE:ID, got {value!r}")
    return EntityReference(entity_id=entity_id, entity_type=entity_type.upper())


def _parse_tag(value: str) -> TagCriterion:
    key, _, tag_value = value.partition(":")
    if not key:
        raise typer.BadParameter(f"Empty tag key in {value!r}")
    return TagCriterion(key=key, value=tag_value or None)


def _build_filter(
    entities: list[str],
    tags: list[str],
    zones: list[str],
    processes: bool,
    services: bool,
    hosts: bool,
    process_groups: bool,
) -> EntityFilter:
    return EntityFilter(
        entities=tuple(_parse_entity(e) for e in entities),
        tags=tuple(_parse_tag(t) for t in tags),
        management_zones=tuple(ManagementZone(id=z, name=z) for z in zones),
        underlying=UnderlyingOptions(
            include_processes=processes,
            include_services=services,
            include_hosts=hosts,
            include_process_groups=process_groups,
        ),
    )


_ENTITY_OPT = typer.Option([], "--entity", "-e", help="Pinned entity as TYPE:ID (repeatable)")
_TAG_OPT = typer.Option([], "--tag", "-t", help="Tag as KEY or KEY:VALUE (repeatable)")
_ZONE_OPT = typer.Option([], "--zone", "-z", help="Management zone name (repeatable)")


@app.command("compile")
def compile_cmd(
    entity: list[str] = _ENTITY_OPT,
    tag: list[str] = _TAG_OPT,
    zone: list[str] = _ZONE_OPT,
    processes: bool = typer.Option(False, help="Include underlying processes"),
    services: bool = typer.Option(False, help="Include underlying services"),
    hosts: bool = typer.Option(False, help="Include underlying hosts"),
    process_groups: bool = typer.Option(False, help="Include underlying process groups"),
) -> None:
    """Print the entity selectors a filter compiles to."""
    entity_filter = _build_filter(entity, tag, zone, processes, services, hosts, process_groups)
    if entity_filter.is_empty():
        typer.echo("Error: filter is empty — add at least one entity, tag or zone", err=True)
        raise typer.Exit(code=1)
    for compiled in compile_filter(entity_filter):
        typer.echo(compiled.selector)


@app.command()
def preview(
    entity: list[str] = _ENTITY_OPT,
    tag: list[str] = _TAG_OPT,
    zone: list[str] = _ZONE_OPT,
    processes: bool = typer.Option(False, help="Include underlying processes"),
    services: bool = typer.Option(False, help="Include underlying services"),
    hosts: bool = typer.Option(False, help="Include underlying hosts"),
    process_groups: bool = typer.Option(False, help="Include underlying process groups"),
) -> None:
    """Fetch and print the entities a filter matches."""
    entity_filter = _build_filter(entity, tag, zone, processes, services, hosts, process_groups)
    if entity_filter.is_empty():
        typer.echo("Error: filter is empty — add at least one entity, tag or zone", err=True)
        raise typer.Exit(code=1)

    async def _run() -> None:
        from mwscope.entities.fetcher import EntityFetcher

        settings, client = _connect()
        async with client:
            fetcher = EntityFetcher(
                client,
                observation_window=settings.observation_window,
                page_size=settings.entity_page_size,
            )
            entities = await fetcher.fetch_for_filter(entity_filter)

        for e in entities:
            typer.echo(f"{e.entity_id}\t{e.entity_type}\t{e.display_name}")
        typer.echo(f"{len(entities)} entities matched")

    asyncio.run(_run())


@app.command("resolve-hosts")
def resolve_hosts_cmd(
    names: str = typer.Argument("", help="Host names separated by commas or whitespace"),
    file: Path | None = typer.Option(None, "--file", "-f", help="Read host names from a file"),
) -> None:
    """Resolve host names to HOST entities, one lookup at a time."""
    from mwscope.hosts.bulk import BatchOutcome, HostBatchError, parse_host_list

    raw = names
    if file is not None:
        raw = f"{raw}\n{file.read_text(encoding='utf-8')}"

    async def _run() -> int:
        from mwscope.hosts.bulk import resolve_hosts
        from mwscope.hosts.resolver import HostResolver

        settings, client = _connect()
        try:
            host_names = parse_host_list(raw, limit=settings.max_bulk_hosts)
        except HostBatchError as exc:
            typer.echo(f"Error: {exc}", err=True)
            return 1

        async with client:
            resolver = HostResolver(client, observation_window=settings.observation_window)
            result = await resolve_hosts(resolver, host_names, limit=settings.max_bulk_hosts)

        for ref in result.resolved:
            typer.echo(f"OK\t{ref.entity_id}\t{ref.display_name}")
        for name in result.unresolved:
            typer.echo(f"MISSING\t{name}")
        if result.message:
            typer.echo(result.message, err=True)
        return 1 if result.outcome is BatchOutcome.NONE_RESOLVED else 0

    code = asyncio.run(_run())
    if code:
        raise typer.Exit(code=code)


@app.command("cleanup-tags")
def cleanup_tags() -> None:
    """Delete maintenance auto-tag rules whose embedded end time has passed."""

    async def _run() -> None:
        from mwscope.autotag.lifecycle import AutoTagManager

        settings, client = _connect()
        async with client:
            manager = AutoTagManager(client, prefix=settings.auto_tag_prefix)
            deleted = await manager.cleanup_expired()
        typer.echo(f"Deleted {len(deleted)} expired auto-tag rule(s)")

    asyncio.run(_run())


@app.command("list-windows")
def list_windows(
    show_disabled: bool = typer.Option(False, help="Include disabled windows"),
    search: str = typer.Option("", help="Case-insensitive name filter"),
    details: bool = typer.Option(False, help="Also print author, description and what is suppressed"),
) -> None:
    """List stored maintenance windows."""

    async def _run() -> None:
        from mwscope.autotag.lifecycle import AutoTagManager
        from mwscope.entities.fetcher import EntityFetcher
        from mwscope.windows.service import WindowService
        from mwscope.windows.tables import suppression_description, suppression_label

        settings, client = _connect()
        async with client:
            auto_tags = AutoTagManager(client, prefix=settings.auto_tag_prefix)
            if settings.cleanup_on_start:
                await auto_tags.cleanup_expired()
            service = WindowService(client, EntityFetcher(client), auto_tags)
            windows = await service.list_windows()

        term = search.lower()
        for w in windows:
            if not show_disabled and not w.enabled:
                continue
            if term and term not in w.name.lower():
                continue
            typer.echo(
                f"{w.name}\t{w.start_time}\t{w.end_time}\tUTC {w.utc_offset}\t{w.city}\t"
                f"{suppression_label(w.suppression)}"
            )
            if details:
                typer.echo(f"    by {w.author}: {w.description or '-'}")
                typer.echo(f"    {suppression_description(w.suppression)}")

    asyncio.run(_run())


@app.command()
def timezones() -> None:
    """List the time zones offered for new maintenance windows."""
    from mwscope.windows.tables import TIMEZONE_OPTIONS

    for tz in TIMEZONE_OPTIONS:
        typer.echo(f"UTC {tz.offset}\t{tz.city}\t{tz.id}")


def _connect():
    from mwscope.config import get_settings
    from mwscope.integrations.environment import EnvironmentClient
    from mwscope.log_config import configure_logging

    settings = get_settings()
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)
    client = EnvironmentClient(
        settings.environment_url,
        settings.api_token,
        timeout=settings.httpx_timeout_seconds,
        max_retries=settings.max_retries,
    )
    return settings, client


if __name__ == "__main__":
    app()
