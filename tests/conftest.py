"""Shared test fixtures for the mwscope test suite.

Provides an in-memory stand-in for the remote entity/settings index that
records every call.
"""

from __future__ import annotations

import pytest

from mwscope.integrations.environment import (
    EntityPage,
    EntityTypesPage,
    EnvironmentApiError,
    SettingsPage,
)


class FakeEnvironment:
    """Async stand-in for EnvironmentClient.

    Entity pages are registered per selector. A page may be an exception
    instance, which is raised when that page is requested.
    """

    def __init__(self) -> None:
        self.entity_pages: dict[str, list[list[dict] | Exception]] = {}
        self.entity_calls: list[dict] = []
        self.entity_types: list[dict] | Exception = []
        self.settings_pages: dict[str, list[list[dict] | Exception]] = {}
        self.settings_calls: list[dict] = []
        self.created: list[dict] = []
        self.create_results: list[str | None | Exception] = []
        self.deleted: list[str] = []
        self.delete_failures: set[str] = set()
        self.closed = False

    # --- registration helpers ---

    def add_entities(self, selector: str, *pages: list[dict] | Exception) -> None:
        self.entity_pages[selector] = list(pages)

    def add_settings(self, schema: str, *pages: list[dict] | Exception) -> None:
        self.settings_pages[schema] = list(pages)

    def selectors_queried(self) -> list[str]:
        return [c["selector"] for c in self.entity_calls if c["cursor"] is None]

    # --- client surface ---

    async def query_entities(
        self,
        selector: str,
        *,
        observation_window: str = "now-30d",
        page_size: int = 500,
        cursor: str | None = None,
    ) -> EntityPage:
        self.entity_calls.append(
            {
                "selector": selector,
                "observation_window": observation_window,
                "page_size": page_size,
                "cursor": cursor,
            }
        )
        pages = self.entity_pages.get(selector, [[]])
        index = int(cursor.rsplit("#", 1)[1]) if cursor else 0
        page = pages[index]
        if isinstance(page, Exception):
            raise page
        next_key = f"{selector}#{index + 1}" if index + 1 < len(pages) else None
        return EntityPage.model_validate({"entities": page, "nextPageKey": next_key})

    async def query_entity_types(self, page_size: int = 500) -> EntityTypesPage:
        if isinstance(self.entity_types, Exception):
            raise self.entity_types
        return EntityTypesPage.model_validate({"types": self.entity_types})

    async def list_settings_objects(
        self,
        schema: str,
        *,
        page_size: int = 500,
        fields: str | None = None,
        cursor: str | None = None,
    ) -> SettingsPage:
        self.settings_calls.append({"schema": schema, "cursor": cursor})
        pages = self.settings_pages.get(schema, [[]])
        index = int(cursor.rsplit("#", 1)[1]) if cursor else 0
        page = pages[index]
        if isinstance(page, Exception):
            raise page
        next_key = f"{schema}#{index + 1}" if index + 1 < len(pages) else None
        return SettingsPage.model_validate({"items": page, "nextPageKey": next_key})

    async def list_tagging_rules(self, *, page_size: int = 500, cursor: str | None = None) -> SettingsPage:
        return await self.list_settings_objects(
            "builtin:tags.auto-tagging", page_size=page_size, fields="objectId,value", cursor=cursor
        )

    async def create_settings_object(self, schema: str, value: dict, scope: str = "environment") -> str | None:
        self.created.append({"schema": schema, "value": value, "scope": scope})
        result = self.create_results.pop(0) if self.create_results else f"obj-{len(self.created)}"
        if isinstance(result, Exception):
            raise result
        return result

    async def create_tagging_rule(self, name: str, description: str, rules: list[dict]) -> str | None:
        value = {"name": name, "description": description, "rules": rules}
        return await self.create_settings_object("builtin:tags.auto-tagging", value)

    async def delete_object(self, object_id: str) -> None:
        if object_id in self.delete_failures:
            raise EnvironmentApiError(f"delete {object_id} failed")
        self.deleted.append(object_id)

    async def __aenter__(self) -> FakeEnvironment:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True


@pytest.fixture
def fake_env() -> FakeEnvironment:
    return FakeEnvironment()
