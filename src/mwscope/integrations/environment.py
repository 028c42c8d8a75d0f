"""Async client for the remote entity and settings index.

Provides the five remote operations the scoping core relies on: paged entity
queries, the entity-type catalogue, settings object creation, settings object
listing and deletion. Includes a circuit breaker and retry with exponential
backoff for idempotent calls.

Response payloads are parsed into explicit records at this boundary; every
optional field has a default so callers never probe raw dicts.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from mwscope import __version__

logger = structlog.get_logger()

ENTITIES_PATH = "/api/v2/entities"
ENTITY_TYPES_PATH = "/api/v2/entityTypes"
SETTINGS_OBJECTS_PATH = "/api/v2/settings/objects"

AUTO_TAG_SCHEMA = "builtin:tags.auto-tagging"
MAINTENANCE_WINDOW_SCHEMA = "builtin:alerting.maintenance-window"
MANAGEMENT_ZONE_SCHEMA = "builtin:management-zones"


class EnvironmentApiError(Exception):
    """Base exception for remote index errors."""


class EnvironmentCircuitOpen(EnvironmentApiError):
    """Circuit breaker is open — failing fast."""


def is_client_rejection(status: int) -> bool:
    """4xx other than 429: the environment answered and refused this request."""
    return 400 <= status < 500 and status != 429


@dataclass
class CircuitBreaker:
    """Fails fast for ``cooldown_seconds`` once the environment looks unhealthy.

    Only server-side failures count: transport errors, 5xx and 429 responses,
    and 2xx bodies that are not JSON. A rejected selector says nothing about
    the environment and never trips the breaker.
    """

    failure_threshold: int = 5
    cooldown_seconds: float = 60.0
    _consecutive_failures: int = 0
    _open_until: float = 0.0

    def record_success(self) -> None:
        self._consecutive_failures = 0
        self._open_until = 0.0

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures >= self.failure_threshold:
            self._open_until = time.monotonic() + self.cooldown_seconds

    def is_open(self) -> bool:
        return time.monotonic() < self._open_until

    def remaining_cooldown(self) -> float:
        return max(0.0, self._open_until - time.monotonic())

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures


# --- Response records ---


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EntityRecord(_Record):
    entity_id: str = Field(default="", alias="entityId")
    display_name: str | None = Field(default=None, alias="displayName")
    type: str | None = None


class EntityPage(_Record):
    entities: list[EntityRecord] = Field(default_factory=list)
    next_page_key: str | None = Field(default=None, alias="nextPageKey")
    total_count: int | None = Field(default=None, alias="totalCount")


class EntityTypeRecord(_Record):
    type: str = ""
    display_name: str | None = Field(default=None, alias="displayName")


class EntityTypesPage(_Record):
    types: list[EntityTypeRecord] = Field(default_factory=list)
    next_page_key: str | None = Field(default=None, alias="nextPageKey")


class SettingsObject(_Record):
    object_id: str = Field(default="", alias="objectId")
    value: dict = Field(default_factory=dict)
    created: int | None = None
    modified: int | None = None
    author: str | None = None
    schema_version: str | None = Field(default=None, alias="schemaVersion")


class SettingsPage(_Record):
    items: list[SettingsObject] = Field(default_factory=list)
    next_page_key: str | None = Field(default=None, alias="nextPageKey")


class SettingsWriteResult(_Record):
    code: int | None = None
    object_id: str | None = Field(default=None, alias="objectId")


class EnvironmentClient:
    """Async REST client for the remote environment.

    Args:
        base_url: Environment base URL (e.g. "https://abc123.live.example.com").
        token: API token. Treated as a secret and never logged.
        timeout: HTTP request timeout in seconds.
        max_retries: Max attempts for idempotent calls, with exponential backoff.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 3,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._max_retries = max_retries
        self._breaker = CircuitBreaker()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Authorization": f"Api-Token {self._token}",
                    "Accept": "application/json; charset=utf-8",
                    "User-Agent": f"mwscope/{__version__}",
                },
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client. Safe to call more than once."""
        client, self._client = self._client, None
        if client is not None and not client.is_closed:
            await client.aclose()

    async def __aenter__(self) -> EnvironmentClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: object | None = None,
        retry: bool = True,
    ) -> object:
        """Make an authenticated request with retry and circuit breaker.

        Only idempotent calls pass ``retry=True``; a retried POST could create
        the same settings object twice.
        """
        if self._breaker.is_open():
            raise EnvironmentCircuitOpen(
                f"Environment unavailable after {self._breaker.consecutive_failures} failures; "
                f"retry in {self._breaker.remaining_cooldown():.0f}s"
            )

        client = await self._get_client()
        attempts = self._max_retries if retry else 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                response = await client.request(method, path, params=params, json=json)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if is_client_rejection(status):
                    # Rejected request: never retried, never a breaker failure.
                    await logger.awarning("environment_request_rejected", method=method, path=path, status=status)
                    raise EnvironmentApiError(f"{method} {path} rejected with HTTP {status}") from exc
                last_error = exc
            except httpx.HTTPError as exc:
                last_error = exc
            else:
                return self._decode(response, method, path)

            self._breaker.record_failure()
            await logger.awarning(
                "environment_request_failed",
                method=method,
                path=path,
                attempt=attempt + 1,
                error=str(last_error),
            )
            if attempt < attempts - 1:
                await asyncio.sleep(2 ** attempt)

        raise EnvironmentApiError(f"{method} {path} failed after {attempts} attempt(s): {last_error}")

    def _decode(self, response: httpx.Response, method: str, path: str) -> object:
        """JSON body of a successful response; None when the body is empty.

        Raises:
            EnvironmentApiError: The body is not JSON (e.g. a proxy error page).
        """
        if response.status_code == 204 or not response.content:
            self._breaker.record_success()
            return None
        try:
            data = response.json()
        except ValueError as exc:
            self._breaker.record_failure()
            raise EnvironmentApiError(f"{method} {path} returned a non-JSON body") from exc
        self._breaker.record_success()
        return data

    # --- Entities ---

    async def query_entities(
        self,
        selector: str,
        *,
        observation_window: str = "now-30d",
        page_size: int = 500,
        cursor: str | None = None,
    ) -> EntityPage:
        """Fetch one page of entities matching ``selector``.

        When ``cursor`` is given the remote side replays the original query,
        so only the cursor is sent.
        """
        if cursor:
            params: dict = {"nextPageKey": cursor}
        else:
            params = {
                "entitySelector": selector,
                "from": observation_window,
                "pageSize": page_size,
            }
        data = await self._request("GET", ENTITIES_PATH, params=params)
        return EntityPage.model_validate(data or {})

    async def query_entity_types(self, page_size: int = 500) -> EntityTypesPage:
        data = await self._request("GET", ENTITY_TYPES_PATH, params={"pageSize": page_size})
        return EntityTypesPage.model_validate(data or {})

    # --- Settings objects ---

    async def list_settings_objects(
        self,
        schema: str,
        *,
        page_size: int = 500,
        fields: str | None = None,
        cursor: str | None = None,
    ) -> SettingsPage:
        if cursor:
            params: dict = {"nextPageKey": cursor}
        else:
            params = {"schemaIds": schema, "pageSize": page_size}
            if fields:
                params["fields"] = fields
        data = await self._request("GET", SETTINGS_OBJECTS_PATH, params=params)
        return SettingsPage.model_validate(data or {})

    async def list_tagging_rules(self, *, page_size: int = 500, cursor: str | None = None) -> SettingsPage:
        """One page of auto-tagging rules (object id and value only)."""
        return await self.list_settings_objects(
            AUTO_TAG_SCHEMA, page_size=page_size, fields="objectId,value", cursor=cursor
        )

    async def create_settings_object(self, schema: str, value: dict, scope: str = "environment") -> str | None:
        """Create one settings object; returns its object id when the server reports one."""
        payload = [{"schemaId": schema, "scope": scope, "value": value}]
        data = await self._request("POST", SETTINGS_OBJECTS_PATH, json=payload, retry=False)
        results = [SettingsWriteResult.model_validate(item) for item in (data or [])]
        return results[0].object_id if results else None

    async def create_tagging_rule(self, name: str, description: str, rules: list[dict]) -> str | None:
        value = {"name": name, "description": description, "rules": rules}
        return await self.create_settings_object(AUTO_TAG_SCHEMA, value)

    async def delete_object(self, object_id: str) -> None:
        await self._request("DELETE", f"{SETTINGS_OBJECTS_PATH}/{object_id}")

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Access the circuit breaker for inspection/testing."""
        return self._breaker
