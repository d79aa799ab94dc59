"""
Admin API client.

Async httpx client for the catalog admin API. Every route answers with the
`{success, data, message}` envelope; this module turns any failure
(network error, non-2xx status, undecodable body, `success: false`, or a
payload that does not normalize) into a single `RemoteError`, and every
success into canonical entities via `catalogsync.parsers`.
"""

import logging
from collections.abc import Sequence
from types import TracebackType
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from catalogsync.config import settings
from catalogsync.models.catalog import Collection, Entity
from catalogsync.models.failure import Envelope, FailureKind, RemoteError
from catalogsync.models.scope import Scope, ScopeKind
from catalogsync.parsers.payload import TagCatalog, parse_entities, parse_entity

logger = logging.getLogger(__name__)


class RemoteApi(Protocol):
    """Operations the sync layer consumes from the admin API."""

    async def fetch_collection(self, scope: Scope) -> list[Entity]: ...

    async def create_entity(self, collection: Collection, payload: dict[str, Any]) -> Entity: ...

    async def update_entity(
        self, collection: Collection, entity_id: int, payload: dict[str, Any]
    ) -> Entity: ...

    async def delete_entity(self, collection: Collection, entity_id: int) -> None: ...

    async def set_card_tags(self, card_id: int, tag_ids: Sequence[int]) -> None: ...


def collection_path(scope: Scope) -> tuple[str, dict[str, Any]]:
    """Route and query params for a scope's bulk read."""
    if scope.kind == ScopeKind.HEROES:
        return "/heroes", {}
    if scope.kind == ScopeKind.HERO_MOVIES:
        return f"/heroes/{scope.hero_id}/movies", {}
    if scope.kind == ScopeKind.HERO_CARDS:
        return f"/heroes/{scope.hero_id}/cards", {}
    if scope.kind == ScopeKind.MOVIE_CARDS:
        return f"/movies/{scope.movie_id}/cards", {}
    params = {"hero_id": scope.hero_id} if scope.hero_id is not None else {}
    return "/tags", params


def create_path(collection: Collection, payload: dict[str, Any]) -> str:
    """Route for creating an entity. Movies are created under their hero."""
    if collection == Collection.MOVIES:
        return f"/heroes/{payload['hero_id']}/movies"
    return f"/{collection.value}"


class CatalogApiClient:
    """
    Client for the catalog admin API.

    Args:
        base_url: API root. Defaults to `settings.api_base_url`.
        client: Optional httpx client for connection reuse (or an ASGI
            transport in tests). A client passed in is not closed here.
        catalog: Tag catalog used to resolve name-only tag payloads
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        catalog: TagCatalog | None = None,
        timeout: float | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            headers={"User-Agent": settings.user_agent},
        )
        self.catalog = catalog

    async def __aenter__(self) -> "CatalogApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Issue one request and unwrap the envelope.

        Returns:
            The envelope's `data`

        Raises:
            RemoteError: On any transport or application failure
        """
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            raise RemoteError(
                message or f"{method} {path} failed: HTTP {response.status_code}",
                kind=FailureKind.TRANSPORT_ERROR,
                status_code=response.status_code,
            )

        try:
            envelope = Envelope[Any].model_validate(body)
        except ValidationError as e:
            raise RemoteError(
                f"{method} {path} returned an invalid envelope",
                kind=FailureKind.REMOTE_REJECTED,
                status_code=response.status_code,
            ) from e

        if not envelope.success:
            raise RemoteError(
                envelope.message or f"{method} {path} was rejected",
                kind=FailureKind.REMOTE_REJECTED,
                status_code=response.status_code,
            )
        return envelope.data

    def _parse_one(self, collection: Collection, data: Any) -> Entity:
        try:
            return parse_entity(collection, data, self.catalog)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RemoteError(
                f"Malformed {collection.value} payload: {e}",
                kind=FailureKind.REMOTE_REJECTED,
            ) from e

    async def fetch_collection(self, scope: Scope) -> list[Entity]:
        """Bulk read of every entity in a scope."""
        path, params = collection_path(scope)
        data = await self._request("GET", path, params=params)
        try:
            entities = parse_entities(scope.collection, data or [], self.catalog)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RemoteError(
                f"Malformed {scope.collection.value} payload: {e}",
                kind=FailureKind.REMOTE_REJECTED,
            ) from e
        logger.debug("Fetched %d rows for %s", len(entities), scope.describe())
        return entities

    async def create_entity(self, collection: Collection, payload: dict[str, Any]) -> Entity:
        """Create an entity; the result carries the server-assigned id."""
        data = await self._request("POST", create_path(collection, payload), json=payload)
        return self._parse_one(collection, data)

    async def update_entity(
        self, collection: Collection, entity_id: int, payload: dict[str, Any]
    ) -> Entity:
        """Partial update: fields absent from `payload` are left unchanged."""
        data = await self._request("PATCH", f"/{collection.value}/{entity_id}", json=payload)
        return self._parse_one(collection, data)

    async def delete_entity(self, collection: Collection, entity_id: int) -> None:
        await self._request("DELETE", f"/{collection.value}/{entity_id}")

    async def set_card_tags(self, card_id: int, tag_ids: Sequence[int]) -> None:
        """Replace the card's whole tag set. Not a delta."""
        await self._request("PUT", f"/cards/{card_id}/tags", json={"tag_ids": list(tag_ids)})

