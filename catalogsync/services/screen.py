"""
Screen controller: one active admin screen.

Owns the screen's context, entity store, render trigger, mutation controller
and tag reconciler, and routes every user action through `dispatch`. Each
dispatch returns the render decision it produced so callers (and tests) can
see exactly what was repainted.

Render decisions by action:

    LoadScope, SwitchViewMode, ClearFilters    -> FULL
    SetFilter, SortBy                          -> BODY_ONLY
    mutations that changed local state         -> BODY_ONLY
    refused, skipped or cancelled mutations    -> NONE
    Deactivate                                 -> NONE
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from catalogsync.models.catalog import Card, Collection, Hero, Movie, Tag
from catalogsync.models.failure import FailureKind, KnownError, PreconditionError, RemoteError
from catalogsync.models.scope import Scope, ScopeKind, ScreenContext, ViewMode, with_filter
from catalogsync.parsers.payload import TagCatalog
from catalogsync.services.entity_store import EntityStore
from catalogsync.services.mutation_controller import (
    MutationController,
    MutationOutcome,
    Notifier,
    noun,
)
from catalogsync.services.remote_api import RemoteApi
from catalogsync.services.render_trigger import (
    NullRenderer,
    RenderDecision,
    Renderer,
    RenderTrigger,
)
from catalogsync.services.tag_reconciler import TagReconciler

logger = logging.getLogger(__name__)


# =============================================================================
# ACTIONS
# =============================================================================


@dataclass(frozen=True, slots=True)
class LoadScope:
    scope: Scope


@dataclass(frozen=True, slots=True)
class SwitchViewMode:
    """Flip the hero screen between movies and cards. `None` toggles."""

    view_mode: ViewMode | None = None


@dataclass(frozen=True, slots=True)
class SetFilter:
    name: str
    value: str


@dataclass(frozen=True, slots=True)
class ClearFilters:
    pass


@dataclass(frozen=True, slots=True)
class SortBy:
    key: str


@dataclass(frozen=True, slots=True)
class ToggleReview:
    collection: Collection
    entity_id: int


@dataclass(frozen=True, slots=True)
class ToggleLock:
    movie_id: int


@dataclass(frozen=True, slots=True)
class DeleteEntity:
    collection: Collection
    entity_id: int


@dataclass(frozen=True, slots=True)
class CreateEntity:
    collection: Collection
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UpdateEntity:
    collection: Collection
    entity_id: int
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AddTag:
    card_id: int
    tag_id: int


@dataclass(frozen=True, slots=True)
class RemoveTag:
    card_id: int
    tag_id: int


@dataclass(frozen=True, slots=True)
class SetTags:
    card_id: int
    tag_ids: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class Deactivate:
    pass


Action = (
    LoadScope
    | SwitchViewMode
    | SetFilter
    | ClearFilters
    | SortBy
    | ToggleReview
    | ToggleLock
    | DeleteEntity
    | CreateEntity
    | UpdateEntity
    | AddTag
    | RemoveTag
    | SetTags
    | Deactivate
)

_MUTATIONS = (
    ToggleReview,
    ToggleLock,
    DeleteEntity,
    CreateEntity,
    UpdateEntity,
    AddTag,
    RemoveTag,
    SetTags,
)

_QUIET_OUTCOMES = frozenset(
    {MutationOutcome.REFUSED, MutationOutcome.SKIPPED, MutationOutcome.CANCELLED}
)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What a dispatched action did."""

    render: RenderDecision
    outcome: MutationOutcome | None = None
    error: str | None = None


def decide_render(action: Action, outcome: MutationOutcome | None = None) -> RenderDecision:
    """Render decision for an action that ran to completion."""
    if isinstance(action, LoadScope | SwitchViewMode | ClearFilters):
        return RenderDecision.FULL
    if isinstance(action, SetFilter | SortBy):
        return RenderDecision.BODY_ONLY
    if isinstance(action, _MUTATIONS):
        if outcome is None or outcome in _QUIET_OUTCOMES:
            return RenderDecision.NONE
        if isinstance(action, CreateEntity | UpdateEntity) and outcome != MutationOutcome.CONFIRMED:
            # Not optimistic: nothing was applied locally
            return RenderDecision.NONE
        return RenderDecision.BODY_ONLY
    return RenderDecision.NONE


_ENTITY_TYPES: dict[Collection, type] = {
    Collection.HEROES: Hero,
    Collection.MOVIES: Movie,
    Collection.CARDS: Card,
    Collection.TAGS: Tag,
}


def sortable_keys(collection: Collection) -> frozenset[str]:
    return frozenset(f.name for f in fields(_ENTITY_TYPES[collection]))


# =============================================================================
# CONTROLLER
# =============================================================================


class ScreenController:
    """
    One active screen.

    Args:
        scope: Initial scope (not loaded until a LoadScope is dispatched)
        remote: Admin API client
        catalog: Shared tag catalog; pass the same instance the API client
            uses so name-only tag payloads resolve against fresh data
        renderer: Presentation layer. Defaults to a no-op renderer.
        notifier: Prompt/alert surface. Defaults to logging.
    """

    def __init__(
        self,
        scope: Scope,
        remote: RemoteApi,
        catalog: TagCatalog | None = None,
        renderer: Renderer | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.context = ScreenContext(scope=scope)
        self.store = EntityStore()
        self.catalog = catalog if catalog is not None else TagCatalog()
        self.trigger = RenderTrigger(self.context, self.store, renderer or NullRenderer())
        self.mutations = MutationController(
            self.context, self.store, remote, self.trigger, notifier
        )
        self.tags = TagReconciler(self.mutations, self.catalog)
        self.remote = remote
        self.store.subscribe(self._on_store_change)

    @property
    def notifier(self) -> Notifier:
        return self.mutations.notifier

    def view(self) -> list[Any]:
        """Rows currently on screen."""
        return self.trigger.view()

    def _on_store_change(self, collection: Collection) -> None:
        # The tag screen's store is the catalog's source of truth
        if collection == Collection.TAGS and self.context.scope.kind == ScopeKind.TAGS:
            self.catalog.replace(self.store.items(Collection.TAGS))

    # --- Dispatch ---

    async def dispatch(self, action: Action) -> DispatchResult:
        """
        Run one user action.

        Caller-side failures (bad input, locked movie) are surfaced as a
        notice and reported as REFUSED with no render. Remote failures are
        handled inside the mutation controller and never escape.
        """
        try:
            return await self._dispatch(action)
        except KnownError as e:
            logger.warning("Refused %s: %s", type(action).__name__, e.message)
            self.notifier.notice(e.message)
            return DispatchResult(RenderDecision.NONE, MutationOutcome.REFUSED, e.message)

    async def _dispatch(self, action: Action) -> DispatchResult:
        if isinstance(action, LoadScope):
            return await self.load(action.scope)
        if isinstance(action, SwitchViewMode):
            return await self.switch_view_mode(action.view_mode)
        if isinstance(action, Deactivate):
            self.context.deactivate()
            logger.info("Screen for %s deactivated", self.context.scope.describe())
            return DispatchResult(RenderDecision.NONE)
        if isinstance(action, SetFilter | ClearFilters | SortBy):
            self._apply_view_change(action)
            decision = decide_render(action)
            self.trigger.apply(decision)
            return DispatchResult(decision)

        outcome = await self._mutate(action)
        return DispatchResult(decide_render(action, outcome), outcome)

    def _apply_view_change(self, action: SetFilter | ClearFilters | SortBy) -> None:
        context = self.context
        if isinstance(action, SetFilter):
            context.filters = {
                **context.filters,
                context.collection: with_filter(context.active_filters, action.name, action.value),
            }
        elif isinstance(action, SortBy):
            if action.key not in sortable_keys(context.collection):
                raise PreconditionError(
                    f"Cannot sort {context.collection.value} by {action.key}"
                )
            context.sort = context.sort.toggled(action.key)
        else:
            context.clear_filters()

    async def _mutate(self, action: Action) -> MutationOutcome:
        mutations = self.mutations
        if isinstance(action, ToggleReview):
            return await mutations.toggle_review(action.collection, action.entity_id)
        if isinstance(action, ToggleLock):
            return await mutations.toggle_lock(action.movie_id)
        if isinstance(action, DeleteEntity):
            # Guards run before the prompt so a refused delete never asks
            entity = mutations.require(action.collection, action.entity_id)
            mutations.ensure_unlocked(action.collection, entity)
            if mutations.delete_blocked(action.collection, action.entity_id):
                return MutationOutcome.REFUSED
            if not self.notifier.confirm(f"Delete this {noun(action.collection)}?"):
                logger.info("Delete of %s %s cancelled", noun(action.collection), action.entity_id)
                return MutationOutcome.CANCELLED
            return await mutations.delete(action.collection, action.entity_id)
        if isinstance(action, CreateEntity):
            return await mutations.create(action.collection, action.payload)
        if isinstance(action, UpdateEntity):
            return await mutations.update(action.collection, action.entity_id, action.payload)
        if isinstance(action, AddTag):
            return await self.tags.add_tag(action.card_id, action.tag_id)
        if isinstance(action, RemoveTag):
            return await self.tags.remove_tag(action.card_id, action.tag_id)
        if isinstance(action, SetTags):
            return await self.tags.set_tags(action.card_id, action.tag_ids)
        raise PreconditionError(f"Unsupported action: {type(action).__name__}")

    # --- Loading ---

    async def switch_view_mode(self, view_mode: ViewMode | None) -> DispatchResult:
        scope = self.context.scope
        if scope.kind not in (ScopeKind.HERO_MOVIES, ScopeKind.HERO_CARDS):
            raise PreconditionError(
                f"View mode only applies to a hero screen, not {scope.kind.value}",
                kind=FailureKind.INVALID_INPUT,
            )
        if view_mode is None:
            view_mode = (
                ViewMode.CARDS if self.context.view_mode == ViewMode.MOVIES else ViewMode.MOVIES
            )
        kind = ScopeKind.HERO_CARDS if view_mode == ViewMode.CARDS else ScopeKind.HERO_MOVIES
        return await self.load(Scope(kind, hero_id=scope.hero_id))

    async def _refresh_tags(self, scope: Scope) -> list[Any] | None:
        """Re-fetch the tag catalog. A failure keeps the previous catalog."""
        tag_scope = Scope(ScopeKind.TAGS, hero_id=scope.hero_id)
        try:
            tags = await self.remote.fetch_collection(tag_scope)
        except RemoteError as e:
            logger.warning("Could not refresh tag catalog: %s", e.message)
            return None
        self.catalog.replace(tags)
        return tags

    async def load(self, scope: Scope) -> DispatchResult:
        """
        Switch to `scope` and bulk-load its collection.

        Card scopes also load all of the hero's movies so lock state is known
        and card moves can be checked. The tag catalog is refreshed first so
        name-only tag payloads resolve. A response that arrives after another
        scope change is dropped.
        """
        self.context.change_scope(scope)
        token = self.context.token()
        logger.info("Loading %s", scope.describe())

        try:
            if scope.kind == ScopeKind.TAGS:
                rows = await self.remote.fetch_collection(scope)
                movies = tags = None
            else:
                tags = None
                if scope.kind != ScopeKind.HEROES:
                    tags = await self._refresh_tags(scope)
                rows, movies = await self._fetch_rows(scope)
        except RemoteError as e:
            if not self.context.is_current(token):
                return DispatchResult(RenderDecision.NONE)
            logger.error("Loading %s failed: %s", scope.describe(), e.message)
            self.store.load(scope.collection, [])
            self.trigger.apply(RenderDecision.FULL)
            self.notifier.alert(f"Error loading data: {e.message}")
            return DispatchResult(RenderDecision.FULL, error=e.message)

        if not self.context.is_current(token):
            logger.info("Dropping stale load of %s", scope.describe())
            return DispatchResult(RenderDecision.NONE)

        if tags is not None:
            self.store.load(Collection.TAGS, tags)
        if movies is not None:
            self.store.load(Collection.MOVIES, movies)
        self.store.load(scope.collection, rows)
        decision = RenderDecision.FULL
        self.trigger.apply(decision)
        return DispatchResult(decision)

    async def _fetch_rows(self, scope: Scope) -> tuple[list[Any], list[Any] | None]:
        if scope.kind in (ScopeKind.MOVIE_CARDS, ScopeKind.HERO_CARDS):
            rows, movies = await asyncio.gather(
                self.remote.fetch_collection(scope),
                self.remote.fetch_collection(Scope(ScopeKind.HERO_MOVIES, hero_id=scope.hero_id)),
            )
            return rows, movies
        return await self.remote.fetch_collection(scope), None
