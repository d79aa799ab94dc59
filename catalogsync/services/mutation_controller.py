"""
Optimistic mutation controller.

Each mutation runs its own small state machine:

    IDLE -> APPLIED (local store updated, repainted, remote call in flight)
         -> CONFIRMED (remote succeeded, local state kept as-is) -> IDLE
         -> ROLLED_BACK (remote failed, previous value restored, repainted,
                         error surfaced) -> IDLE

INVARIANTS:
- A failed toggle leaves the field equal to its value before the edit.
- At most one optimistic toggle per (collection, entity, field) is in
  flight; a second one is refused without a remote call.
- A locked movie, and every card of a locked movie, never receives a
  mutating request. Only the movie's lock flag itself may change.
- A failed delete puts the entity back at its original position.
- A delete is refused while any other mutation of the same entity is in
  flight, so its rollback never undoes another edit's rollback.
- Responses are sequenced per (collection, entity, field). Only the latest
  issued request may roll state back (last-issued-wins); a rollback
  restores the last server-confirmed value, never an optimistic one.
- Nothing is applied after an await unless the screen's scope is still
  the one that issued the request.

Remote failures stop here: they are logged, rolled back and surfaced
through the notifier, and never propagate to the caller.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from catalogsync.config import LOCKED_MOVIE_MUTATION_MESSAGE
from catalogsync.models.catalog import Card, CardType, Collection, Entity, Hero, Movie, Tag
from catalogsync.models.failure import (
    FailureKind,
    MovieLockedError,
    PreconditionError,
    RemoteError,
)
from catalogsync.models.scope import ScopeKind, ScreenContext
from catalogsync.services.entity_store import EntityStore
from catalogsync.services.remote_api import RemoteApi
from catalogsync.services.render_trigger import RenderDecision, RenderTrigger

logger = logging.getLogger(__name__)


class MutationState(str, Enum):
    IDLE = "idle"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class MutationOutcome(str, Enum):
    """How a single mutation request settled."""

    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    # Refused before any state change (in-flight guard, locked movie, bad input)
    REFUSED = "refused"
    # Settled, but a newer request or a scope change made the result irrelevant
    DISCARDED = "discarded"
    # Nothing to do (e.g. adding a tag the card already has)
    SKIPPED = "skipped"
    # The user declined the confirmation prompt
    CANCELLED = "cancelled"


class Notifier(Protocol):
    """User-facing surfacing of prompts and failures."""

    def confirm(self, prompt: str) -> bool: ...

    def alert(self, message: str) -> None: ...

    def notice(self, message: str) -> None: ...


class LoggingNotifier:
    """Headless notifier: confirms every prompt and logs every message."""

    def confirm(self, prompt: str) -> bool:
        logger.info("Auto-confirming: %s", prompt)
        return True

    def alert(self, message: str) -> None:
        logger.error("Alert: %s", message)

    def notice(self, message: str) -> None:
        logger.warning("Notice: %s", message)


# =============================================================================
# IN-FLIGHT TRACKING
# =============================================================================

MutationKey = tuple[Collection, int, str]


@dataclass
class _KeyState:
    issued: int = 0
    pending: int = 0
    confirmed: Any = None
    confirmed_seq: int = 0


class InFlightTracker:
    """
    Sequence numbers and confirmed values per (collection, entity, field).

    `begin` records the value before the first pending edit as the
    confirmed baseline. Each success advances the confirmed value; a
    failure of the latest request hands back the confirmed value to
    restore. Keys are dropped once nothing is pending.
    """

    def __init__(self) -> None:
        self._keys: dict[MutationKey, _KeyState] = {}

    def is_pending(self, key: MutationKey) -> bool:
        return key in self._keys

    def state(self, key: MutationKey) -> MutationState:
        return MutationState.APPLIED if key in self._keys else MutationState.IDLE

    def pending_fields(self, collection: Collection, entity_id: int) -> list[str]:
        return [f for (c, i, f) in self._keys if c == collection and i == entity_id]

    def begin(self, key: MutationKey, current_value: Any) -> int:
        state = self._keys.get(key)
        if state is None:
            state = _KeyState(confirmed=current_value)
            self._keys[key] = state
        state.issued += 1
        state.pending += 1
        return state.issued

    def confirm(self, key: MutationKey, seq: int, value: Any) -> bool:
        """Record a success. Returns True if `seq` is the latest issued."""
        state = self._keys[key]
        if seq > state.confirmed_seq:
            state.confirmed = value
            state.confirmed_seq = seq
        latest = seq == state.issued
        self._settle(key, state)
        return latest

    def fail(self, key: MutationKey, seq: int) -> tuple[bool, Any]:
        """Record a failure. Returns (is_latest, last confirmed value)."""
        state = self._keys[key]
        latest = seq == state.issued
        confirmed = state.confirmed
        self._settle(key, state)
        return latest, confirmed

    def _settle(self, key: MutationKey, state: _KeyState) -> None:
        state.pending -= 1
        if state.pending == 0:
            del self._keys[key]


# =============================================================================
# CONTROLLER
# =============================================================================

_ENTITY_NOUNS: dict[Collection, str] = {
    Collection.HEROES: "hero",
    Collection.MOVIES: "movie",
    Collection.CARDS: "card",
    Collection.TAGS: "tag",
}

_TOGGLE_FIELDS: dict[Collection, frozenset[str]] = {
    Collection.MOVIES: frozenset({"need_review", "locked"}),
    Collection.CARDS: frozenset({"need_review"}),
}

_REQUIRED_TEXT: dict[Collection, tuple[str, ...]] = {
    Collection.HEROES: ("name", "industry"),
    Collection.MOVIES: ("title",),
    Collection.CARDS: ("name", "type"),
    Collection.TAGS: ("name",),
}

_EDITABLE_FIELDS: dict[Collection, frozenset[str]] = {
    Collection.HEROES: frozenset({"name", "industry"}),
    Collection.MOVIES: frozenset({"title", "need_review", "locked"}),
    Collection.CARDS: frozenset(
        {
            "movie_id",
            "name",
            "type",
            "call_sign",
            "ability_text",
            "ability_text2",
            "need_review",
        }
    ),
    Collection.TAGS: frozenset({"name"}),
}


def noun(collection: Collection) -> str:
    return _ENTITY_NOUNS[collection]


class MutationController:
    """
    Applies mutations for one screen.

    Args:
        context: The owning screen's context (scope token checks)
        store: The owning screen's entity store
        remote: Admin API client
        trigger: Render trigger for the same screen
        notifier: User-facing error/confirm surface
    """

    def __init__(
        self,
        context: ScreenContext,
        store: EntityStore,
        remote: RemoteApi,
        trigger: RenderTrigger,
        notifier: Notifier | None = None,
        tracker: InFlightTracker | None = None,
    ) -> None:
        self.context = context
        self.store = store
        self.remote = remote
        self.trigger = trigger
        self.notifier = notifier or LoggingNotifier()
        self.tracker = tracker or InFlightTracker()

    # --- Guards ---

    def require(self, collection: Collection, entity_id: int) -> Any:
        entity = self.store.get(collection, entity_id)
        if entity is None:
            raise PreconditionError(
                f"{noun(collection).capitalize()} {entity_id} is not loaded",
                kind=FailureKind.NOT_FOUND,
            )
        return entity

    def owning_movie(self, collection: Collection, entity: Entity) -> Movie | None:
        if isinstance(entity, Movie):
            return entity
        if isinstance(entity, Card):
            movie: Movie | None = self.store.get(Collection.MOVIES, entity.movie_id)
            return movie
        return None

    def ensure_unlocked(self, collection: Collection, entity: Entity) -> None:
        """
        Raise MovieLockedError if `entity` is, or belongs to, a locked movie.

        Raises:
            MovieLockedError: Before any state change or remote call
        """
        movie = self.owning_movie(collection, entity)
        if movie is not None and movie.locked:
            logger.warning(
                "Refusing mutation of %s %s: movie %s is locked",
                noun(collection),
                entity.id,
                movie.id,
            )
            raise MovieLockedError(movie.id, LOCKED_MOVIE_MUTATION_MESSAGE)

    def _render(self) -> None:
        self.trigger.apply(RenderDecision.BODY_ONLY)

    def _with_pending_fields(self, collection: Collection, fresh: Entity) -> Entity:
        """Carry optimistic values of in-flight fields over a server copy."""
        current = self.store.get(collection, fresh.id)
        if current is None:
            return fresh
        overrides = {
            name: getattr(current, name) for name in self.tracker.pending_fields(collection, fresh.id)
        }
        overrides.pop("deleted", None)
        return replace(fresh, **overrides) if overrides else fresh

    # --- Toggles ---

    async def toggle_review(self, collection: Collection, entity_id: int) -> MutationOutcome:
        """Flip `need_review` on a movie or card."""
        return await self.toggle(collection, entity_id, "need_review")

    async def toggle_lock(self, movie_id: int) -> MutationOutcome:
        """Flip a movie's `locked` flag. Allowed on a locked movie."""
        return await self.toggle(Collection.MOVIES, movie_id, "locked")

    async def toggle(self, collection: Collection, entity_id: int, field: str) -> MutationOutcome:
        if field not in _TOGGLE_FIELDS.get(collection, frozenset()):
            raise PreconditionError(f"{noun(collection)}.{field} is not a toggle")

        entity = self.require(collection, entity_id)
        key: MutationKey = (collection, entity_id, field)
        if self.tracker.is_pending(key):
            logger.warning(
                "Ignoring %s toggle on %s %s: previous toggle still in flight",
                field,
                noun(collection),
                entity_id,
            )
            return MutationOutcome.REFUSED
        if field != "locked":
            self.ensure_unlocked(collection, entity)

        previous = bool(getattr(entity, field))
        desired = not previous
        token = self.context.token()
        seq = self.tracker.begin(key, previous)

        self.store.upsert_one(collection, replace(entity, **{field: desired}))
        self._render()

        try:
            await self.remote.update_entity(collection, entity_id, {field: desired})
        except RemoteError as e:
            latest, confirmed = self.tracker.fail(key, seq)
            if not self.context.is_current(token):
                logger.warning("Dropping %s rollback: scope changed during request", field)
                return MutationOutcome.DISCARDED
            logger.error(
                "Toggling %s on %s %s failed (%s): %s",
                field,
                noun(collection),
                entity_id,
                e.kind.value,
                e.message,
            )
            if latest:
                self._restore_field(collection, entity_id, field, confirmed)
            self.notifier.notice(f"Failed to update {noun(collection)}: {e.message}")
            return MutationOutcome.ROLLED_BACK if latest else MutationOutcome.DISCARDED

        self.tracker.confirm(key, seq, desired)
        if not self.context.is_current(token):
            return MutationOutcome.DISCARDED
        logger.info("Set %s=%s on %s %s", field, desired, noun(collection), entity_id)
        return MutationOutcome.CONFIRMED

    def _restore_field(self, collection: Collection, entity_id: int, field: str, value: Any) -> None:
        current = self.store.get(collection, entity_id)
        if current is None:
            return
        self.store.upsert_one(collection, replace(current, **{field: value}))
        self._render()

    # --- Delete ---

    def delete_blocked(self, collection: Collection, entity_id: int) -> bool:
        """
        True while any mutation of the entity is in flight.

        A failed delete re-inserts the entity as it was when the delete
        started, so it must not overlap a toggle or tag edit whose own
        rollback would then be undone.
        """
        busy = self.tracker.pending_fields(collection, entity_id)
        if busy:
            logger.warning(
                "Refusing delete of %s %s: %s in flight",
                noun(collection),
                entity_id,
                ", ".join(sorted(busy)),
            )
        return bool(busy)

    async def delete(self, collection: Collection, entity_id: int) -> MutationOutcome:
        """Remove optimistically; on failure put the entity back where it was."""
        entity = self.require(collection, entity_id)
        self.ensure_unlocked(collection, entity)
        if self.delete_blocked(collection, entity_id):
            return MutationOutcome.REFUSED
        key: MutationKey = (collection, entity_id, "deleted")

        index = self.store.index_of(collection, entity_id)
        snapshot = self.store.snapshot(collection)
        token = self.context.token()
        seq = self.tracker.begin(key, entity)

        self.store.remove_one(collection, entity_id)
        revision = self.store.revision(collection)
        self._render()

        try:
            await self.remote.delete_entity(collection, entity_id)
        except RemoteError as e:
            self.tracker.fail(key, seq)
            if not self.context.is_current(token):
                return MutationOutcome.DISCARDED
            logger.error(
                "Deleting %s %s failed (%s): %s",
                noun(collection),
                entity_id,
                e.kind.value,
                e.message,
            )
            if self.store.revision(collection) == revision:
                self.store.restore(collection, snapshot)
            else:
                self.store.insert_at(collection, index, entity)
            self._render()
            self.notifier.alert(f"Failed to delete {noun(collection)}: {e.message}")
            return MutationOutcome.ROLLED_BACK

        self.tracker.confirm(key, seq, None)
        logger.info("Deleted %s %s", noun(collection), entity_id)
        return MutationOutcome.CONFIRMED

    # --- Create / update ---

    def _clean_payload(self, collection: Collection, payload: Mapping[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for name, value in payload.items():
            cleaned[name] = value.strip() if isinstance(value, str) else value
        if "type" in cleaned:
            try:
                cleaned["type"] = CardType(str(cleaned["type"]).upper()).value
            except ValueError as e:
                raise PreconditionError(f"Unknown card type: {cleaned['type']}") from e
        return cleaned

    def _check_required(self, collection: Collection, payload: Mapping[str, Any], partial: bool) -> None:
        for name in _REQUIRED_TEXT[collection]:
            if partial and name not in payload:
                continue
            if not payload.get(name):
                raise PreconditionError(
                    f"Missing required field: {name}", kind=FailureKind.MISSING_REQUIRED
                )

    def _check_unique(self, collection: Collection, payload: Mapping[str, Any], entity_id: int | None) -> None:
        """Reject duplicates already visible in the loaded collection."""
        for existing in self.store.items(collection):
            if existing.id == entity_id:
                continue
            if isinstance(existing, Hero) and collection == Collection.HEROES:
                name = payload.get("name", existing.name if entity_id else None)
                industry = payload.get("industry")
                if (
                    name
                    and industry
                    and existing.name.lower() == str(name).lower()
                    and existing.industry.lower() == str(industry).lower()
                ):
                    raise PreconditionError(
                        f"Hero {name} already exists in {industry}", kind=FailureKind.CONFLICT
                    )
            if isinstance(existing, Tag) and "name" in payload:
                if existing.name.lower() == str(payload["name"]).lower():
                    raise PreconditionError(
                        f"Tag {payload['name']} already exists", kind=FailureKind.CONFLICT
                    )

    def _check_card_movie(self, payload: Mapping[str, Any]) -> None:
        """A card's movie must exist under the same hero and be unlocked."""
        movie: Movie | None = self.store.get(Collection.MOVIES, payload["movie_id"])
        if movie is None:
            # Lock state of an unloaded movie is unknown
            raise PreconditionError(
                f"Movie {payload['movie_id']} is not loaded", kind=FailureKind.NOT_FOUND
            )
        if movie.hero_id != payload["hero_id"]:
            raise PreconditionError(
                f"Movie {movie.id} does not belong to hero {payload['hero_id']}",
                kind=FailureKind.INVARIANT_VIOLATION,
            )
        if movie.locked:
            raise MovieLockedError(movie.id, LOCKED_MOVIE_MUTATION_MESSAGE)

    def prepare_create(self, collection: Collection, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate and complete a create payload from the active scope.

        Raises:
            PreconditionError: Missing fields, bad card type, duplicates or
                a movie/hero mismatch
            MovieLockedError: Creating a card in a locked movie
        """
        data = self._clean_payload(collection, payload)
        scope = self.context.scope
        if collection in (Collection.MOVIES, Collection.CARDS):
            data.setdefault("hero_id", scope.hero_id)
            if data["hero_id"] is None:
                raise PreconditionError("Missing required field: hero_id", kind=FailureKind.MISSING_REQUIRED)
        if collection == Collection.CARDS:
            data.setdefault("movie_id", scope.movie_id)
            if data["movie_id"] is None:
                raise PreconditionError("Missing required field: movie_id", kind=FailureKind.MISSING_REQUIRED)
            data.setdefault("need_review", False)
            self._check_card_movie(data)
        self._check_required(collection, data, partial=False)
        self._check_unique(collection, data, None)
        return data

    async def create(self, collection: Collection, payload: Mapping[str, Any]) -> MutationOutcome:
        """
        Create an entity. Not optimistic: the row appears once the server
        has assigned its id.
        """
        data = self.prepare_create(collection, payload)
        token = self.context.token()
        try:
            created = await self.remote.create_entity(collection, data)
        except RemoteError as e:
            logger.error("Creating %s failed (%s): %s", noun(collection), e.kind.value, e.message)
            if self.context.is_current(token):
                self.notifier.alert(f"Failed to create {noun(collection)}: {e.message}")
            return MutationOutcome.ROLLED_BACK

        if not self.context.is_current(token):
            logger.warning("Dropping created %s %s: scope changed", noun(collection), created.id)
            return MutationOutcome.DISCARDED
        self.store.upsert_one(collection, created)
        self._render()
        logger.info("Created %s %s", noun(collection), created.id)
        return MutationOutcome.CONFIRMED

    def prepare_update(
        self, collection: Collection, entity: Entity, payload: Mapping[str, Any]
    ) -> dict[str, Any]:
        """
        Validate a partial update.

        Raises:
            PreconditionError: Unknown fields, empty required fields,
                duplicates or a movie/hero mismatch
            MovieLockedError: The entity is or belongs to a locked movie
        """
        data = self._clean_payload(collection, payload)
        unknown = set(data) - _EDITABLE_FIELDS[collection]
        if unknown:
            raise PreconditionError(f"Cannot update {noun(collection)} fields: {sorted(unknown)}")
        if not data:
            raise PreconditionError("Nothing to update", kind=FailureKind.MISSING_REQUIRED)
        if set(data) != {"locked"}:
            self.ensure_unlocked(collection, entity)
        self._check_required(collection, data, partial=True)
        if isinstance(entity, Hero):
            data_for_unique = {"name": entity.name, "industry": entity.industry, **data}
            self._check_unique(collection, data_for_unique, entity.id)
        elif isinstance(entity, Tag):
            self._check_unique(collection, data, entity.id)
        if isinstance(entity, Card) and "movie_id" in data:
            self._check_card_movie({"hero_id": entity.hero_id, "movie_id": data["movie_id"]})
        return data

    def _left_scope(self, entity: Entity) -> bool:
        """A card moved to another movie drops off that movie's screen."""
        scope = self.context.scope
        return (
            isinstance(entity, Card)
            and scope.kind == ScopeKind.MOVIE_CARDS
            and entity.movie_id != scope.movie_id
        )

    async def update(
        self, collection: Collection, entity_id: int, payload: Mapping[str, Any]
    ) -> MutationOutcome:
        """Partial update through the edit form. Not optimistic."""
        entity = self.require(collection, entity_id)
        data = self.prepare_update(collection, entity, payload)
        token = self.context.token()
        try:
            updated = await self.remote.update_entity(collection, entity_id, data)
        except RemoteError as e:
            logger.error(
                "Updating %s %s failed (%s): %s", noun(collection), entity_id, e.kind.value, e.message
            )
            if self.context.is_current(token):
                self.notifier.alert(f"Failed to update {noun(collection)}: {e.message}")
            return MutationOutcome.ROLLED_BACK

        if not self.context.is_current(token):
            return MutationOutcome.DISCARDED
        if self.store.get(collection, entity_id) is None:
            # Deleted locally while the update was in flight
            return MutationOutcome.DISCARDED
        if self._left_scope(updated):
            self.store.remove_one(collection, entity_id)
            self._render()
            logger.info("Moved %s %s off this screen", noun(collection), entity_id)
            return MutationOutcome.CONFIRMED
        self.store.upsert_one(collection, self._with_pending_fields(collection, updated))
        self._render()
        logger.info("Updated %s %s", noun(collection), entity_id)
        return MutationOutcome.CONFIRMED
