"""
In-memory entity collections for one active screen.

The store is owned by exactly one screen. Every write goes through `load`,
`upsert_one`, `remove_one`, `insert_at` or `restore`; each write replaces
the collection's list (never mutates an entity) so readers can compare by
identity, bumps the collection's revision, then fires change callbacks.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any

from catalogsync.models.catalog import Collection, Entity

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Collection], None]


class EntityStore:
    """Heroes, movies, cards and tags for the active scope."""

    def __init__(self) -> None:
        self._collections: dict[Collection, list[Entity]] = {c: [] for c in Collection}
        self._revisions: dict[Collection, int] = {c: 0 for c in Collection}
        self._callbacks: list[ChangeCallback] = []

    # --- Observers ---

    def subscribe(self, callback: ChangeCallback) -> None:
        """Register a callback fired after every write, with the collection written."""
        self._callbacks.append(callback)

    def _changed(self, collection: Collection) -> None:
        self._revisions[collection] += 1
        for callback in self._callbacks:
            callback(collection)

    # --- Reads ---

    def items(self, collection: Collection) -> tuple[Entity, ...]:
        return tuple(self._collections[collection])

    def get(self, collection: Collection, entity_id: int) -> Any | None:
        for entity in self._collections[collection]:
            if entity.id == entity_id:
                return entity
        return None

    def index_of(self, collection: Collection, entity_id: int) -> int:
        """Position of an entity, or -1 when absent."""
        for index, entity in enumerate(self._collections[collection]):
            if entity.id == entity_id:
                return index
        return -1

    def revision(self, collection: Collection) -> int:
        return self._revisions[collection]

    # --- Writes ---

    def load(self, collection: Collection, entities: Iterable[Entity]) -> None:
        """Replace a collection wholesale. No merge with previous contents."""
        self._collections[collection] = list(entities)
        logger.info("Loaded %d %s", len(self._collections[collection]), collection.value)
        self._changed(collection)

    def upsert_one(self, collection: Collection, entity: Entity) -> None:
        """Replace by id if present, else append."""
        current = self._collections[collection]
        index = self.index_of(collection, entity.id)
        if index >= 0:
            self._collections[collection] = [*current[:index], entity, *current[index + 1 :]]
        else:
            self._collections[collection] = [*current, entity]
        self._changed(collection)

    def remove_one(self, collection: Collection, entity_id: int) -> None:
        self._collections[collection] = [
            e for e in self._collections[collection] if e.id != entity_id
        ]
        self._changed(collection)

    def insert_at(self, collection: Collection, index: int, entity: Entity) -> None:
        """Insert at `index`, clamped to the current length. Replaces a same-id entity."""
        current = [e for e in self._collections[collection] if e.id != entity.id]
        index = max(0, min(index, len(current)))
        self._collections[collection] = [*current[:index], entity, *current[index:]]
        self._changed(collection)

    # --- Rollback support ---

    def snapshot(self, collection: Collection) -> tuple[Entity, ...]:
        """Shallow copy for a later `restore`."""
        return tuple(self._collections[collection])

    def restore(self, collection: Collection, snapshot: tuple[Entity, ...]) -> None:
        self._collections[collection] = list(snapshot)
        self._changed(collection)

    def clear(self) -> None:
        for collection in Collection:
            self._collections[collection] = []
            self._changed(collection)
