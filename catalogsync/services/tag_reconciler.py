"""
Card tag reconciliation.

The admin API only accepts a full replacement of a card's tag set, so every
add or remove is turned into "the complete set after this edit", computed
from the cached card at the moment of the call. Two quick edits on the same
card therefore compose: the second one builds on the first one's optimistic
result rather than on a stale read.

Edits are optimistic and sequenced per card through the controller's
in-flight tracker. A failure of the latest edit restores the last set the
server confirmed; a failure of an older edit is reported but leaves the
newer optimistic set alone.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace

from catalogsync.models.catalog import Card, Collection, Tag
from catalogsync.models.failure import FailureKind, PreconditionError, RemoteError
from catalogsync.parsers.payload import TagCatalog
from catalogsync.services.mutation_controller import (
    MutationController,
    MutationKey,
    MutationOutcome,
)
from catalogsync.services.render_trigger import RenderDecision

logger = logging.getLogger(__name__)


class TagReconciler:
    """Add, remove and replace tags on cached cards."""

    def __init__(self, controller: MutationController, catalog: TagCatalog) -> None:
        self.controller = controller
        self.catalog = catalog

    def _card(self, card_id: int) -> Card:
        card: Card = self.controller.require(Collection.CARDS, card_id)
        self.controller.ensure_unlocked(Collection.CARDS, card)
        return card

    def _resolve(self, tag_id: int) -> Tag:
        tag = self.catalog.get(tag_id)
        if tag is None:
            raise PreconditionError(f"Tag {tag_id} does not exist", kind=FailureKind.NOT_FOUND)
        return Tag(id=tag.id, name=tag.name)

    async def add_tag(self, card_id: int, tag_id: int) -> MutationOutcome:
        """Add one tag. Adding a tag the card already has is a no-op."""
        card = self._card(card_id)
        if tag_id in card.tag_ids:
            logger.debug("Card %s already has tag %s", card_id, tag_id)
            return MutationOutcome.SKIPPED
        tag = self._resolve(tag_id)
        return await self._replace(card, (*card.tags, tag))

    async def remove_tag(self, card_id: int, tag_id: int) -> MutationOutcome:
        """Remove one tag. Removing a tag the card does not have is a no-op."""
        card = self._card(card_id)
        if tag_id not in card.tag_ids:
            return MutationOutcome.SKIPPED
        return await self._replace(card, tuple(t for t in card.tags if t.id != tag_id))

    async def set_tags(self, card_id: int, tag_ids: Iterable[int]) -> MutationOutcome:
        """Replace the card's whole tag set with `tag_ids` (order kept, duplicates dropped)."""
        card = self._card(card_id)
        wanted: list[Tag] = []
        for tag_id in dict.fromkeys(tag_ids):
            wanted.append(self._resolve(tag_id))
        if [t.id for t in wanted] == list(card.tag_ids):
            return MutationOutcome.SKIPPED
        return await self._replace(card, tuple(wanted))

    async def _replace(self, card: Card, tags: tuple[Tag, ...]) -> MutationOutcome:
        controller = self.controller
        key: MutationKey = (Collection.CARDS, card.id, "tags")
        token = controller.context.token()
        seq = controller.tracker.begin(key, card.tags)

        controller.store.upsert_one(Collection.CARDS, replace(card, tags=tags))
        controller.trigger.apply(RenderDecision.BODY_ONLY)

        try:
            await controller.remote.set_card_tags(card.id, [t.id for t in tags])
        except RemoteError as e:
            latest, confirmed = controller.tracker.fail(key, seq)
            if not controller.context.is_current(token):
                return MutationOutcome.DISCARDED
            logger.error(
                "Setting tags on card %s failed (%s): %s", card.id, e.kind.value, e.message
            )
            controller.notifier.notice(f"Failed to update tags: {e.message}")
            if not latest:
                # A newer edit owns the visible state now
                return MutationOutcome.DISCARDED
            current = controller.store.get(Collection.CARDS, card.id)
            if current is not None:
                controller.store.upsert_one(Collection.CARDS, replace(current, tags=confirmed))
                controller.trigger.apply(RenderDecision.BODY_ONLY)
            return MutationOutcome.ROLLED_BACK

        controller.tracker.confirm(key, seq, tags)
        if not controller.context.is_current(token):
            return MutationOutcome.DISCARDED
        logger.info("Card %s tags set to %s", card.id, [t.id for t in tags])
        return MutationOutcome.CONFIRMED
