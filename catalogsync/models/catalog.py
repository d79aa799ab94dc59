"""
Catalog entities held by the client-side entity store.

All entities are immutable. A changed entity is a new instance built with
`dataclasses.replace`, so every write to the store swaps a reference and
re-render diffing can rely on identity.
"""

from dataclasses import dataclass, field
from enum import Enum


class Collection(str, Enum):
    """Named collections in the entity store (and routes on the remote API)."""

    HEROES = "heroes"
    MOVIES = "movies"
    CARDS = "cards"
    TAGS = "tags"


class CardType(str, Enum):
    """Card types supported by the game."""

    HERO = "HERO"
    VILLAIN = "VILLAIN"
    SR1 = "SR1"
    SR2 = "SR2"
    WC = "WC"


@dataclass(frozen=True, slots=True)
class Tag:
    """
    A global tag.

    Attributes:
        id: Server-assigned tag id
        name: Display name, unique across the catalog
        card_count: Number of cards carrying the tag. This is a view-level
            aggregate (often hero-scoped), not an entity invariant.
    """

    id: int
    name: str
    card_count: int = 0


@dataclass(frozen=True, slots=True)
class Hero:
    """A hero and its aggregate counters."""

    id: int
    name: str
    industry: str
    total_movies: int = 0
    pending_movies: int = 0
    total_cards: int = 0


@dataclass(frozen=True, slots=True)
class Movie:
    """
    A movie belonging to exactly one hero.

    Attributes:
        locked: Freezes the movie and all its cards against further edits
            from the UI layer. Only the lock flag itself may change.
        need_review: Flag raised by editors for follow-up
        total_cards: Number of cards in the movie
        review_cards: Number of those cards flagged for review
    """

    id: int
    hero_id: int
    title: str
    locked: bool = False
    need_review: bool = False
    total_cards: int = 0
    review_cards: int = 0


@dataclass(frozen=True, slots=True)
class Card:
    """
    A card belonging to exactly one movie (and transitively one hero).

    `tags` is a cached copy of the server-side card/tag join. It is kept in
    sync by the tag reconciler and must not be trusted after a multi-step
    edit until the pending requests settle.
    """

    id: int
    hero_id: int
    movie_id: int
    name: str
    type: CardType
    call_sign: str = ""
    ability_text: str = ""
    ability_text2: str = ""
    need_review: bool = False
    tags: tuple[Tag, ...] = field(default_factory=tuple)
    movie_title: str = ""

    @property
    def tag_ids(self) -> list[int]:
        """Tag ids in cached order."""
        return [tag.id for tag in self.tags]

    @property
    def tag_names(self) -> list[str]:
        """Tag names in cached order."""
        return [tag.name for tag in self.tags]


Entity = Hero | Movie | Card | Tag
