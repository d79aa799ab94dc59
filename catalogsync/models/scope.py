"""
Screen scope and per-screen view state.

A `ScreenContext` is created for every active screen and passed into the
store, controller and render trigger. Nothing here is module-level: two
screens never share filters, sort or scope.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum

from catalogsync.models.catalog import Collection
from catalogsync.models.failure import FailureKind, PreconditionError


class ScopeKind(str, Enum):
    """Collection contexts a screen can be showing."""

    HEROES = "heroes"
    HERO_MOVIES = "hero_movies"
    HERO_CARDS = "hero_cards"
    MOVIE_CARDS = "movie_cards"
    TAGS = "tags"


_SCOPE_COLLECTIONS: dict[ScopeKind, Collection] = {
    ScopeKind.HEROES: Collection.HEROES,
    ScopeKind.HERO_MOVIES: Collection.MOVIES,
    ScopeKind.HERO_CARDS: Collection.CARDS,
    ScopeKind.MOVIE_CARDS: Collection.CARDS,
    ScopeKind.TAGS: Collection.TAGS,
}


@dataclass(frozen=True, slots=True)
class Scope:
    """
    The collection context a screen is showing, e.g. "movies of hero 7".

    Attributes:
        kind: Which collection and filter column set is active
        hero_id: Required for hero-scoped kinds, optional for TAGS
            (hero-scoped card counts)
        movie_id: Required for MOVIE_CARDS
    """

    kind: ScopeKind
    hero_id: int | None = None
    movie_id: int | None = None

    def __post_init__(self) -> None:
        needs_hero = self.kind in (
            ScopeKind.HERO_MOVIES,
            ScopeKind.HERO_CARDS,
            ScopeKind.MOVIE_CARDS,
        )
        if needs_hero and self.hero_id is None:
            raise PreconditionError(
                f"{self.kind.value} scope requires a hero_id",
                kind=FailureKind.MISSING_REQUIRED,
            )
        if self.kind == ScopeKind.MOVIE_CARDS and self.movie_id is None:
            raise PreconditionError(
                "movie_cards scope requires a movie_id",
                kind=FailureKind.MISSING_REQUIRED,
            )

    @property
    def collection(self) -> Collection:
        """Store collection this scope fills."""
        return _SCOPE_COLLECTIONS[self.kind]

    def describe(self) -> str:
        """Short label for logs."""
        if self.kind == ScopeKind.MOVIE_CARDS:
            return f"cards of movie {self.movie_id}"
        if self.kind == ScopeKind.HERO_CARDS:
            return f"cards of hero {self.hero_id}"
        if self.kind == ScopeKind.HERO_MOVIES:
            return f"movies of hero {self.hero_id}"
        if self.kind == ScopeKind.TAGS and self.hero_id is not None:
            return f"tags for hero {self.hero_id}"
        return self.kind.value


class ViewMode(str, Enum):
    """Hero screen toggles between its movies and its cards."""

    MOVIES = "movies"
    CARDS = "cards"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class SortState:
    """Single active sort column. `key=None` keeps the server order."""

    key: str | None = None
    direction: SortDirection = SortDirection.ASC

    def toggled(self, key: str) -> "SortState":
        """Same key flips direction; a new key starts ascending."""
        if self.key == key:
            flipped = SortDirection.DESC if self.direction == SortDirection.ASC else SortDirection.ASC
            return SortState(key=key, direction=flipped)
        return SortState(key=key, direction=SortDirection.ASC)


# =============================================================================
# FILTER STATE
# =============================================================================
#
# Empty strings and "all" are pass-through values. Numeric thresholds stay
# strings so that "" is never confused with 0.
#
# =============================================================================


@dataclass(frozen=True, slots=True)
class HeroFilters:
    name: str = ""
    industry: str = ""
    min_movies: str = ""


@dataclass(frozen=True, slots=True)
class MovieFilters:
    title: str = ""
    total_min: str = ""
    review_min: str = ""
    status: str = "all"  # all | done | pending
    need_review: str = "all"  # all | yes | no


@dataclass(frozen=True, slots=True)
class CardFilters:
    movie_title: str = ""
    name: str = ""
    type: str = ""
    call_sign: str = ""
    ability1: str = ""
    ability2: str = ""
    tag: str = ""
    need_review: str = "all"


@dataclass(frozen=True, slots=True)
class TagFilters:
    name: str = ""
    min_cards: str = ""


FilterState = HeroFilters | MovieFilters | CardFilters | TagFilters

_DEFAULT_FILTERS: dict[Collection, type] = {
    Collection.HEROES: HeroFilters,
    Collection.MOVIES: MovieFilters,
    Collection.CARDS: CardFilters,
    Collection.TAGS: TagFilters,
}


def default_filters() -> dict[Collection, FilterState]:
    """Fresh pass-through filters for every collection."""
    return {collection: cls() for collection, cls in _DEFAULT_FILTERS.items()}


def with_filter(filters: FilterState, name: str, value: str) -> FilterState:
    """Return `filters` with one field replaced. Unknown fields are rejected."""
    if name not in {f.name for f in fields(filters)}:
        raise PreconditionError(f"Unknown filter field: {name}")
    return replace(filters, **{name: value})


@dataclass
class ScreenContext:
    """
    View state owned by one active screen.

    `generation` increases on every scope change and on deactivation. A
    mutation records `token()` before its remote call and checks
    `is_current(token)` before applying anything afterwards, so a response
    that lands after navigation never touches another screen's state.
    """

    scope: Scope
    view_mode: ViewMode = ViewMode.MOVIES
    filters: dict[Collection, FilterState] = field(default_factory=default_filters)
    sort: SortState = field(default_factory=SortState)
    active: bool = True
    generation: int = 0

    @property
    def collection(self) -> Collection:
        return self.scope.collection

    @property
    def active_filters(self) -> FilterState:
        return self.filters[self.collection]

    def token(self) -> int:
        return self.generation

    def is_current(self, token: int) -> bool:
        return self.active and token == self.generation

    def change_scope(self, scope: Scope) -> None:
        """Switch to a new scope. Sort resets; filters persist per collection."""
        self.scope = scope
        self.sort = SortState()
        self.generation += 1
        if scope.kind == ScopeKind.HERO_MOVIES:
            self.view_mode = ViewMode.MOVIES
        elif scope.kind == ScopeKind.HERO_CARDS:
            self.view_mode = ViewMode.CARDS

    def clear_filters(self) -> None:
        self.filters = default_filters()
        self.sort = SortState()

    def deactivate(self) -> None:
        self.active = False
        self.generation += 1
