from catalogsync.models.catalog import Card, CardType, Collection, Entity, Hero, Movie, Tag
from catalogsync.models.failure import (
    ConflictError,
    Envelope,
    FailureKind,
    KnownError,
    MovieLockedError,
    NotFoundError,
    PreconditionError,
    RemoteError,
)
from catalogsync.models.scope import (
    CardFilters,
    FilterState,
    HeroFilters,
    MovieFilters,
    Scope,
    ScopeKind,
    ScreenContext,
    SortDirection,
    SortState,
    TagFilters,
    ViewMode,
    default_filters,
    with_filter,
)

__all__ = [
    "Card",
    "CardFilters",
    "CardType",
    "Collection",
    "ConflictError",
    "Entity",
    "Envelope",
    "FailureKind",
    "FilterState",
    "Hero",
    "HeroFilters",
    "KnownError",
    "Movie",
    "MovieFilters",
    "MovieLockedError",
    "NotFoundError",
    "PreconditionError",
    "RemoteError",
    "Scope",
    "ScopeKind",
    "ScreenContext",
    "SortDirection",
    "SortState",
    "Tag",
    "TagFilters",
    "ViewMode",
    "default_filters",
    "with_filter",
]
