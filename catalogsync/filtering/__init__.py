"""
Filter/sort engine.

`compute_view` is the only entry point the render trigger uses: it applies
the active collection's filters, then the sort, and returns a new list.
"""

import logging
from collections.abc import Sequence
from typing import Any

from catalogsync.filtering.filters import (
    filter_cards,
    filter_heroes,
    filter_movies,
    filter_tags,
    flag_matches,
    meets_threshold,
    select_matches,
    text_matches,
)
from catalogsync.filtering.sorting import apply_sort, sort_key_for
from catalogsync.models.catalog import Collection
from catalogsync.models.scope import FilterState, SortState

logger = logging.getLogger(__name__)

_FILTERS: dict[Collection, Any] = {
    Collection.HEROES: filter_heroes,
    Collection.MOVIES: filter_movies,
    Collection.CARDS: filter_cards,
    Collection.TAGS: filter_tags,
}


def compute_view(
    collection: Collection,
    items: Sequence[Any],
    filters: FilterState,
    sort: SortState,
) -> list[Any]:
    """Filtered, sorted copy of `items` for display."""
    filtered = _FILTERS[collection](items, filters)
    view = apply_sort(filtered, sort)
    logger.debug(
        "Computed %s view: %d of %d rows (sort=%s %s)",
        collection.value,
        len(view),
        len(items),
        sort.key,
        sort.direction.value,
    )
    return view


__all__ = [
    "apply_sort",
    "compute_view",
    "filter_cards",
    "filter_heroes",
    "filter_movies",
    "filter_tags",
    "flag_matches",
    "meets_threshold",
    "select_matches",
    "sort_key_for",
    "text_matches",
]
