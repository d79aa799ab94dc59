"""
Single-column sorting for catalog tables.

Strings compare case-insensitively, numeric and boolean columns compare
numerically. Python's `sorted` is stable in both directions, so rows with
equal keys always keep their input order.
"""

from collections.abc import Sequence
from enum import Enum
from typing import Any, TypeVar

from catalogsync.models.failure import PreconditionError
from catalogsync.models.scope import SortDirection, SortState

T = TypeVar("T")

NUMERIC_KEYS = frozenset(
    {
        "id",
        "hero_id",
        "movie_id",
        "total_movies",
        "pending_movies",
        "total_cards",
        "review_cards",
        "card_count",
        "locked",
        "need_review",
    }
)


def sort_key_for(item: Any, key: str) -> float | str:
    """
    Comparable key for one row.

    Missing values sort as 0 on numeric columns and "" elsewhere. The `tags`
    column sorts by its comma-joined names.
    """
    try:
        value = getattr(item, key)
    except AttributeError as e:
        raise PreconditionError(f"Cannot sort {type(item).__name__} by {key!r}") from e

    if key in NUMERIC_KEYS:
        return float(value or 0)
    if key == "tags":
        return ", ".join(tag.name for tag in value).lower()
    if isinstance(value, Enum):
        value = value.value
    return str(value if value is not None else "").lower()


def apply_sort(items: Sequence[T], sort: SortState) -> list[T]:
    """Return a sorted copy. `sort.key=None` keeps the input order."""
    if sort.key is None:
        return list(items)
    key = sort.key
    return sorted(
        items,
        key=lambda item: sort_key_for(item, key),
        reverse=sort.direction == SortDirection.DESC,
    )
