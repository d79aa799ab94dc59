"""
Wire payload normalization.

This is the single boundary where raw JSON from the admin API becomes
catalog entities. Backends have shipped several shapes over time:

- flags as booleans, "T"/"F", "true"/"false" or 0/1
- snake_case or camelCase keys
- hero `industry` or legacy `category`
- movie `locked` or `is_locked`, review count as `review_cards` or
  `total_cards_need_review`
- tags as `{id, name}` objects, `{tag_id, tag_name}` rows, bare names, or
  a comma-joined string from a GROUP_CONCAT

Everything past this module sees only the canonical dataclasses, so no
other code branches on payload shape.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from catalogsync.models.catalog import Card, CardType, Collection, Entity, Hero, Movie, Tag

logger = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"t", "true", "1", "yes", "y"})
_FALSE_VALUES = frozenset({"f", "false", "0", "no", "n", ""})

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    return {_snake(str(key)): value for key, value in raw.items()}


def _first(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def parse_flag(value: Any) -> bool:
    """
    Normalize a boolean-ish wire value.

    Raises:
        ValueError: If the value is not a recognizable flag
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, int | float):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Unrecognized flag value: {value!r}")


def _parse_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _required_int(raw: Mapping[str, Any], *keys: str) -> int:
    value = _first(raw, *keys)
    if value is None:
        raise ValueError(f"Missing required field: {keys[0]}")
    return int(value)


# =============================================================================
# TAGS
# =============================================================================


class TagCatalog:
    """
    Read-shared lookup over the global tag list.

    Only the tag CRUD screen writes the catalog; every other screen treats it
    as reference data and refreshes it with `replace()` after a re-fetch.
    """

    def __init__(self, tags: Iterable[Tag] = ()) -> None:
        self._by_id: dict[int, Tag] = {}
        self._by_name: dict[str, Tag] = {}
        self.replace(tags)

    def replace(self, tags: Iterable[Tag]) -> None:
        self._by_id = {tag.id: tag for tag in tags}
        self._by_name = {tag.name.lower(): tag for tag in self._by_id.values()}

    def get(self, tag_id: int) -> Tag | None:
        return self._by_id.get(tag_id)

    def find_by_name(self, name: str) -> Tag | None:
        return self._by_name.get(name.strip().lower())

    def __contains__(self, tag_id: object) -> bool:
        return tag_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def all(self) -> list[Tag]:
        return sorted(self._by_id.values(), key=lambda t: t.name.lower())


def parse_tag(raw: Mapping[str, Any]) -> Tag:
    """Parse a tag row (`{id, name}` or `{tag_id, tag_name, card_count}`)."""
    data = _normalize_keys(raw)
    name = _first(data, "name", "tag_name")
    if name is None:
        raise ValueError("Missing required field: name")
    return Tag(
        id=_required_int(data, "id", "tag_id"),
        name=str(name),
        card_count=_parse_int(_first(data, "card_count", "total_cards", "cards")),
    )


def parse_tags(value: Any, catalog: TagCatalog | None = None) -> tuple[Tag, ...]:
    """
    Normalize any accepted card-tag shape into a tuple of tags.

    Accepts None, a comma-joined string of names, a list of names, or a list
    of tag objects. Names without a catalog entry are dropped: a cached tag
    without an id could never be sent back in a full-replace call.
    Duplicates are collapsed, first occurrence wins.
    """
    if value is None or value == "":
        return ()

    items: list[Any]
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    elif isinstance(value, Iterable):
        items = list(value)
    else:
        raise ValueError(f"Unsupported tags payload: {type(value).__name__}")

    tags: list[Tag] = []
    seen: set[int] = set()
    for item in items:
        tag: Tag | None
        if isinstance(item, Tag):
            tag = item
        elif isinstance(item, Mapping):
            tag = parse_tag(item)
        else:
            name = str(item).strip()
            if not name:
                continue
            tag = catalog.find_by_name(name) if catalog is not None else None
            if tag is None:
                logger.warning("Dropping tag %r: not present in tag catalog", name)
                continue
        if tag.id in seen:
            continue
        seen.add(tag.id)
        # Cached card tags carry identity only; counts belong to the catalog
        tags.append(Tag(id=tag.id, name=tag.name))
    return tuple(tags)


# =============================================================================
# ENTITIES
# =============================================================================


def parse_hero(raw: Mapping[str, Any]) -> Hero:
    data = _normalize_keys(raw)
    return Hero(
        id=_required_int(data, "id", "hero_id"),
        name=str(_first(data, "name", default="")),
        industry=str(_first(data, "industry", "category", default="")),
        total_movies=_parse_int(data.get("total_movies")),
        pending_movies=_parse_int(data.get("pending_movies")),
        total_cards=_parse_int(data.get("total_cards")),
    )


def parse_movie(raw: Mapping[str, Any]) -> Movie:
    data = _normalize_keys(raw)
    return Movie(
        id=_required_int(data, "id", "movie_id"),
        hero_id=_required_int(data, "hero_id"),
        title=str(_first(data, "title", default="")),
        locked=parse_flag(_first(data, "locked", "is_locked")),
        need_review=parse_flag(data.get("need_review")),
        total_cards=_parse_int(data.get("total_cards")),
        review_cards=_parse_int(_first(data, "review_cards", "total_cards_need_review")),
    )


def parse_card_type(value: Any) -> CardType:
    """
    Parse a card type, case-insensitively.

    Raises:
        ValueError: If the value is not one of the known types
    """
    return CardType(str(value).strip().upper())


def parse_card(raw: Mapping[str, Any], catalog: TagCatalog | None = None) -> Card:
    data = _normalize_keys(raw)
    return Card(
        id=_required_int(data, "id", "card_id"),
        hero_id=_required_int(data, "hero_id"),
        movie_id=_required_int(data, "movie_id"),
        name=str(_first(data, "name", default="")),
        type=parse_card_type(_first(data, "type", default="")),
        call_sign=str(_first(data, "call_sign", default="")),
        ability_text=str(_first(data, "ability_text", default="")),
        ability_text2=str(_first(data, "ability_text2", default="")),
        need_review=parse_flag(data.get("need_review")),
        tags=parse_tags(data.get("tags"), catalog),
        movie_title=str(_first(data, "movie_title", default="")),
    )


def parse_entity(
    collection: Collection,
    raw: Mapping[str, Any],
    catalog: TagCatalog | None = None,
) -> Entity:
    """Parse a raw row for the given collection."""
    if collection == Collection.HEROES:
        return parse_hero(raw)
    if collection == Collection.MOVIES:
        return parse_movie(raw)
    if collection == Collection.CARDS:
        return parse_card(raw, catalog)
    return parse_tag(raw)


def parse_entities(
    collection: Collection,
    rows: Iterable[Mapping[str, Any]],
    catalog: TagCatalog | None = None,
) -> list[Entity]:
    return [parse_entity(collection, row, catalog) for row in rows]
