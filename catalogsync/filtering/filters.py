"""
Column filters for catalog tables.

Pure functions: each takes a sequence of entities and a filter state and
returns a new list. Input is never mutated.

Field semantics:
- Text fields: case-insensitive substring; "" passes everything.
- Numeric thresholds: value >= threshold; "" passes everything and is never
  read as 0. A threshold that is not a number also passes everything.
- Selects (status, type, need-review): exact match; "" and "all" pass.
- Tag: case-insensitive membership in the card's cached tag names.
"""

import logging
from collections.abc import Sequence

from catalogsync.models.catalog import Card, Hero, Movie, Tag
from catalogsync.models.scope import CardFilters, HeroFilters, MovieFilters, TagFilters

logger = logging.getLogger(__name__)

PASS_THROUGH = frozenset({"", "all"})


def text_matches(value: str | None, needle: str) -> bool:
    """Case-insensitive substring test. An empty needle matches anything."""
    if not needle:
        return True
    return needle.lower() in (value or "").lower()


def meets_threshold(value: int | None, threshold: str) -> bool:
    """Numeric `>=` test. An empty or non-numeric threshold matches anything."""
    if threshold is None or str(threshold).strip() == "":
        return True
    try:
        minimum = float(threshold)
    except ValueError:
        logger.debug("Ignoring non-numeric threshold %r", threshold)
        return True
    return (value or 0) >= minimum


def select_matches(value: str, selected: str) -> bool:
    """Exact (case-insensitive) match for select inputs. "" and "all" match anything."""
    if selected in PASS_THROUGH:
        return True
    return value.lower() == selected.lower()


def flag_matches(flag: bool, selected: str) -> bool:
    """Match a yes/no select against a boolean flag."""
    if selected in PASS_THROUGH:
        return True
    return flag == (selected == "yes")


def filter_heroes(heroes: Sequence[Hero], f: HeroFilters) -> list[Hero]:
    return [
        h
        for h in heroes
        if text_matches(h.name, f.name)
        and text_matches(h.industry, f.industry)
        and meets_threshold(h.total_movies, f.min_movies)
    ]


def filter_movies(movies: Sequence[Movie], f: MovieFilters) -> list[Movie]:
    result: list[Movie] = []
    for m in movies:
        if not text_matches(m.title, f.title):
            continue
        if not meets_threshold(m.total_cards, f.total_min):
            continue
        if not meets_threshold(m.review_cards, f.review_min):
            continue
        # A locked movie is finished; everything else is still pending
        status = "done" if m.locked else "pending"
        if not select_matches(status, f.status):
            continue
        if not flag_matches(m.need_review, f.need_review):
            continue
        result.append(m)
    return result


def filter_cards(cards: Sequence[Card], f: CardFilters) -> list[Card]:
    wanted_tag = f.tag.strip().lower()
    result: list[Card] = []
    for c in cards:
        if not text_matches(c.movie_title, f.movie_title):
            continue
        if not text_matches(c.name, f.name):
            continue
        if not select_matches(c.type.value, f.type):
            continue
        if not text_matches(c.call_sign, f.call_sign):
            continue
        if not text_matches(c.ability_text, f.ability1):
            continue
        if not text_matches(c.ability_text2, f.ability2):
            continue
        if wanted_tag and wanted_tag not in {name.lower() for name in c.tag_names}:
            continue
        if not flag_matches(c.need_review, f.need_review):
            continue
        result.append(c)
    return result


def filter_tags(tags: Sequence[Tag], f: TagFilters) -> list[Tag]:
    return [
        t for t in tags if text_matches(t.name, f.name) and meets_threshold(t.card_count, f.min_cards)
    ]
