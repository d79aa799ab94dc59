from catalogsync.parsers.payload import (
    TagCatalog,
    parse_card,
    parse_card_type,
    parse_entities,
    parse_entity,
    parse_flag,
    parse_hero,
    parse_movie,
    parse_tag,
    parse_tags,
)

__all__ = [
    "TagCatalog",
    "parse_card",
    "parse_card_type",
    "parse_entities",
    "parse_entity",
    "parse_flag",
    "parse_hero",
    "parse_movie",
    "parse_tag",
    "parse_tags",
]
