from catalogsync.db.database import get_session, init_db
from catalogsync.db.operations import (
    card_to_row,
    create_card,
    create_hero,
    create_movie,
    create_tag,
    delete_card,
    delete_hero,
    delete_movie,
    delete_tag,
    get_card,
    get_hero,
    get_hero_row,
    get_movie,
    get_movie_row,
    get_tag,
    hero_to_row,
    list_cards,
    list_heroes,
    list_movies,
    list_tags,
    movie_to_row,
    set_card_tags,
    tag_to_row,
    update_card,
    update_hero,
    update_movie,
    update_tag,
)

__all__ = [
    "card_to_row",
    "create_card",
    "create_hero",
    "create_movie",
    "create_tag",
    "delete_card",
    "delete_hero",
    "delete_movie",
    "delete_tag",
    "get_card",
    "get_hero",
    "get_hero_row",
    "get_movie",
    "get_movie_row",
    "get_session",
    "get_tag",
    "hero_to_row",
    "init_db",
    "list_cards",
    "list_heroes",
    "list_movies",
    "list_tags",
    "movie_to_row",
    "set_card_tags",
    "tag_to_row",
    "update_card",
    "update_hero",
    "update_movie",
    "update_tag",
]
