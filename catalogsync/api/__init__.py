from catalogsync.api.cards import router as cards_router
from catalogsync.api.health import router as health_router
from catalogsync.api.heroes import router as heroes_router
from catalogsync.api.movies import router as movies_router
from catalogsync.api.tags import router as tags_router

__all__ = [
    "cards_router",
    "health_router",
    "heroes_router",
    "movies_router",
    "tags_router",
]
