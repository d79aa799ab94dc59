from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CATALOGSYNC_")

    app_name: str = "CatalogSync"
    debug: bool = False

    # Storage for the reference admin API
    database_url: str = "sqlite+aiosqlite:///./catalog.db"

    # Remote admin API consumed by the client-side sync layer
    api_base_url: str = "http://localhost:8000"
    request_timeout: float = 10.0
    user_agent: str = "CatalogSync/1.0"


settings = Settings()


# =============================================================================
# CLIENT-SIDE DEFAULTS
# =============================================================================

# Surfaced when the UI layer tries to mutate a locked movie or one of its cards
LOCKED_MOVIE_MUTATION_MESSAGE = "This movie is locked. Unlock it before making changes."
