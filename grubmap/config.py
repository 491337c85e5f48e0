from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized runtime configuration loaded from environment variables.
    """

    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_STORAGE_BUCKET: str = "media"
    PROFILES_TABLE: str = "profiles"
    POSTS_TABLE: str = "posts"
    SESSION_SNAPSHOT_PATH: str = ".grubmap/user-auth-storage.json"
    API_PREFIX: str = "/api"
    APP_NAME: str = "Grubmap"
    # Expo dev servers (Metro and web).
    ALLOWED_ORIGINS: list[str] = ["http://localhost:8081", "http://localhost:19006"]
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
