from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Manages all application settings. It automatically reads from
    environment variables or a .env file.
    """
    # Tell pydantic to load variables from a .env file
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Session cookie signing and lifetime (24 hours)
    APP_SECRET_KEY: str = "healthdash-dev-secret"
    SESSION_MAX_AGE: int = 24 * 60 * 60
    HTTPS_ONLY_COOKIES: bool = False
    CORS_ORIGINS: List[str] = ["*"]

    # Aggregation defaults
    DISPLAY_TIMEZONE: str = "UTC"
    RECENT_READINGS_COUNT: int = 10
    DASHBOARD_RECENT_COUNT: int = 20
    TREND_WINDOW_HOURS: int = 24

    # Watch sync
    WATCH_DEFAULT_SOURCE: str = "AppleWatch_HealthKit"

    # Logging; file logging is enabled only when LOG_DIR is set
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    # Emails registered in the user directory at startup
    SEED_USERS: List[str] = []

# Create a single, reusable instance of the settings
settings = Settings()
