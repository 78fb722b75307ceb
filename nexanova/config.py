from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./nexanova.db",
        description="SQLAlchemy async URL, e.g., postgresql+asyncpg://... or sqlite+aiosqlite:///...",
    )
    DATABASE_ECHO: bool = False

    # Used to resolve "today" when a caller does not pass an explicit day
    DEFAULT_TIMEZONE: str = "UTC"

    # Version-conflict retries for the points total before giving up
    POINTS_MAX_RETRIES: int = Field(default=5, ge=1)

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

settings = Settings()
