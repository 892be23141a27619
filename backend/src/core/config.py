"""Application configuration using pydantic-settings."""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Shortest limit that still leaves room for the truncation marker plus some text
MIN_DIFF_DISPLAY_LIMIT = 64


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:5173",
        validation_alias="CORS_ORIGINS",
    )

    # History rendering
    diff_display_limit: int = Field(default=500, validation_alias="DIFF_DISPLAY_LIMIT")
    # Seconds; 0 disables the differ's time budget so output is deterministic
    diff_timeout: float = Field(default=0.0, ge=0.0, validation_alias="DIFF_TIMEOUT")

    # Editor autosave debounce, in seconds
    autosave_delay: float = Field(default=2.0, gt=0.0, validation_alias="AUTOSAVE_DELAY")

    @field_validator("diff_display_limit")
    @classmethod
    def check_diff_display_limit(cls, v: int) -> int:
        """Reject limits too small to hold the truncation marker."""
        if v < MIN_DIFF_DISPLAY_LIMIT:
            raise ValueError(
                f"DIFF_DISPLAY_LIMIT must be at least {MIN_DIFF_DISPLAY_LIMIT}, got {v}",
            )
        return v

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite (no connection pool settings)."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
