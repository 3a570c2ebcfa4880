import logging
from typing import Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Supabase Configuration
    supabase_url: Optional[HttpUrl] = Field(
        None, description="URL for the Supabase project."
    )
    supabase_key: Optional[str] = Field(
        None, description="Anon key for the Supabase project."
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Service role key for Supabase. Needed to read every user's picks.",
    )

    # Storage Settings
    page_size: int = Field(
        1000, gt=0, description="Rows fetched per page when scanning tables."
    )
    write_retry_attempts: int = Field(
        3, ge=1, description="Attempts per record write before it counts as failed."
    )
    current_period_key: str = Field(
        "current_week",
        description="Key in global_settings holding the current period pointer.",
    )

    # Season Settings
    team_season: int = Field(
        2024, description="Season year used to load the team directory."
    )
    regular_season_weeks: int = Field(18, ge=1)
    postseason_weeks: int = Field(4, ge=0)

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def last_period(self) -> int:
        return self.regular_season_weeks + self.postseason_weeks

    @property
    def supabase_api_key(self) -> Optional[str]:
        """Service key when configured, otherwise the anon key."""
        return self.supabase_service_key or self.supabase_key


def load_settings() -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings()
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")


settings: AppSettings = load_settings()
