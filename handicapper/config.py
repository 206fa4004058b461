"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HANDICAPPER_",
        extra="ignore",
    )

    # App
    debug: bool = False
    log_level: str = "INFO"

    # Scoring
    default_track_condition: str = "fast"
    underlay_penalty_threshold: int = 160  # base score at/above which underlay penalties are waived

    # Output
    top_horses: int = 3

    def model_post_init(self, __context) -> None:
        """Normalise free-text settings.

        ``log_level`` falls back to the standard ``LOG_LEVEL`` variable (from the
        environment, then the .env file) when the prefixed one is not set.
        """
        import os
        from dotenv import dotenv_values

        if "log_level" not in self.model_fields_set:
            level = os.getenv("LOG_LEVEL") or dotenv_values(".env").get("LOG_LEVEL")
            if level:
                object.__setattr__(self, "log_level", level)
        object.__setattr__(self, "log_level", (self.log_level or "INFO").upper())
        object.__setattr__(
            self, "default_track_condition",
            (self.default_track_condition or "fast").strip().lower(),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Export for convenience
settings = get_settings()
