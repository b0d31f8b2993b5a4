"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings

from crud_shared.config.constants import Limits


class Settings(BaseSettings):
    """Settings with development defaults."""

    # Database
    database_url: str = "sqlite:///./crudkit.db"
    database_echo: bool = False

    # Environment
    environment: str = "development"
    debug: bool = True

    # HTTP surface
    api_prefix: str = "/api"

    # Day boundaries for date filters are computed in this zone
    timezone: str = "UTC"

    # Export / import
    export_batch_size: int = Limits.DEFAULT_EXPORT_BATCH_SIZE
    export_date_format: str = "%Y-%m-%d %H:%M:%S"
    export_spool_max_bytes: int = 5 * 1024 * 1024
    import_encoding: str = "utf-8-sig"

    # Localisation of field labels
    default_locale: str = "en"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_settings(self) -> list[str]:
        """
        Validate settings that must be changed before running in production.
        Returns a list of errors; an empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")
            if self.database_url.startswith("sqlite"):
                errors.append("DATABASE_URL must point to a server database in production")

        if self.export_batch_size <= 0:
            errors.append("EXPORT_BATCH_SIZE must be positive")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
