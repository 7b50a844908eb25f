"""Application settings and configuration."""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite:///./marketing_community.db"

    # Runtime
    environment: str = "development"
    log_level: str = "INFO"

    # Account allowed to bootstrap the permission system without the admin flag
    super_admin_email: str = "admin@marketing-community.com"
    seed_permissions_on_startup: bool = True

    # Notifications
    notification_retention_days: int = 90

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100
    audit_page_size: int = 50
    leaderboard_size: int = 10

    # CORS
    cors_origins: List[str] = ["*"]

    @property
    def sqlalchemy_database_url(self) -> str:
        """Database URL normalised for SQLAlchemy."""
        # Render/Heroku hand out postgres:// but SQLAlchemy needs postgresql://
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
