"""Application configuration."""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        """Initialize settings from environment variables."""
        # General Settings
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"

        # Database Settings
        self.DB_HOST: str = os.getenv("DB_HOST", "localhost")
        self.DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
        self.DB_USER: str = os.getenv("DB_USER", "postgres")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_NAME: str = os.getenv("DB_NAME", "career_loader")

        # Synchronizer Settings
        self.SYNC_BATCH_SIZE: int = int(os.getenv("SYNC_BATCH_SIZE", "5"))
        self.SYNC_BATCH_DELAY: float = float(os.getenv("SYNC_BATCH_DELAY", "0.1"))

    @property
    def is_production(self) -> bool:
        """Whether the application runs in production mode."""
        return self.ENVIRONMENT.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
