"""
salesdash Configuration
Load settings from environment variables
"""
from functools import lru_cache
from typing import List
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ============================================
    # Application Settings
    # ============================================
    APP_NAME: str = "salesdash"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"

    # ============================================
    # CORS Settings
    # ============================================
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # ============================================
    # Collaborator API Settings
    # ============================================
    API_BASE_URL: str = "https://host.pauloenterprise.com.br"
    REQUEST_TIMEOUT_SECONDS: float = 15.0

    # ============================================
    # Progressive Loading Settings
    # ============================================
    SALES_PAGE_LIMIT: int = 100
    CLIENTS_PAGE_LIMIT: int = 50
    # Safety caps against an API that never returns a short page
    SALES_MAX_PAGES: int = 50
    CLIENTS_MAX_PAGES: int = 20
    # Floors for the "still loading" total estimate
    SALES_MIN_ESTIMATE: int = 1000
    CLIENTS_MIN_ESTIMATE: int = 200
    PAGE_DELAY_SECONDS: float = 0.1
    BATCH_HISTORY_SIZE: int = 10
    AUTO_START_LOADS: bool = True

    # ============================================
    # Analytics Settings
    # ============================================
    TIMEZONE: str = "America/Sao_Paulo"

    @property
    def tz(self) -> ZoneInfo:
        """Calendar used to truncate sale timestamps to days"""
        return ZoneInfo(self.TIMEZONE)

    # ============================================
    # Scheduler Settings
    # ============================================
    SCHEDULER_ENABLED: bool = True
    REFRESH_INTERVAL_MINUTES: int = 5

    # ============================================
    # Operator Credential
    # ============================================
    ADMIN_EMAIL: str = "PauloAdmin$$$@gmail.com"
    ADMIN_PASSWORD: str = "Senha#12345"
    SESSION_TOKEN_BYTES: int = 32

    # ============================================
    # Mutation Feedback
    # ============================================
    SUCCESS_BADGE_SECONDS: float = 3.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance
settings = get_settings()
