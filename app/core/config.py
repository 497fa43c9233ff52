"""
Core configuration for the Course Assessment service
Quiz authoring, ordering and analytics for course sections
"""

import secrets
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application Settings
    APP_NAME: str = "Course Assessments"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Quiz authoring and analytics backend for course sections"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Course Assessments API"

    # Security
    SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    ALGORITHM: str = "HS256"

    # Database
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: Optional[str] = Field(default=None)
    POSTGRES_PASSWORD: Optional[str] = Field(default=None)
    POSTGRES_SERVER: Optional[str] = Field(default=None)
    POSTGRES_PORT: str = Field(default="5432")
    POSTGRES_DB: Optional[str] = Field(default=None)
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=20)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=1800)
    DB_POOL_PRE_PING: bool = Field(default=True)
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=60000)

    # CORS
    BACKEND_CORS_ORIGINS: str = Field(default="http://localhost:3000,http://localhost:5173")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    LOG_FILE: Optional[str] = Field(default=None)
    LOG_MAX_BYTES: int = Field(default=10 * 1024 * 1024)
    LOG_BACKUP_COUNT: int = Field(default=5)

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_REQUESTS: int = Field(default=100)
    RATE_LIMIT_PERIOD: int = Field(default=60)  # seconds

    # Security headers
    SECURITY_HEADERS_ENABLED: bool = Field(default=True)

    # Assessment limits
    NOTIFICATION_FANOUT_LIMIT: int = Field(default=100)
    BULK_UPDATE_MAX_QUIZZES: int = Field(default=20)
    RECENT_ATTEMPTS_LIMIT: int = Field(default=20)

    class Config:
        env_file = ".env"
        case_sensitive = True

    def get_database_url(self) -> str:
        """Get database URL with proper formatting"""
        if self.DATABASE_URL:
            # Handle Heroku/Render style postgres:// URLs
            db_url = self.DATABASE_URL
            if db_url.startswith("postgres://"):
                db_url = db_url.replace("postgres://", "postgresql://", 1)
            return db_url

        # Build URL from components
        if all([self.POSTGRES_USER, self.POSTGRES_PASSWORD, self.POSTGRES_SERVER, self.POSTGRES_DB]):
            return (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
                f"{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        # Default for development
        return "sqlite:///./assessments.db"

    def get_cors_origins(self) -> list[str]:
        """Get CORS origins as list"""
        if self.BACKEND_CORS_ORIGINS:
            return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",")]
        return ["http://localhost:3000"]

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
