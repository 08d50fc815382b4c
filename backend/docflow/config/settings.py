"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "docflow_dev"

    # JWT (tokens are issued by the identity provider, we only validate them)
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Scheduler
    scheduler_interval_seconds: int = 10  # Drain outcome outbox every 10 seconds
    overdue_check_interval_seconds: int = 300
    outcome_max_attempts: int = 5

    # Engine
    run_update_max_retries: int = 3
    close_orphaned_executions: bool = False  # Force-close pending siblings on fail/cancel
    staff_roles: str = "staff,admin"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def staff_roles_list(self) -> List[str]:
        """Roles allowed to cancel any workflow run"""
        return [role.strip().lower() for role in self.staff_roles.split(",") if role.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
