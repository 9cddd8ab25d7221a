import os
from typing import List, Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=[".env", "../.env"], env_file_encoding="utf-8", extra="ignore"
    )

    # Runtime
    ENVIRONMENT: str = "development"  # "development" exposes error origin/solution in responses
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    WEB_CONCURRENCY: int = 1  # 0 = one worker per CPU core
    CORS_ORIGINS: str = "*"  # Comma separated
    BASE_URL: str = "http://localhost:3000"

    # Redis Configuration (event fan-out between workers, Celery broker)
    REDIS_URL: str = "redis://localhost:6379"  # Empty string disables Redis
    REDIS_CHANNEL: str = "odin_status_events"
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None

    # PostgreSQL Database Configuration
    POSTGRES_DB: str = "odin_backoffice"
    POSTGRES_USER: str = "odin"
    POSTGRES_PASSWORD: str = "odin_dev_password"
    POSTGRES_PORT: int = 5432
    POSTGRES_HOST: str = "localhost"
    SQLALCHEMY_DATABASE_URL: Optional[str] = None  # postgresql+asyncpg://... when not set explicitly
    SQL_ECHO: bool = False

    # Owner bootstrap
    OWNER_BOOTSTRAP_TOKEN: Optional[SecretStr] = None
    OWNER_ADMIN_NAME: str = "owner"
    OWNER_EMAIL: str = "owner@odin.local"

    # Status monitor
    STATUS_MONITOR_ENABLED: bool = True
    HEALTH_CHECK_INTERVAL: int = 300  # seconds (5 minutes)
    MAINTENANCE_CHECK_INTERVAL: int = 60  # seconds
    MAINTENANCE_NOTICE_MINUTES: int = 15
    HEALTH_CHECK_TIMEOUT: float = 5.0
    API_URL: Optional[str] = None
    AUTH_URL: Optional[str] = None
    PAYMENT_HEALTH_URL: Optional[str] = None
    SSE_KEEPALIVE_SECONDS: float = 15.0

    # Alerting
    DISCORD_WEBHOOK: Optional[str] = None
    TWILIO_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[SecretStr] = None
    TWILIO_PHONE: Optional[str] = None
    ADMIN_PHONE: Optional[str] = None

    # SMTP
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[SecretStr] = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "Status Updates <noreply@odin.local>"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True  # Set to False for human-readable console output during development

    # File Logging Configuration
    LOG_FILE_ENABLED: bool = False
    LOG_FILE_PATH: Optional[str] = None  # Defaults to ./logs/{service_name}.log
    LOG_FILE_MAX_SIZE_MB: int = 10
    LOG_FILE_BACKUP_COUNT: int = 5

    @model_validator(mode="after")
    def compute_urls(self):
        """Compute database and Celery URLs if not explicitly provided"""
        host = self.POSTGRES_HOST
        if host == "localhost" and self._is_running_in_docker():
            host = "postgres"

        if not self.SQLALCHEMY_DATABASE_URL:
            self.SQLALCHEMY_DATABASE_URL = (
                f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{host}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        if self.REDIS_URL:
            self.CELERY_BROKER_URL = self.CELERY_BROKER_URL or f"{self.REDIS_URL}/0"
            self.CELERY_RESULT_BACKEND = self.CELERY_RESULT_BACKEND or f"{self.REDIS_URL}/1"
        else:
            self.CELERY_BROKER_URL = self.CELERY_BROKER_URL or "memory://"
            self.CELERY_RESULT_BACKEND = self.CELERY_RESULT_BACKEND or "cache+memory://"

        return self

    def _is_running_in_docker(self) -> bool:
        """Detect if running inside a Docker container."""
        try:
            return os.getcwd().startswith("/app") or os.path.exists("/.dockerenv")
        except OSError:
            return False

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def worker_count(self) -> int:
        """Number of uvicorn worker processes to fan out to."""
        if self.WEB_CONCURRENCY > 0:
            return self.WEB_CONCURRENCY
        return os.cpu_count() or 1


settings = Settings()
