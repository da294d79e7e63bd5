from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "Flag Notifier"
    VERSION: str = "0.1.0"
    API_PREFIX: str = "/api/v1"
    WEBHOOK_PREFIX: str = "/webhooks"
    """Shared secret expected in the X-Webhook-Token header. Empty disables the check."""
    WEBHOOK_TOKEN: str = ""

    # Database
    DATABASE_URL: str = "sqlite:///./flag_notifier.db"

    # Redis & Celery
    REDIS_PASSWORD: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    CELERY_QUEUE: str = "flag_notifier"

    # SMTP
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = False
    SMTP_START_TLS: bool = False
    SMTP_TIMEOUT: int = 30
    MAIL_FROM: str = "no-reply@example.com"

    # Site
    SITE_NAME: str = "Flag Notifier"
    SITE_BASE_URL: str = "http://localhost:8000"
    DEFAULT_LOCALE: str = "en"

    # Notification pipeline
    LOCK_NAMESPACE: str = "flag_notifier"
    DISPATCH_BATCH_SIZE: int = 50
    RETRY_ON_FAILURE: bool = False
    TASK_MAX_RETRIES: int = 3
    TASK_RETRY_DELAY: int = 60
    TASK_RETRY_BACKOFF_MAX: int = 700

    @property
    def redis_url(self) -> str:
        return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


settings = Settings()
