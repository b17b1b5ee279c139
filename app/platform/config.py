from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Lighthouse Audit Service"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # ── Document store ──────────────────────────
    DATABASE_URL: str

    # ── Job queue ───────────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: str = "json"
    CELERY_TASK_TRACK_STARTED: bool = True
    CELERY_TASK_TIME_LIMIT: int = 3600  # hard ceiling per job, enforced by celery

    AUDIT_QUEUE_NAME: str = "audits.lighthouse"
    AUDIT_JOB_MAX_ATTEMPTS: int = 3
    AUDIT_JOB_BACKOFF_SECONDS: int = 1  # doubles on every retry

    # ── Artifact store (S3 / MinIO) ─────────────
    S3_ENDPOINT: Optional[str] = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str = ""
    S3_SECRET_ACCESS_KEY: str = ""
    S3_BUCKET_NAME: str = "lighthouse-screenshots"
    S3_SIGNED_URL_EXPIRES_SECONDS: int = 900

    # ── Audit engine / browser ──────────────────
    LIGHTHOUSE_BIN: str = "lighthouse"
    LIGHTHOUSE_NAVIGATION_TIMEOUT: int = 60000  # ms
    LIGHTHOUSE_THROTTLING_METHOD: Literal["simulate", "provided", "devtools"] = "simulate"

    CHROMEDRIVER_PATH: Optional[str] = None
    CHROME_HEADLESS: bool = True

    RECENT_TASKS_LIMIT: int = 100

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parent.parent.parent / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def s3_credentials_configured(self) -> bool:
        return bool(self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY and self.S3_BUCKET_NAME)


settings = Settings()
