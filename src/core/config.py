"""Application configuration."""

import warnings
from typing import Literal, Self

from pydantic import HttpUrl, computed_field, model_validator
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "catalogSync"
    SERVER_PORT: int = 8000
    ROOTPATH: str = ""
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"

    # 定时同步入口的共享密钥（Authorization: Bearer <CRON_SECRET>）
    CRON_SECRET: str = "changethis"

    # Sentry
    SENTRY_DSN: HttpUrl | None = None

    # PostgreSQL
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "catalogsync"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @computed_field
    @property
    def database_url_object(self) -> MultiHostUrl:
        return MultiHostUrl.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        return str(self.database_url_object)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_CLIENT_TIMEOUT_SEC: float = 5.0

    # Sync Settings
    SYNC_CHUNK_SIZE: int = 5000
    SYNC_WORKER_POOL_SIZE: int = 3  # 每个写入 worker 占用一个数据库连接
    SYNC_SCHEDULE_INTERVAL_SEC: int = 6 * 3600  # 6 hours
    SYNC_LOCK_TTL_SEC: int = 3600
    SYNC_LOCK_ENABLED: bool = True

    # Provider (Xtream player_api)
    PROVIDER_TIMEOUT_SEC: float = 60.0
    PROVIDER_MAX_RETRIES: int = 2  # 瞬时错误的额外重试次数
    PROVIDER_RETRY_BACKOFF_SEC: float = 2.0
    PROVIDER_RETRY_BACKOFF_MAX_SEC: float = 30.0
    PROVIDER_USER_AGENT: str = "catalogSync/1.0"
    PROVIDER_LIVE_FORMAT: str = "m3u8"

    # Celery Settings
    CELERY_BROKER_URL: str | None = None  # 默认使用 REDIS_URL
    CELERY_RESULT_BACKEND: str | None = None  # 默认使用 REDIS_URL
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    CELERY_ACCEPT_CONTENT: list[str] = ["json"]
    CELERY_TASK_DEFAULT_RETRY_DELAY: int = 60
    CELERY_TASK_MAX_RETRIES: int = 3

    WORKER_SYNC_CONCURRENCY: int = 1

    @computed_field
    @property
    def celery_broker_url(self) -> str:
        """获取 Celery Broker URL，默认使用 Redis URL。"""
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @computed_field
    @property
    def celery_result_backend(self) -> str:
        """获取 Celery Result Backend URL，默认使用 Redis URL。"""
        return self.CELERY_RESULT_BACKEND or self.REDIS_URL

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        self._check_default_secret("CRON_SECRET", self.CRON_SECRET)
        return self

    @model_validator(mode="after")
    def _ensure_pool_fits_workers(self) -> Self:
        if self.DB_POOL_SIZE + self.DB_MAX_OVERFLOW < self.SYNC_WORKER_POOL_SIZE:
            raise ValueError(
                "DB_POOL_SIZE + DB_MAX_OVERFLOW must be >= SYNC_WORKER_POOL_SIZE"
            )
        return self


settings = Settings()
