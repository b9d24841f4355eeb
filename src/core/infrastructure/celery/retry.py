"""Celery task retry helpers.

同步任务只对基础设施层面的瞬时故障自动重试；
Provider 错误和单订阅失败已在同步流程内部转为报告条目，不会抛到任务层。
"""

from __future__ import annotations

from kombu.exceptions import OperationalError as KombuOperationalError
from redis.exceptions import RedisError
from sqlalchemy.exc import OperationalError as SQLAlchemyOperationalError

from src.core.infrastructure.redis.client import RedisUnavailableError

DEFAULT_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    RedisUnavailableError,
    RedisError,
    KombuOperationalError,
    SQLAlchemyOperationalError,
    TimeoutError,
)
