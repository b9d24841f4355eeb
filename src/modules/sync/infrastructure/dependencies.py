"""Sync module dependencies."""

from fastapi import Depends
from sqlalchemy.exc import OperationalError as SQLAlchemyOperationalError

from src.core.config import settings
from src.core.infrastructure.redis.client import RedisClient, get_redis_client
from src.modules.catalog.infrastructure.dependencies import get_catalog_repository
from src.modules.subscriptions.application.dependencies import (
    get_subscription_repository,
)
from src.modules.subscriptions.domain.repository import SubscriptionRepository
from src.modules.sync.application.batch_reconciler import BatchReconciler
from src.modules.sync.application.orchestrator import StageOrchestrator
from src.modules.sync.application.runner import SubscriptionSyncRunner
from src.modules.sync.infrastructure.lock import NoopSyncLock, RedisSyncLock
from src.modules.sync.infrastructure.xtream_client import XtreamProviderClient

# 逐行重写时遇到这些错误不再继续尝试同一块的剩余行
DB_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    SQLAlchemyOperationalError,
    ConnectionError,
    TimeoutError,
)


def build_sync_runner(
    subscription_repository: SubscriptionRepository,
    redis_client: RedisClient | None = None,
) -> SubscriptionSyncRunner:
    """组装 Runner（HTTP 路由、Celery 任务与脚本共用）。"""
    orchestrator = StageOrchestrator(
        provider=XtreamProviderClient(),
        catalog_repository=get_catalog_repository(),
        reconciler=BatchReconciler(connection_errors=DB_CONNECTION_ERRORS),
    )
    if settings.SYNC_LOCK_ENABLED:
        lock = RedisSyncLock(redis_client or get_redis_client())
    else:
        lock = NoopSyncLock()
    return SubscriptionSyncRunner(subscription_repository, orchestrator, lock)


async def get_sync_runner(
    subscription_repository: SubscriptionRepository = Depends(
        get_subscription_repository
    ),
    redis_client: RedisClient = Depends(get_redis_client),
) -> SubscriptionSyncRunner:
    return build_sync_runner(subscription_repository, redis_client)
