"""目录同步 Celery 任务。

包含：
- 定时同步全部订阅（Celery Beat 调度）
- 单个订阅的同步（手动触发后入队）
"""

from celery import shared_task
from loguru import logger

from src.core.config import settings
from src.core.infrastructure.celery.queues import Queues
from src.core.infrastructure.celery.retry import DEFAULT_RETRYABLE_EXCEPTIONS


@shared_task(
    name="src.modules.sync.tasks.sync_all_subscriptions",
    bind=True,
    max_retries=0,  # 下一轮 Beat 会重新调度
    # 全量任务依次同步所有订阅，超时按调度间隔而非单订阅锁 TTL
    time_limit=settings.SYNC_SCHEDULE_INTERVAL_SEC,
    soft_time_limit=settings.SYNC_SCHEDULE_INTERVAL_SEC - 60,
    queue=Queues.SYNC,
)
def sync_all_subscriptions(_self: object) -> list[dict]:
    """同步全部订阅。

    Returns:
        每个订阅的结果摘要
    """
    import asyncio

    return asyncio.run(_sync_all_subscriptions_async())


async def _sync_all_subscriptions_async() -> list[dict]:
    from src.core.infrastructure.database.session import get_async_session
    from src.core.infrastructure.logging import get_business_logger
    from src.core.infrastructure.redis import RedisClient
    from src.modules.subscriptions.infrastructure.mappers import SubscriptionMapper
    from src.modules.subscriptions.infrastructure.repositories import (
        PostgreSQLSubscriptionRepository,
    )
    from src.modules.sync.infrastructure.dependencies import build_sync_runner

    business_log = get_business_logger()

    redis_client = RedisClient()
    try:
        subscription_repo = PostgreSQLSubscriptionRepository(
            get_async_session, SubscriptionMapper()
        )
        runner = build_sync_runner(subscription_repo, redis_client)
        outcomes = await runner.run_all()
    finally:
        await redis_client.close()

    business_log.info(
        "scheduled_sync_finished",
        subscription_count=len(outcomes),
        succeeded=sum(1 for outcome in outcomes if outcome.success),
    )

    return [
        {
            "subscription_id": outcome.subscription_id,
            "success": outcome.success,
            "added": outcome.report.added_count if outcome.report else 0,
            "removed": outcome.report.removed_count if outcome.report else 0,
            "error": outcome.error,
        }
        for outcome in outcomes
    ]


@shared_task(
    name="src.modules.sync.tasks.sync_subscription",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=DEFAULT_RETRYABLE_EXCEPTIONS,
    retry_backoff=True,
    retry_backoff_max=600,
    queue=Queues.SYNC,
)
def sync_subscription(_self: object, subscription_id: int) -> dict:
    """同步单个订阅。

    Args:
        subscription_id: 订阅 ID
    """
    import asyncio

    return asyncio.run(_sync_subscription_async(subscription_id))


async def _sync_subscription_async(subscription_id: int) -> dict:
    from src.core.domain.exceptions import SyncAlreadyRunningError
    from src.core.infrastructure.database.session import get_async_session
    from src.core.infrastructure.redis import RedisClient
    from src.modules.subscriptions.domain.exceptions import SubscriptionNotFoundError
    from src.modules.subscriptions.infrastructure.mappers import SubscriptionMapper
    from src.modules.subscriptions.infrastructure.repositories import (
        PostgreSQLSubscriptionRepository,
    )
    from src.modules.sync.infrastructure.dependencies import build_sync_runner

    redis_client = RedisClient()
    try:
        subscription_repo = PostgreSQLSubscriptionRepository(
            get_async_session, SubscriptionMapper()
        )
        runner = build_sync_runner(subscription_repo, redis_client)
        try:
            outcome = await runner.run_one(subscription_id)
        except (SubscriptionNotFoundError, SyncAlreadyRunningError) as e:
            logger.warning(f"Skipping sync of subscription {subscription_id}: {e}")
            return {
                "subscription_id": subscription_id,
                "success": False,
                "error": str(e),
            }
    finally:
        await redis_client.close()

    report = outcome.report
    return {
        "subscription_id": subscription_id,
        "success": outcome.success,
        "added": report.added_count if report else 0,
        "removed": report.removed_count if report else 0,
        "failed_stage": report.failed_stage.value
        if report and report.failed_stage
        else None,
        "error": outcome.error,
    }
