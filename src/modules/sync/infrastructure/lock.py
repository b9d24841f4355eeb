"""Redis-backed subscription sync lock."""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from loguru import logger
from redis.exceptions import RedisError

from src.core.config import settings
from src.core.infrastructure.logging import BusinessEvents
from src.core.infrastructure.redis.client import RedisClient, RedisUnavailableError


class RedisSyncLock:
    """基于 SET NX EX 的订阅同步锁。

    Redis 不可用时降级为"视为已获得锁"，同步照常进行。
    """

    def __init__(self, redis_client: RedisClient, ttl: int | None = None):
        self.redis_client = redis_client
        self.ttl = ttl or settings.SYNC_LOCK_TTL_SEC

    @asynccontextmanager
    async def hold(self, subscription_id: int) -> AsyncGenerator[bool, None]:
        token = uuid.uuid4().hex
        acquired = False
        redis_available = True

        try:
            async with self.redis_client.ensure_available(
                timeout=settings.REDIS_CLIENT_TIMEOUT_SEC,
                close_on_exit=False,
            ):
                acquired = await self.redis_client.acquire_sync_lock(
                    subscription_id, token, self.ttl
                )
        except (RedisUnavailableError, RedisError) as e:
            logger.warning(
                f"Failed to acquire Redis lock for subscription {subscription_id}: {e}"
            )
            BusinessEvents.feature_degraded(feature="sync_lock", reason=str(e))
            redis_available = False
            acquired = True  # 降级时假设获取成功

        try:
            yield acquired
        finally:
            if acquired and redis_available:
                try:
                    await self.redis_client.release_sync_lock(subscription_id, token)
                except (RedisUnavailableError, RedisError) as e:
                    logger.warning(
                        f"Failed to release Redis lock for subscription "
                        f"{subscription_id}: {e}"
                    )


class NoopSyncLock:
    """不加锁（SYNC_LOCK_ENABLED=False 时使用）。"""

    @asynccontextmanager
    async def hold(self, subscription_id: int) -> AsyncGenerator[bool, None]:
        yield True
