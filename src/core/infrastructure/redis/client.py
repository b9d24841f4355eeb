"""Redis 客户端封装。

提供统一的 Redis 访问接口，支持：
- 连接池管理与健康检查
- 订阅同步锁（SET NX EX + 持有者校验释放）
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING

import redis.asyncio as aioredis
from loguru import logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

from src.core.config import settings
from src.core.infrastructure.health import HealthStatus, RedisHealthResult
from src.core.infrastructure.redis.keys import RedisKeys

# 仅当值与持有者 token 一致时删除
_RELEASE_IF_OWNER = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisUnavailableError(RuntimeError):
    """Redis 不可用（连接失败/超时等）。"""


class RedisClient:
    """Redis 客户端封装类。"""

    def __init__(self, url: str | None = None):
        """初始化 Redis 客户端。

        Args:
            url: Redis 连接 URL，默认使用配置中的 REDIS_URL
        """
        self._url = url or settings.REDIS_URL
        self._client: Redis | None = None

    @property
    def client(self) -> Redis:
        """获取 Redis 客户端实例（延迟初始化）。"""
        if self._client is None:
            self._client = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=10.0,  # 读写超时 10 秒
                socket_connect_timeout=5.0,  # 连接超时 5 秒
                retry_on_timeout=True,  # 超时后重试
            )
        return self._client

    async def close(self) -> None:
        """关闭 Redis 连接。"""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def ping(self) -> bool:
        """检查 Redis 连接是否正常。

        Returns:
            连接正常返回 True，否则返回 False
        """
        try:
            return await self.client.ping()
        except Exception as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    @asynccontextmanager
    async def ensure_available(
        self,
        *,
        timeout: float = 5.0,
        close_on_exit: bool = False,
    ) -> AsyncGenerator[RedisClient, None]:
        """确保进入上下文时 Redis 连接可用。

        适用于需要在执行一段逻辑前先做连通性检查的场景（如 Celery 定时任务）。

        Usage:
            redis_client = RedisClient()
            try:
                async with redis_client.ensure_available(timeout=5.0, close_on_exit=True):
                    # Redis 操作...
                    ...
            except RedisUnavailableError:
                # Redis 不可用，按需降级/跳过
                ...
        """
        try:
            # 这里直接调用底层 client.ping()，避免与 self.ping() 的日志重复。
            ok = await asyncio.wait_for(self.client.ping(), timeout=timeout)
            if not ok:
                raise RedisUnavailableError("Redis ping returned falsy result")
        except TimeoutError as e:
            if close_on_exit:
                await self.close()
            raise RedisUnavailableError("Redis ping timeout") from e
        except RedisUnavailableError:
            if close_on_exit:
                await self.close()
            raise
        except Exception as e:
            if close_on_exit:
                await self.close()
            raise RedisUnavailableError(f"Redis ping failed: {e}") from e

        try:
            yield self
        finally:
            if close_on_exit:
                await self.close()

    async def health_check(self) -> RedisHealthResult:
        """执行 Redis 健康检查。

        检查 Redis 连接状态和版本信息。

        Returns:
            RedisHealthResult: 健康检查结果
        """
        try:
            is_connected = await self.ping()
            info = await self.client.info("server") if is_connected else {}
            return RedisHealthResult(
                status=HealthStatus.OK if is_connected else HealthStatus.ERROR,
                connected=is_connected,
                version=info.get("redis_version", "unknown"),
            )
        except Exception as e:
            return RedisHealthResult(
                status=HealthStatus.ERROR,
                connected=False,
                error=str(e),
            )

    # ============ 基础操作 ============

    async def set(
        self,
        key: str,
        value: str,
        ex: int | timedelta | None = None,
        nx: bool = False,
    ) -> bool:
        """设置字符串值。

        Args:
            key: 键名
            value: 值
            ex: 过期时间（秒或 timedelta）
            nx: 仅当键不存在时设置

        Returns:
            设置成功返回 True
        """
        return bool(await self.client.set(key, value, ex=ex, nx=nx))

    # ============ 同步任务锁 ============

    async def acquire_sync_lock(
        self,
        subscription_id: int,
        token: str,
        ttl: int,
    ) -> bool:
        """尝试获取订阅同步锁。

        用于防止同一订阅被定时任务与手动触发并发同步。

        Args:
            subscription_id: 订阅 ID
            token: 持有者标识，释放时校验
            ttl: 锁过期时间（秒）

        Returns:
            获取成功返回 True
        """
        key = RedisKeys.sync_lock(subscription_id)
        return await self.set(key, token, ex=ttl, nx=True)

    async def release_sync_lock(self, subscription_id: int, token: str) -> bool:
        """释放订阅同步锁（仅当仍由 token 持有时删除）。"""
        key = RedisKeys.sync_lock(subscription_id)
        released = await self.client.eval(_RELEASE_IF_OWNER, 1, key, token)
        return bool(released)


# 全局 Redis 客户端实例
redis_client = RedisClient()


def get_redis_client() -> RedisClient:
    """获取 Redis 客户端依赖。"""
    return redis_client
