"""Redis Key 命名规范。

Redis 用于：
- Sync Lock: 防止同一订阅被并发同步
"""


class RedisKeys:
    """Redis Key 命名空间管理。"""

    # 订阅同步锁
    # lock:sync:{subscription_id}
    SYNC_LOCK_PREFIX = "lock:sync"

    @classmethod
    def sync_lock(cls, subscription_id: int) -> str:
        """生成订阅同步锁 key。

        Args:
            subscription_id: 订阅 ID

        Returns:
            格式化的 Redis key
        """
        return f"{cls.SYNC_LOCK_PREFIX}:{subscription_id}"
