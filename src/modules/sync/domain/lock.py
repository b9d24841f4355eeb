"""Subscription sync lock port."""

from contextlib import AbstractAsyncContextManager
from typing import Protocol


class SyncLock(Protocol):
    """订阅级互斥锁：同一订阅同一时刻只允许一个同步在运行。"""

    def hold(self, subscription_id: int) -> AbstractAsyncContextManager[bool]:
        """进入时尝试加锁，产出是否获得锁；退出时释放。"""
        ...
