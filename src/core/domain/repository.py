"""Base repository interface."""

from abc import ABC, abstractmethod
from typing import TypeVar

T = TypeVar("T")


class ReadOnlyRepository[T](ABC):
    """只读 Repository 接口：同步引擎只读取、不修改的实体。"""

    @abstractmethod
    async def get_by_id(self, entity_id: int) -> T | None:
        """根据ID获取实体"""
        pass

    @abstractmethod
    async def list_all(self) -> list[T]:
        """获取全部实体"""
        pass
