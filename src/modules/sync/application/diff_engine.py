"""Diff Engine - 比较同一订阅、同一内容域写入前后的条目集合。

只按自然键比较：非键字段变化（例如频道改名）不视为新增或删除。
"""

from loguru import logger

from src.modules.catalog.domain.entities import CatalogItemRef, ContentDomain, ItemKey
from src.modules.catalog.domain.repository import CatalogRepository
from src.modules.sync.domain.entities import CatalogDiff

type Snapshot = dict[ItemKey, CatalogItemRef]


class DiffEngine:
    """快照与差异计算。

    快照直接读取当前表内容，而非持久化的历史快照；若同一订阅在运行期间
    被其他进程写入，差异可能不精确（由订阅级同步锁避免）。
    """

    def __init__(self, catalog_repository: CatalogRepository):
        self.catalog_repository = catalog_repository

    async def snapshot(self, subscription_id: int, domain: ContentDomain) -> Snapshot:
        return await self.catalog_repository.list_item_refs(subscription_id, domain)

    async def snapshot_before(
        self, subscription_id: int, domain: ContentDomain
    ) -> Snapshot | None:
        """写入前快照。读取失败时返回 None，此时 compute 视为首次同步。"""
        try:
            return await self.snapshot(subscription_id, domain)
        except Exception as e:
            logger.warning(
                f"Could not read {domain} snapshot for subscription "
                f"{subscription_id}, treating as first sync: {e}"
            )
            return None

    @staticmethod
    def compute(before: Snapshot | None, after: Snapshot) -> CatalogDiff:
        """added = after - before，removed = before - after。"""
        if before is None:
            return CatalogDiff(added=list(after.values()), removed=[])

        added = [ref for key, ref in after.items() if key not in before]
        removed = [ref for key, ref in before.items() if key not in after]
        return CatalogDiff(added=added, removed=removed)
