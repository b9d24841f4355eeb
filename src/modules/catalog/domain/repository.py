"""Catalog repository interface."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from src.modules.catalog.domain.entities import (
    CatalogItem,
    CatalogItemRef,
    Category,
    ContentDomain,
    ItemKey,
)


class CatalogRepository(ABC):
    """Catalog store interface.

    写入方法均为"插入并忽略自然键冲突"，返回实际新建的行数；
    每次调用是一个独立事务，可被多个写入 worker 并发调用。
    """

    @abstractmethod
    async def insert_categories(self, rows: Sequence[Category]) -> int:
        """Insert categories, skipping existing natural keys."""
        pass

    @abstractmethod
    async def insert_items(
        self, domain: ContentDomain, rows: Sequence[CatalogItem]
    ) -> int:
        """Insert items of one domain, skipping existing natural keys."""
        pass

    @abstractmethod
    async def list_category_ids(self, subscription_id: int) -> set[str]:
        """Provider category ids already stored for a subscription (any domain)."""
        pass

    @abstractmethod
    async def list_item_refs(
        self, subscription_id: int, domain: ContentDomain
    ) -> dict[ItemKey, CatalogItemRef]:
        """Current item set of ``(subscription, domain)`` keyed by natural key."""
        pass

    @abstractmethod
    async def delete_items(
        self, domain: ContentDomain, keys: Iterable[ItemKey]
    ) -> int:
        """Delete items by natural key, returning the number removed."""
        pass
