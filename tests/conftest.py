"""
pytest 配置和共享 fixtures。

测试分层：
- unit/: 单元测试（不依赖外部服务，Provider 与存储均为内存实现）

使用方法：
    # 运行所有测试
    uv run pytest

    # 运行带覆盖率
    uv run pytest --cov=src --cov-report=html
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any

import pytest

from src.core.config import Settings
from src.modules.catalog.domain.entities import (
    CatalogItem,
    CatalogItemRef,
    Category,
    CategoryKey,
    ContentDomain,
    ItemKey,
)
from src.modules.catalog.domain.repository import CatalogRepository
from src.modules.subscriptions.domain.entities import Subscription
from src.modules.sync.domain.provider import ProviderCredentials, ProviderRecord


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ============================================
# 配置 Fixtures
# ============================================


@pytest.fixture
def test_settings() -> Settings:
    """测试环境配置。"""
    return Settings(
        ENVIRONMENT="local",
        POSTGRES_SERVER="localhost",
        POSTGRES_PORT=5432,
        POSTGRES_USER="postgres",
        POSTGRES_PASSWORD="postgres",
        POSTGRES_DB="catalogsync_test",
        REDIS_URL="redis://localhost:6379/1",  # 使用 DB 1 隔离测试
        CRON_SECRET="test-cron-secret",
    )


# ============================================
# 内存实现
# ============================================


class InMemoryCatalogRepository(CatalogRepository):
    """内存目录存储。

    行为与数据库实现一致：自然键冲突忽略；条目引用不存在的分类时整批失败（外键约束）。
    failing_item_ids 中的条目写入时总是失败，用于模拟单行约束错误。
    """

    def __init__(self) -> None:
        self.categories: dict[CategoryKey, Category] = {}
        self.items: dict[ContentDomain, dict[ItemKey, CatalogItem]] = {
            domain: {} for domain in ContentDomain
        }
        self.failing_item_ids: set[str] = set()
        self.fail_snapshots = False

    async def insert_categories(self, rows: Sequence[Category]) -> int:
        inserted = 0
        for row in rows:
            if row.natural_key not in self.categories:
                self.categories[row.natural_key] = row
                inserted += 1
        return inserted

    async def insert_items(
        self, domain: ContentDomain, rows: Sequence[CatalogItem]
    ) -> int:
        for row in rows:
            if row.provider_item_id in self.failing_item_ids:
                raise ValueError(f"constraint violation for {row.provider_item_id}")
            if (row.provider_category_id, row.subscription_id) not in self.categories:
                raise ValueError(f"unknown category {row.provider_category_id}")

        table = self.items[domain]
        inserted = 0
        for row in rows:
            if row.natural_key not in table:
                table[row.natural_key] = row
                inserted += 1
        return inserted

    async def list_category_ids(self, subscription_id: int) -> set[str]:
        return {
            category_id
            for category_id, owner in self.categories
            if owner == subscription_id
        }

    async def list_item_refs(
        self, subscription_id: int, domain: ContentDomain
    ) -> dict[ItemKey, CatalogItemRef]:
        if self.fail_snapshots:
            raise ConnectionError("snapshot unavailable")
        return {
            key: CatalogItemRef(
                item.provider_item_id, item.provider_category_id, item.name
            )
            for key, item in self.items[domain].items()
            if item.subscription_id == subscription_id
        }

    async def delete_items(
        self, domain: ContentDomain, keys: Iterable[ItemKey]
    ) -> int:
        table = self.items[domain]
        removed = 0
        for key in keys:
            if table.pop(key, None) is not None:
                removed += 1
        return removed


class FakeProvider:
    """可编排的 Provider。

    errors[(method, domain)] 中的异常按顺序依次抛出，耗尽后返回正常数据。
    """

    def __init__(self, supports_bulk_items: bool = True) -> None:
        self.supports_bulk_items = supports_bulk_items
        self.categories: dict[ContentDomain, list[ProviderRecord]] = {
            domain: [] for domain in ContentDomain
        }
        self.items: dict[ContentDomain, list[ProviderRecord]] = {
            domain: [] for domain in ContentDomain
        }
        self.errors: dict[tuple[str, ContentDomain], list[Exception]] = {}
        self.calls: list[tuple[str, ContentDomain, str | None]] = []

    def _raise_pending(self, method: str, domain: ContentDomain) -> None:
        pending = self.errors.get((method, domain))
        if pending:
            raise pending.pop(0)

    async def fetch_categories(
        self,
        credentials: ProviderCredentials,
        domain: ContentDomain,
        timeout: float | None = None,
    ) -> list[ProviderRecord]:
        self.calls.append(("categories", domain, None))
        self._raise_pending("categories", domain)
        return list(self.categories[domain])

    async def fetch_items(
        self,
        credentials: ProviderCredentials,
        domain: ContentDomain,
        category_id: str | None = None,
        timeout: float | None = None,
    ) -> list[ProviderRecord]:
        self.calls.append(("items", domain, category_id))
        self._raise_pending("items", domain)
        records = self.items[domain]
        if category_id is not None:
            records = [r for r in records if str(r.get("category_id")) == category_id]
        return list(records)


# ============================================
# 领域对象 Fixtures
# ============================================


@pytest.fixture
def make_subscription() -> Callable[..., Subscription]:
    """订阅工厂。"""

    def factory(subscription_id: int = 1, **overrides: Any) -> Subscription:
        data: dict[str, Any] = {
            "id": subscription_id,
            "owner_id": "user-1",
            "base_url": "http://provider.test/",
            "username": "alice",
            "password": "secret",
        }
        data.update(overrides)
        return Subscription(**data)

    return factory


@pytest.fixture
def subscription(make_subscription) -> Subscription:
    return make_subscription()


@pytest.fixture
def catalog_repository() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository()


@pytest.fixture
def empty_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provider() -> FakeProvider:
    """预置一份小目录：每个内容域两个分类、若干条目。"""
    fake = FakeProvider()
    fake.categories[ContentDomain.CHANNEL] = [
        {"category_id": "10", "category_name": "News"},
        {"category_id": "11", "category_name": "Sports"},
    ]
    fake.items[ContentDomain.CHANNEL] = [
        {"stream_id": 1, "name": "CNN", "category_id": "10"},
        {"stream_id": 2, "name": "BBC", "category_id": "10"},
        {"stream_id": 3, "name": "ESPN", "category_id": "11"},
    ]
    fake.categories[ContentDomain.MOVIE] = [
        {"category_id": "20", "category_name": "Action"},
        {"category_id": "21", "category_name": "Drama"},
    ]
    fake.items[ContentDomain.MOVIE] = [
        {"stream_id": 100, "name": "Heat", "category_id": "20"},
        {"stream_id": 101, "name": "Up", "category_id": "21"},
    ]
    fake.categories[ContentDomain.SERIES] = [
        {"category_id": "30", "category_name": "Crime"},
        {"category_id": "31", "category_name": "Comedy"},
    ]
    fake.items[ContentDomain.SERIES] = [
        {"series_id": 500, "name": "The Wire", "category_id": "30"},
        {"series_id": 501, "name": "Seinfeld", "category_id": "31"},
    ]
    return fake
