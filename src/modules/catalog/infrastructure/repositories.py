"""Catalog repository implementations."""

from collections.abc import Iterable, Sequence
from itertools import batched
from typing import Any

from sqlalchemy import Table, delete, tuple_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.infrastructure.database.session import SessionFactory
from src.modules.catalog.domain.entities import (
    CatalogItem,
    CatalogItemRef,
    Category,
    ContentDomain,
    ItemKey,
)
from src.modules.catalog.domain.repository import CatalogRepository
from src.modules.catalog.infrastructure.mappers import CatalogItemMapper, CategoryMapper
from src.modules.catalog.infrastructure.models import CategoryModel

# PostgreSQL 单条语句绑定参数上限为 65535，留出余量
_MAX_BIND_PARAMS = 30000
_DELETE_BATCH_SIZE = 1000

_CATEGORY_KEY = ("provider_category_id", "subscription_id")
_ITEM_KEY = ("provider_item_id", "provider_category_id", "subscription_id")

# 支持 INSERT ... ON CONFLICT DO NOTHING 的方言
_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


class PostgreSQLCatalogRepository(CatalogRepository):
    """PostgreSQL catalog repository implementation.

    与其它模块的 repository 不同，这里持有的是 session 工厂而不是单个 session：
    批量写入的多个 worker 会并发调用 insert_*，每次调用独占一个连接并单独提交。
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        category_mapper: CategoryMapper | None = None,
    ):
        self.session_factory = session_factory
        self.category_mapper = category_mapper or CategoryMapper()
        self.item_mappers = {
            domain: CatalogItemMapper(domain) for domain in ContentDomain
        }

    async def insert_categories(self, rows: Sequence[Category]) -> int:
        values = [self.category_mapper.to_values(row) for row in rows]
        return await self._insert_ignore(
            CategoryModel.__table__, values, _CATEGORY_KEY
        )

    async def insert_items(
        self, domain: ContentDomain, rows: Sequence[CatalogItem]
    ) -> int:
        mapper = self.item_mappers[domain]
        values = [mapper.to_values(row) for row in rows]
        return await self._insert_ignore(mapper.model_class.__table__, values, _ITEM_KEY)

    async def list_category_ids(self, subscription_id: int) -> set[str]:
        statement = select(CategoryModel.provider_category_id).where(
            CategoryModel.subscription_id == subscription_id
        )
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return set(result.scalars().all())

    async def list_item_refs(
        self, subscription_id: int, domain: ContentDomain
    ) -> dict[ItemKey, CatalogItemRef]:
        model = self.item_mappers[domain].model_class
        statement = select(
            model.provider_item_id, model.provider_category_id, model.name
        ).where(model.subscription_id == subscription_id)

        async with self.session_factory() as session:
            result = await session.execute(statement)
            refs = [CatalogItemRef(*row) for row in result.all()]
        return {ref.natural_key(subscription_id): ref for ref in refs}

    async def delete_items(
        self, domain: ContentDomain, keys: Iterable[ItemKey]
    ) -> int:
        model = self.item_mappers[domain].model_class
        key_columns = tuple_(
            model.provider_item_id, model.provider_category_id, model.subscription_id
        )
        deleted = 0
        async with self.session_factory() as session:
            for batch in batched(keys, _DELETE_BATCH_SIZE):
                result = await session.execute(
                    delete(model).where(key_columns.in_(list(batch)))
                )
                deleted += result.rowcount or 0
            await session.commit()
        return deleted

    async def _insert_ignore(
        self,
        table: Table,
        values: list[dict[str, Any]],
        conflict_columns: tuple[str, ...],
    ) -> int:
        """在一个事务内写入全部行，自然键冲突的行被跳过。

        行数过多时拆成多条语句以满足绑定参数上限，但仍在同一事务中提交，
        任何一条失败都会回滚整批。
        """
        if not values:
            return 0

        rows_per_statement = max(1, _MAX_BIND_PARAMS // len(values[0]))
        inserted = 0

        async with self.session_factory() as session:
            insert_fn = _UPSERT_INSERTS.get(session.get_bind().dialect.name)
            for batch in batched(values, rows_per_statement):
                if insert_fn is not None:
                    stmt = insert_fn(table).values(list(batch))
                    stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
                    result = await session.execute(stmt)
                    inserted += result.rowcount or 0
                else:
                    inserted += await self._insert_missing(
                        session, table, list(batch), conflict_columns
                    )
            await session.commit()

        return inserted

    async def _insert_missing(
        self,
        session: AsyncSession,
        table: Table,
        values: list[dict[str, Any]],
        conflict_columns: tuple[str, ...],
    ) -> int:
        """不支持 ON CONFLICT 的方言：先查已存在的自然键再插入其余行。"""
        key_columns = tuple_(*(table.c[name] for name in conflict_columns))
        keys = [tuple(row[name] for name in conflict_columns) for row in values]
        result = await session.execute(
            select(*(table.c[name] for name in conflict_columns)).where(
                key_columns.in_(keys)
            )
        )
        existing = {tuple(row) for row in result.all()}

        pending: dict[tuple, dict[str, Any]] = {}
        for key, row in zip(keys, values, strict=True):
            if key not in existing:
                pending.setdefault(key, row)
        if pending:
            await session.execute(table.insert(), list(pending.values()))
        return len(pending)
