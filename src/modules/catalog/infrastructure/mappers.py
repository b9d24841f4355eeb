"""Catalog entity-model mappers."""

from datetime import UTC, datetime
from typing import Any

from src.core.infrastructure.database.mapper import BaseMapper
from src.modules.catalog.domain.entities import CatalogItem, Category, ContentDomain
from src.modules.catalog.infrastructure.models import (
    ITEM_MODELS,
    CategoryModel,
    ChannelModel,
    MovieModel,
    SeriesModel,
)

type ItemModel = ChannelModel | MovieModel | SeriesModel

# 非业务属性列
_GENERATED_COLUMNS = frozenset({"id", "created_at", "updated_at"})
_KEY_COLUMNS = frozenset(
    {"subscription_id", "provider_category_id", "provider_item_id", "name"}
)


class CategoryMapper(BaseMapper[Category, CategoryModel]):
    """Category entity-model mapper."""

    def to_domain(self, model: CategoryModel) -> Category:
        return Category(
            subscription_id=model.subscription_id,
            provider_category_id=model.provider_category_id,
            name=model.name,
            domain=model.domain,
        )

    def to_model(self, entity: Category) -> CategoryModel:
        return CategoryModel(
            subscription_id=entity.subscription_id,
            provider_category_id=entity.provider_category_id,
            name=entity.name,
            domain=entity.domain,
        )

    def to_values(self, entity: Category) -> dict[str, Any]:
        """转换为批量 INSERT 的列值字典。"""
        now = datetime.now(UTC)
        return {
            "created_at": now,
            "updated_at": now,
            "subscription_id": entity.subscription_id,
            "provider_category_id": entity.provider_category_id,
            "name": entity.name,
            "domain": entity.domain,
        }


class CatalogItemMapper(BaseMapper[CatalogItem, ItemModel]):
    """CatalogItem entity-model mapper，按内容域选择目标表。"""

    def __init__(self, domain: ContentDomain):
        self.domain = domain
        self.model_class = ITEM_MODELS[domain]
        self._attribute_columns = tuple(
            name
            for name in self.model_class.model_fields
            if name not in _GENERATED_COLUMNS and name not in _KEY_COLUMNS
        )
        self._defaults = {
            column: self.model_class.model_fields[column].default
            for column in self._attribute_columns
        }

    def to_domain(self, model: ItemModel) -> CatalogItem:
        return CatalogItem(
            subscription_id=model.subscription_id,
            provider_category_id=model.provider_category_id,
            provider_item_id=model.provider_item_id,
            name=model.name,
            domain=self.domain,
            attributes={
                column: getattr(model, column) for column in self._attribute_columns
            },
        )

    def to_model(self, entity: CatalogItem) -> ItemModel:
        return self.model_class(**self.to_values(entity))

    def to_values(self, entity: CatalogItem) -> dict[str, Any]:
        """转换为批量 INSERT 的列值字典。

        所有行都带齐全部列（缺失属性取列默认值），多行 VALUES 要求列集合一致；
        未知属性被忽略。
        """
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "created_at": now,
            "updated_at": now,
            "subscription_id": entity.subscription_id,
            "provider_category_id": entity.provider_category_id,
            "provider_item_id": entity.provider_item_id,
            "name": entity.name,
        }
        for column in self._attribute_columns:
            values[column] = entity.attributes.get(column, self._defaults[column])
        return values
