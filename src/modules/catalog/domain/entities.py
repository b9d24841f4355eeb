"""Catalog domain entities.

目录数据分三个内容域（直播频道 / 点播电影 / 剧集），每个域都有分类与条目两层。
条目与分类都以自然键去重，而不是本地自增 ID：

- Category:    (provider_category_id, subscription_id)
- CatalogItem: (provider_item_id, provider_category_id, subscription_id)
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, NamedTuple

type CategoryKey = tuple[str, int]
type ItemKey = tuple[str, str, int]


class ContentDomain(StrEnum):
    """内容域枚举。"""

    CHANNEL = "channel"
    MOVIE = "movie"
    SERIES = "series"


@dataclass(frozen=True, slots=True)
class Category:
    """分类。同一 provider 分类 ID 只在订阅内唯一。"""

    subscription_id: int
    provider_category_id: str
    name: str
    domain: ContentDomain

    @property
    def natural_key(self) -> CategoryKey:
        return (self.provider_category_id, self.subscription_id)

    @classmethod
    def placeholder(
        cls,
        subscription_id: int,
        provider_category_id: str,
        domain: ContentDomain,
    ) -> "Category":
        """为 provider 未列出但被条目引用的分类 ID 创建占位分类。"""
        return cls(
            subscription_id=subscription_id,
            provider_category_id=provider_category_id,
            name=f"Category {provider_category_id}",
            domain=domain,
        )


@dataclass(frozen=True, slots=True, eq=False)
class CatalogItem:
    """目录条目（频道 / 电影 / 剧集）。

    attributes 存放各内容域特有的字段（icon、播放地址、评分等），
    由对应表的 mapper 按列名取用。
    """

    subscription_id: int
    provider_category_id: str
    provider_item_id: str
    name: str
    domain: ContentDomain
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def natural_key(self) -> ItemKey:
        return (self.provider_item_id, self.provider_category_id, self.subscription_id)


class CatalogItemRef(NamedTuple):
    """快照中的条目引用，仅用于差异报告。"""

    provider_item_id: str
    provider_category_id: str
    name: str

    def natural_key(self, subscription_id: int) -> ItemKey:
        return (self.provider_item_id, self.provider_category_id, subscription_id)
