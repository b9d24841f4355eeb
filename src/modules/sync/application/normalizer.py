"""Provider 记录规范化。

把 provider 原样返回的字典转为 Category / CatalogItem，并完成：
- 丢弃缺少 ID 或分类 ID 的记录
- 同一批内按自然键去重（保留首次出现）
- 为条目引用、但库中和本批都不存在的分类生成占位分类
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from src.modules.catalog.domain.entities import CatalogItem, Category, ContentDomain
from src.modules.sync.domain.provider import ProviderRecord

# 条目 ID 字段名
_ITEM_ID_FIELD: dict[ContentDomain, str] = {
    ContentDomain.CHANNEL: "stream_id",
    ContentDomain.MOVIE: "stream_id",
    ContentDomain.SERIES: "series_id",
}

# 目标列 -> provider 字段名（按顺序取第一个非空值）
_ATTRIBUTE_FIELDS: dict[ContentDomain, dict[str, tuple[str, ...]]] = {
    ContentDomain.CHANNEL: {
        "stream_type": ("stream_type",),
        "stream_icon": ("stream_icon",),
        "url": ("url",),
    },
    ContentDomain.MOVIE: {
        "stream_type": ("stream_type",),
        "stream_icon": ("stream_icon",),
        "rating": ("rating",),
        "added": ("added",),
        "container_extension": ("container_extension",),
        "url": ("url",),
    },
    ContentDomain.SERIES: {
        "cover": ("cover",),
        "plot": ("plot",),
        "cast": ("cast",),
        "genre": ("genre",),
        "director": ("director",),
        "release_date": ("releaseDate", "release_date"),
        "last_modified": ("last_modified",),
        "rating": ("rating",),
        "backdrop_path": ("backdrop_path",),
        "youtube_trailer": ("youtube_trailer",),
        "episode_run_time": ("episode_run_time",),
    },
}


@dataclass
class Normalized[T]:
    """规范化结果。"""

    rows: list[T] = field(default_factory=list)
    dropped_count: int = 0
    duplicate_count: int = 0


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        # backdrop_path 等字段可能是 URL 列表
        return _as_str(value[0]) if value else None
    text = str(value).strip()
    return text or None


def _pick(record: ProviderRecord, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = _as_str(record.get(name))
        if value is not None:
            return value
    return None


def normalize_categories(
    records: Iterable[ProviderRecord],
    subscription_id: int,
    domain: ContentDomain,
) -> Normalized[Category]:
    result: Normalized[Category] = Normalized()
    seen: set[tuple[str, int]] = set()

    for record in records:
        category_id = _as_str(record.get("category_id"))
        if category_id is None:
            result.dropped_count += 1
            continue

        category = Category(
            subscription_id=subscription_id,
            provider_category_id=category_id,
            name=_as_str(record.get("category_name")) or f"Category {category_id}",
            domain=domain,
        )
        if category.natural_key in seen:
            result.duplicate_count += 1
            continue
        seen.add(category.natural_key)
        result.rows.append(category)

    if result.dropped_count:
        logger.warning(
            f"Dropped {result.dropped_count} {domain} categories without category_id "
            f"for subscription {subscription_id}"
        )
    return result


def normalize_items(
    records: Iterable[ProviderRecord],
    subscription_id: int,
    domain: ContentDomain,
) -> Normalized[CatalogItem]:
    result: Normalized[CatalogItem] = Normalized()
    seen: set[tuple[str, str, int]] = set()
    id_field = _ITEM_ID_FIELD[domain]
    attribute_fields = _ATTRIBUTE_FIELDS[domain]

    for record in records:
        item_id = _as_str(record.get(id_field))
        category_id = _as_str(record.get("category_id"))
        if item_id is None or category_id is None:
            result.dropped_count += 1
            continue

        item = CatalogItem(
            subscription_id=subscription_id,
            provider_category_id=category_id,
            provider_item_id=item_id,
            name=_as_str(record.get("name")) or f"Unknown {domain}",
            domain=domain,
            attributes={
                column: _pick(record, names)
                for column, names in attribute_fields.items()
            },
        )
        if item.natural_key in seen:
            result.duplicate_count += 1
            continue
        seen.add(item.natural_key)
        result.rows.append(item)

    if result.dropped_count:
        logger.warning(
            f"Dropped {result.dropped_count} {domain} items without "
            f"{id_field}/category_id for subscription {subscription_id}"
        )
    return result


def build_missing_categories(
    items: Iterable[CatalogItem],
    known_category_ids: set[str],
    subscription_id: int,
    domain: ContentDomain,
) -> list[Category]:
    """为条目引用但尚不存在的分类 ID 生成占位分类（名称为 "Category <id>"）。"""
    missing: dict[str, Category] = {}
    for item in items:
        category_id = item.provider_category_id
        if category_id in known_category_ids or category_id in missing:
            continue
        missing[category_id] = Category.placeholder(subscription_id, category_id, domain)
    return list(missing.values())
