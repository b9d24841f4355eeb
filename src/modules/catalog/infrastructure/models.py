"""Catalog database models."""

from sqlalchemy import Enum, ForeignKeyConstraint, Text, UniqueConstraint
from sqlmodel import Field

from src.core.infrastructure.database.base_model import BaseModel
from src.modules.catalog.domain.entities import ContentDomain


class CategoryModel(BaseModel, table=True):
    """Category database model."""

    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint(
            "provider_category_id",
            "subscription_id",
            name="uq_categories_provider_category_subscription",
        ),
    )

    subscription_id: int = Field(
        foreign_key="subscriptions.id",
        ondelete="CASCADE",
        nullable=False,
        index=True,
    )
    provider_category_id: str = Field(nullable=False)
    name: str = Field(nullable=False)
    domain: ContentDomain = Field(
        sa_type=Enum(
            ContentDomain,
            name="contentdomain",
            values_callable=lambda e: [i.value for i in e],
            create_constraint=False,
        ),
        nullable=False,
        index=True,
    )


def _item_table_args(table: str) -> tuple:
    """条目表公共约束：自然键唯一 + 分类复合外键级联删除。"""
    return (
        UniqueConstraint(
            "provider_item_id",
            "provider_category_id",
            "subscription_id",
            name=f"uq_{table}_item_category_subscription",
        ),
        ForeignKeyConstraint(
            ["provider_category_id", "subscription_id"],
            ["categories.provider_category_id", "categories.subscription_id"],
            ondelete="CASCADE",
            name=f"fk_{table}_category",
        ),
    )


class ChannelModel(BaseModel, table=True):
    """Live channel database model."""

    __tablename__ = "channels"
    __table_args__ = _item_table_args("channels")

    subscription_id: int = Field(
        foreign_key="subscriptions.id",
        ondelete="CASCADE",
        nullable=False,
        index=True,
    )
    provider_category_id: str = Field(nullable=False)
    provider_item_id: str = Field(nullable=False)
    name: str = Field(nullable=False)
    stream_type: str | None = Field(default=None, nullable=True)
    stream_icon: str | None = Field(default=None, sa_type=Text, nullable=True)
    url: str | None = Field(default=None, sa_type=Text, nullable=True)
    is_favorite: bool = Field(default=False, nullable=False)


class MovieModel(BaseModel, table=True):
    """VOD movie database model."""

    __tablename__ = "movies"
    __table_args__ = _item_table_args("movies")

    subscription_id: int = Field(
        foreign_key="subscriptions.id",
        ondelete="CASCADE",
        nullable=False,
        index=True,
    )
    provider_category_id: str = Field(nullable=False)
    provider_item_id: str = Field(nullable=False)
    name: str = Field(nullable=False)
    stream_type: str | None = Field(default=None, nullable=True)
    stream_icon: str | None = Field(default=None, sa_type=Text, nullable=True)
    rating: str | None = Field(default=None, nullable=True)
    added: str | None = Field(default=None, nullable=True)
    container_extension: str | None = Field(default=None, nullable=True)
    url: str | None = Field(default=None, sa_type=Text, nullable=True)


class SeriesModel(BaseModel, table=True):
    """Series database model."""

    __tablename__ = "series"
    __table_args__ = _item_table_args("series")

    subscription_id: int = Field(
        foreign_key="subscriptions.id",
        ondelete="CASCADE",
        nullable=False,
        index=True,
    )
    provider_category_id: str = Field(nullable=False)
    provider_item_id: str = Field(nullable=False)
    name: str = Field(nullable=False)
    cover: str | None = Field(default=None, sa_type=Text, nullable=True)
    plot: str | None = Field(default=None, sa_type=Text, nullable=True)
    cast: str | None = Field(default=None, sa_type=Text, nullable=True)
    genre: str | None = Field(default=None, nullable=True)
    director: str | None = Field(default=None, nullable=True)
    release_date: str | None = Field(default=None, nullable=True)
    last_modified: str | None = Field(default=None, nullable=True)
    rating: str | None = Field(default=None, nullable=True)
    backdrop_path: str | None = Field(default=None, sa_type=Text, nullable=True)
    youtube_trailer: str | None = Field(default=None, nullable=True)
    episode_run_time: str | None = Field(default=None, nullable=True)


ITEM_MODELS: dict[ContentDomain, type[ChannelModel | MovieModel | SeriesModel]] = {
    ContentDomain.CHANNEL: ChannelModel,
    ContentDomain.MOVIE: MovieModel,
    ContentDomain.SERIES: SeriesModel,
}
