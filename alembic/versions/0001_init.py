"""init catalog tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

# Enums
content_domain_enum = sa.Enum("channel", "movie", "series", name="contentdomain")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _item_keys(table: str) -> list:
    """条目表公共列与约束。"""
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column(
            "subscription_id",
            sa.Integer(),
            sa.ForeignKey("subscriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider_category_id", sa.String(), nullable=False),
        sa.Column("provider_item_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.UniqueConstraint(
            "provider_item_id",
            "provider_category_id",
            "subscription_id",
            name=f"uq_{table}_item_category_subscription",
        ),
        sa.ForeignKeyConstraint(
            ["provider_category_id", "subscription_id"],
            ["categories.provider_category_id", "categories.subscription_id"],
            ondelete="CASCADE",
            name=f"fk_{table}_category",
        ),
    ]


def upgrade() -> None:
    # Subscriptions table
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("base_url", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("exp_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_trial", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_subscriptions_owner_id", "subscriptions", ["owner_id"])

    # Categories table
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        *_timestamps(),
        sa.Column(
            "subscription_id",
            sa.Integer(),
            sa.ForeignKey("subscriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider_category_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("domain", content_domain_enum, nullable=False),
        sa.UniqueConstraint(
            "provider_category_id",
            "subscription_id",
            name="uq_categories_provider_category_subscription",
        ),
    )
    op.create_index("ix_categories_subscription_id", "categories", ["subscription_id"])
    op.create_index("ix_categories_domain", "categories", ["domain"])

    # Channels table
    op.create_table(
        "channels",
        *_item_keys("channels"),
        sa.Column("stream_type", sa.String(), nullable=True),
        sa.Column("stream_icon", sa.Text(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_channels_subscription_id", "channels", ["subscription_id"])

    # Movies table
    op.create_table(
        "movies",
        *_item_keys("movies"),
        sa.Column("stream_type", sa.String(), nullable=True),
        sa.Column("stream_icon", sa.Text(), nullable=True),
        sa.Column("rating", sa.String(), nullable=True),
        sa.Column("added", sa.String(), nullable=True),
        sa.Column("container_extension", sa.String(), nullable=True),
        sa.Column("url", sa.Text(), nullable=True),
    )
    op.create_index("ix_movies_subscription_id", "movies", ["subscription_id"])

    # Series table
    op.create_table(
        "series",
        *_item_keys("series"),
        sa.Column("cover", sa.Text(), nullable=True),
        sa.Column("plot", sa.Text(), nullable=True),
        sa.Column("cast", sa.Text(), nullable=True),
        sa.Column("genre", sa.String(), nullable=True),
        sa.Column("director", sa.String(), nullable=True),
        sa.Column("release_date", sa.String(), nullable=True),
        sa.Column("last_modified", sa.String(), nullable=True),
        sa.Column("rating", sa.String(), nullable=True),
        sa.Column("backdrop_path", sa.Text(), nullable=True),
        sa.Column("youtube_trailer", sa.String(), nullable=True),
        sa.Column("episode_run_time", sa.String(), nullable=True),
    )
    op.create_index("ix_series_subscription_id", "series", ["subscription_id"])


def downgrade() -> None:
    op.drop_table("series")
    op.drop_table("movies")
    op.drop_table("channels")
    op.drop_table("categories")
    op.drop_table("subscriptions")

    # Drop enums
    content_domain_enum.drop(op.get_bind(), checkfirst=True)
