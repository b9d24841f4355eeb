"""Base SQLModel for all database models."""

from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return current UTC datetime with timezone info."""
    return datetime.now(UTC)


class BaseModel(SQLModel):
    """Base model with common fields.

    所有时间戳字段使用 UTC 时区。主键为数据库自增整数，
    目录行的身份由各表的自然键唯一约束决定，而不是主键。
    """

    model_config = {"arbitrary_types_allowed": True}

    id: int | None = Field(default=None, primary_key=True)

    created_at: datetime = Field(
        default_factory=_utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )

    updated_at: datetime = Field(
        default_factory=_utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
