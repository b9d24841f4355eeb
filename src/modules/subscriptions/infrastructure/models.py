"""Subscription database models."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field

from src.core.infrastructure.database.base_model import BaseModel


class SubscriptionModel(BaseModel, table=True):
    """Subscription database model."""

    __tablename__ = "subscriptions"

    owner_id: str = Field(nullable=False, index=True)
    base_url: str = Field(nullable=False)
    username: str = Field(nullable=False)
    password: str = Field(nullable=False)
    status: str | None = Field(default=None, nullable=True)
    exp_date: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),
        nullable=True,
    )
    is_trial: bool = Field(default=False, nullable=False)
