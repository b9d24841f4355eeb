"""Subscription module dependencies."""

from fastapi import Depends

from src.core.infrastructure.database.session import get_async_session
from src.modules.subscriptions.infrastructure.mappers import SubscriptionMapper
from src.modules.subscriptions.infrastructure.repositories import (
    PostgreSQLSubscriptionRepository,
)


def get_subscription_mapper() -> SubscriptionMapper:
    return SubscriptionMapper()


async def get_subscription_repository(
    mapper: SubscriptionMapper = Depends(get_subscription_mapper),
) -> PostgreSQLSubscriptionRepository:
    return PostgreSQLSubscriptionRepository(get_async_session, mapper)
