"""Subscription repository interface."""

from src.core.domain.repository import ReadOnlyRepository
from src.modules.subscriptions.domain.entities import Subscription


class SubscriptionRepository(ReadOnlyRepository[Subscription]):
    """Subscription repository interface."""
