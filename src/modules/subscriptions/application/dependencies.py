"""Subscription module application dependencies."""

from typing import NoReturn

from src.modules.subscriptions.domain.repository import SubscriptionRepository


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_subscription_repository() -> SubscriptionRepository:
    _missing_dependency("SubscriptionRepository")
