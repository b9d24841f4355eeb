"""Subscription domain exceptions."""

from src.core.domain.exceptions import EntityNotFoundError


class SubscriptionNotFoundError(EntityNotFoundError):
    """Raised when a subscription id does not exist."""

    error_code = "SUBSCRIPTION_NOT_FOUND"

    def __init__(self, subscription_id: int):
        super().__init__("Subscription", str(subscription_id))
