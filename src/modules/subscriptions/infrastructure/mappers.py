"""Subscription entity-model mappers."""

from src.core.infrastructure.database.mapper import BaseMapper
from src.modules.subscriptions.domain.entities import Subscription
from src.modules.subscriptions.infrastructure.models import SubscriptionModel


class SubscriptionMapper(BaseMapper[Subscription, SubscriptionModel]):
    """Subscription entity-model mapper."""

    def to_domain(self, model: SubscriptionModel) -> Subscription:
        return Subscription(
            id=model.id,
            owner_id=model.owner_id,
            base_url=model.base_url,
            username=model.username,
            password=model.password,
            status=model.status,
            exp_date=model.exp_date,
            is_trial=model.is_trial,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def to_model(self, entity: Subscription) -> SubscriptionModel:
        return SubscriptionModel(
            id=entity.id,
            owner_id=entity.owner_id,
            base_url=entity.base_url,
            username=entity.username,
            password=entity.password,
            status=entity.status,
            exp_date=entity.exp_date,
            is_trial=entity.is_trial,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
