"""Subscription repository implementations."""

from sqlmodel import select

from src.core.infrastructure.database.session import SessionFactory
from src.modules.subscriptions.domain.entities import Subscription
from src.modules.subscriptions.domain.repository import SubscriptionRepository
from src.modules.subscriptions.infrastructure.mappers import SubscriptionMapper
from src.modules.subscriptions.infrastructure.models import SubscriptionModel


class PostgreSQLSubscriptionRepository(SubscriptionRepository):
    """PostgreSQL subscription repository implementation.

    每次读取打开并立即释放一个 session：全量同步可能持续数小时，
    不能让读取订阅的连接在整个同步期间停留在事务中。
    """

    def __init__(self, session_factory: SessionFactory, mapper: SubscriptionMapper):
        self.session_factory = session_factory
        self.mapper = mapper

    async def get_by_id(self, subscription_id: int) -> Subscription | None:
        async with self.session_factory() as session:
            model = await session.get(SubscriptionModel, subscription_id)
            return self.mapper.to_domain(model) if model else None

    async def list_all(self) -> list[Subscription]:
        statement = select(SubscriptionModel).order_by(SubscriptionModel.id)
        async with self.session_factory() as session:
            result = await session.execute(statement)
            return self.mapper.to_domain_list(list(result.scalars().all()))
