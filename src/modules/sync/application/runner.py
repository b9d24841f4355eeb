"""Subscription Sync Runner - 定时同步入口。

依次（不并发）同步全部订阅：订阅可能指向同一个限流的 provider 主机，
并发只存在于单个订阅的批量写入内部。单个订阅的任何异常都被转换为结果条目，
不会中断后续订阅。
"""

from loguru import logger

from src.core.domain.exceptions import SyncAlreadyRunningError
from src.core.infrastructure.logging import BusinessEvents
from src.modules.subscriptions.domain.entities import Subscription
from src.modules.subscriptions.domain.exceptions import SubscriptionNotFoundError
from src.modules.subscriptions.domain.repository import SubscriptionRepository
from src.modules.sync.application.orchestrator import (
    ProgressCallback,
    StageOrchestrator,
)
from src.modules.sync.domain.entities import SubscriptionSyncOutcome
from src.modules.sync.domain.lock import SyncLock


class SubscriptionSyncRunner:
    """按顺序为每个订阅运行 StageOrchestrator。"""

    def __init__(
        self,
        subscription_repository: SubscriptionRepository,
        orchestrator: StageOrchestrator,
        lock: SyncLock | None = None,
    ):
        self.subscription_repository = subscription_repository
        self.orchestrator = orchestrator
        self.lock = lock

    async def run_all(self) -> list[SubscriptionSyncOutcome]:
        """同步全部订阅，返回每个订阅的结果条目（顺序与订阅 ID 一致）。"""
        subscriptions = await self.subscription_repository.list_all()
        logger.info(f"Running catalog sync for {len(subscriptions)} subscriptions")

        outcomes: list[SubscriptionSyncOutcome] = []
        for subscription in subscriptions:
            outcomes.append(await self._run_isolated(subscription))

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info(
            f"Catalog sync finished: {succeeded}/{len(outcomes)} subscriptions succeeded"
        )
        return outcomes

    async def run_one(
        self,
        subscription_id: int,
        on_progress: ProgressCallback | None = None,
    ) -> SubscriptionSyncOutcome:
        """同步单个订阅（手动更新）。

        Raises:
            SubscriptionNotFoundError: 订阅不存在
            SyncAlreadyRunningError: 该订阅正在被其他任务同步
        """
        subscription = await self.subscription_repository.get_by_id(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)

        try:
            return await self._sync(subscription, on_progress)
        except SyncAlreadyRunningError:
            raise
        except Exception as e:
            return self._failed(subscription_id, e)

    async def _run_isolated(self, subscription: Subscription) -> SubscriptionSyncOutcome:
        try:
            return await self._sync(subscription)
        except Exception as e:
            return self._failed(subscription.id, e)

    async def _sync(
        self,
        subscription: Subscription,
        on_progress: ProgressCallback | None = None,
    ) -> SubscriptionSyncOutcome:
        if self.lock is None:
            report = await self.orchestrator.run(subscription, on_progress)
            return SubscriptionSyncOutcome.from_report(report)

        async with self.lock.hold(subscription.id) as acquired:
            if not acquired:
                raise SyncAlreadyRunningError(subscription.id)
            report = await self.orchestrator.run(subscription, on_progress)
        return SubscriptionSyncOutcome.from_report(report)

    @staticmethod
    def _failed(subscription_id: int, error: Exception) -> SubscriptionSyncOutcome:
        logger.exception(f"Catalog sync failed for subscription {subscription_id}: {error}")
        BusinessEvents.subscription_sync_failed(
            subscription_id=subscription_id,
            error=str(error),
            error_type=type(error).__name__,
        )
        return SubscriptionSyncOutcome.failed(subscription_id, str(error))
