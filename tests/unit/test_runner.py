"""SubscriptionSyncRunner 单元测试。"""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

import pytest

from src.core.domain.exceptions import SyncAlreadyRunningError
from src.modules.subscriptions.domain.exceptions import SubscriptionNotFoundError
from src.modules.catalog.domain.entities import ContentDomain
from src.modules.sync.application.batch_reconciler import BatchReconciler
from src.modules.sync.application.orchestrator import StageOrchestrator
from src.modules.sync.application.runner import SubscriptionSyncRunner
from src.modules.sync.domain.entities import SyncReport, SyncStage
from src.modules.sync.domain.provider import ProviderError

pytestmark = pytest.mark.anyio


class _FakeSubscriptionRepository:
    def __init__(self, subscriptions):
        self.subscriptions = {s.id: s for s in subscriptions}

    async def get_by_id(self, entity_id):
        return self.subscriptions.get(entity_id)

    async def list_all(self):
        return [self.subscriptions[key] for key in sorted(self.subscriptions)]


class _FakeOrchestrator:
    """记录调用顺序与并发度；failing 中的订阅抛异常，permanent 中的订阅返回失败报告。"""

    def __init__(self, failing=(), permanent=(), lock=None):
        self.failing = set(failing)
        self.permanent = set(permanent)
        self.lock = lock
        self.calls: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.held_during_run: list[bool] = []

    async def run(self, subscription, on_progress=None):
        self.calls.append(subscription.id)
        if self.lock is not None:
            self.held_during_run.append(subscription.id in self.lock.held)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if subscription.id in self.failing:
                raise ConnectionError(f"database down for {subscription.id}")
            report = SyncReport(subscription_id=subscription.id)
            if subscription.id in self.permanent:
                report.mark_failed(SyncStage.CHANNELS, "bad credentials")
            else:
                report.mark_completed()
            return report
        finally:
            self.in_flight -= 1


class _FakeLock:
    def __init__(self, busy=()):
        self.busy = set(busy)
        self.held: set[int] = set()

    @asynccontextmanager
    async def hold(self, subscription_id):
        if subscription_id in self.busy:
            yield False
            return
        self.held.add(subscription_id)
        try:
            yield True
        finally:
            self.held.discard(subscription_id)


class TestRunAll:
    """定时同步测试。"""

    async def test_one_outcome_per_subscription(self, make_subscription):
        repo = _FakeSubscriptionRepository([make_subscription(i) for i in (1, 2, 3)])
        orchestrator = _FakeOrchestrator()
        runner = SubscriptionSyncRunner(repo, orchestrator)

        outcomes = await runner.run_all()

        assert [o.subscription_id for o in outcomes] == [1, 2, 3]
        assert all(o.success for o in outcomes)
        assert all(o.report is not None for o in outcomes)

    async def test_failures_are_isolated(self, make_subscription):
        """单个订阅抛异常不影响后续订阅。"""
        repo = _FakeSubscriptionRepository([make_subscription(i) for i in (1, 2, 3)])
        orchestrator = _FakeOrchestrator(failing={2})
        runner = SubscriptionSyncRunner(repo, orchestrator)

        outcomes = await runner.run_all()

        assert orchestrator.calls == [1, 2, 3]
        assert [o.success for o in outcomes] == [True, False, True]
        assert outcomes[1].report is None
        assert outcomes[1].error == "database down for 2"

    async def test_failed_report_becomes_failed_outcome(self, make_subscription):
        repo = _FakeSubscriptionRepository([make_subscription(1)])
        runner = SubscriptionSyncRunner(repo, _FakeOrchestrator(permanent={1}))

        outcomes = await runner.run_all()

        assert not outcomes[0].success
        assert outcomes[0].error == "bad credentials"
        assert outcomes[0].report.failed_stage == SyncStage.CHANNELS

    async def test_subscriptions_run_sequentially(self, make_subscription):
        repo = _FakeSubscriptionRepository([make_subscription(i) for i in range(1, 6)])
        orchestrator = _FakeOrchestrator()
        runner = SubscriptionSyncRunner(repo, orchestrator)

        await runner.run_all()

        assert orchestrator.max_in_flight == 1

    async def test_no_subscriptions(self):
        runner = SubscriptionSyncRunner(_FakeSubscriptionRepository([]), _FakeOrchestrator())

        assert await runner.run_all() == []

    async def test_listing_failure_propagates(self):
        repo = AsyncMock()
        repo.list_all.side_effect = ConnectionError("database down")
        runner = SubscriptionSyncRunner(repo, _FakeOrchestrator())

        with pytest.raises(ConnectionError):
            await runner.run_all()

    async def test_locked_subscription_is_skipped(self, make_subscription):
        repo = _FakeSubscriptionRepository([make_subscription(i) for i in (1, 2)])
        lock = _FakeLock(busy={1})
        orchestrator = _FakeOrchestrator(lock=lock)
        runner = SubscriptionSyncRunner(repo, orchestrator, lock)

        outcomes = await runner.run_all()

        assert orchestrator.calls == [2]
        assert not outcomes[0].success
        assert outcomes[0].error == "sync already in progress for subscription 1"
        assert outcomes[1].success


class TestRunOne:
    """手动同步测试。"""

    async def test_unknown_subscription(self):
        runner = SubscriptionSyncRunner(_FakeSubscriptionRepository([]), _FakeOrchestrator())

        with pytest.raises(SubscriptionNotFoundError):
            await runner.run_one(42)

    async def test_lock_is_held_during_run(self, make_subscription):
        lock = _FakeLock()
        orchestrator = _FakeOrchestrator(lock=lock)
        runner = SubscriptionSyncRunner(
            _FakeSubscriptionRepository([make_subscription(1)]), orchestrator, lock
        )

        outcome = await runner.run_one(1)

        assert outcome.success
        assert orchestrator.held_during_run == [True]
        assert lock.held == set()

    async def test_busy_lock_raises(self, make_subscription):
        lock = _FakeLock(busy={1})
        runner = SubscriptionSyncRunner(
            _FakeSubscriptionRepository([make_subscription(1)]),
            _FakeOrchestrator(),
            lock,
        )

        with pytest.raises(SyncAlreadyRunningError):
            await runner.run_one(1)

    async def test_unexpected_error_becomes_outcome(self, make_subscription):
        runner = SubscriptionSyncRunner(
            _FakeSubscriptionRepository([make_subscription(1)]),
            _FakeOrchestrator(failing={1}),
        )

        outcome = await runner.run_one(1)

        assert not outcome.success
        assert outcome.error == "database down for 1"


class TestPartialFailureIsolation:
    """真实 StageOrchestrator 下，一个订阅中途失败不影响其它订阅。"""

    async def test_failure_at_movies_does_not_affect_next_subscription(
        self, make_subscription, provider, catalog_repository
    ):
        original_fetch_items = provider.fetch_items

        async def fetch_items(credentials, domain, category_id=None, timeout=None):
            if credentials.username == "alice" and domain == ContentDomain.MOVIE:
                raise ProviderError.permanent("movies failed with HTTP 403", 403)
            return await original_fetch_items(credentials, domain, category_id, timeout)

        provider.fetch_items = fetch_items
        orchestrator = StageOrchestrator(
            provider=provider,
            catalog_repository=catalog_repository,
            reconciler=BatchReconciler(chunk_size=2, pool_size=2),
            max_retries=0,
            retry_backoff=0,
            retry_backoff_max=0,
        )
        repo = _FakeSubscriptionRepository(
            [make_subscription(1, username="alice"), make_subscription(2, username="bob")]
        )

        first, second = await SubscriptionSyncRunner(repo, orchestrator).run_all()

        assert not first.success
        assert first.report.state == SyncStage.FAILED
        assert first.report.failed_stage == SyncStage.MOVIES
        assert first.error == "movies failed with HTTP 403"

        assert second.success
        assert second.report.state == SyncStage.COMPLETED
        assert second.report.failed_stage is None
        assert second.report.completed_stages == 6
