"""目录同步 Celery 任务配置测试。"""

from src.core.config import settings
from src.core.infrastructure.celery.app import celery_app
from src.core.infrastructure.celery.queues import Queues
from src.modules.sync.tasks import sync_all_subscriptions, sync_subscription


class TestTaskTimeLimits:
    """任务超时配置测试。"""

    def test_full_sync_is_bounded_by_schedule_interval(self):
        """全量任务依次同步所有订阅，不能被单订阅锁 TTL 截断。"""
        assert sync_all_subscriptions.time_limit == settings.SYNC_SCHEDULE_INTERVAL_SEC
        assert (
            sync_all_subscriptions.soft_time_limit
            == settings.SYNC_SCHEDULE_INTERVAL_SEC - 60
        )
        assert sync_all_subscriptions.time_limit > celery_app.conf.task_time_limit

    def test_single_sync_uses_lock_ttl_limit(self):
        assert sync_subscription.time_limit is None
        assert celery_app.conf.task_time_limit == settings.SYNC_LOCK_TTL_SEC

    def test_tasks_use_sync_queue(self):
        assert sync_all_subscriptions.queue == Queues.SYNC
        assert sync_subscription.queue == Queues.SYNC
