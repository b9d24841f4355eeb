"""Celery 应用配置。

- 使用 JSON 序列化
- 同步任务使用独立队列
- 支持任务重试与退避
- 配置定时任务（Beat）
"""

from celery import Celery
from kombu import Exchange, Queue

from src.core.config import settings
from src.core.infrastructure.celery.queues import TASK_ROUTES, Queues

# 创建 Celery 应用
celery_app = Celery("catalogsync")

# 基础配置
celery_app.conf.update(
    # Broker & Backend
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    # 序列化配置
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.CELERY_ACCEPT_CONTENT,
    # 时区配置
    timezone=settings.TIMEZONE,
    enable_utc=True,
    # 任务配置
    task_track_started=True,
    # 单订阅任务的硬超时与同步锁 TTL 对齐；全量任务在任务上单独覆盖
    task_time_limit=settings.SYNC_LOCK_TTL_SEC,
    task_soft_time_limit=settings.SYNC_LOCK_TTL_SEC - 60,
    # 重试配置
    task_default_retry_delay=settings.CELERY_TASK_DEFAULT_RETRY_DELAY,
    task_max_retries=settings.CELERY_TASK_MAX_RETRIES,
    task_acks_late=True,  # 任务完成后才确认
    task_reject_on_worker_lost=True,  # Worker 丢失时拒绝任务
    # 结果配置
    result_expires=3600,  # 结果保留 1 小时
    # Worker 配置
    worker_prefetch_multiplier=1,  # 一次只取一个任务
    worker_concurrency=settings.WORKER_SYNC_CONCURRENCY,
)

# 队列配置
default_exchange = Exchange("default", type="direct")
celery_app.conf.task_queues = (
    Queue(Queues.SYNC, default_exchange, routing_key=Queues.SYNC),
)

# 任务路由
celery_app.conf.task_routes = TASK_ROUTES

# 默认队列
celery_app.conf.task_default_queue = Queues.SYNC

# 定时任务配置（Celery Beat）
celery_app.conf.beat_schedule = {
    # 全量同步：按间隔依次同步所有订阅
    "sync-all-subscriptions": {
        "task": "src.modules.sync.tasks.sync_all_subscriptions",
        "schedule": float(settings.SYNC_SCHEDULE_INTERVAL_SEC),
        "options": {"queue": Queues.SYNC},
    },
}

# 自动发现任务
celery_app.autodiscover_tasks(["src.modules.sync"], related_name="tasks")
