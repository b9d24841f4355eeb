"""Celery 队列定义。

- q_sync: 目录同步任务（定时全量 / 单订阅手动触发）
"""

from enum import StrEnum


class Queues(StrEnum):
    """Celery 队列枚举。"""

    SYNC = "q_sync"


# 队列路由配置
# 任务名称模式 -> 队列
TASK_ROUTES = {
    "src.modules.sync.tasks.*": {"queue": Queues.SYNC},
}
