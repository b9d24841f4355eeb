#!/usr/bin/env python
"""手动执行目录同步。

不经过 HTTP / Celery，直接在当前进程里运行同步流程，便于排查单个订阅的问题。

用法:
    uv run python scripts/run_sync.py [--subscription-id 3] [--json]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path


def _ensure_project_root_on_path() -> None:
    """确保项目根目录在 Python 路径中，便于直接运行脚本。"""
    project_root = Path(__file__).parent.parent
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_path()


async def run_sync(subscription_id: int | None = None) -> list[dict]:
    """同步全部订阅，或只同步指定订阅。

    Returns:
        每个订阅的结果（与 HTTP 接口的 results 结构一致）
    """
    from loguru import logger

    from src.core.infrastructure.database.session import get_async_session
    from src.core.infrastructure.logging import setup_logging
    from src.core.infrastructure.redis.client import RedisClient
    from src.modules.subscriptions.infrastructure.mappers import SubscriptionMapper
    from src.modules.subscriptions.infrastructure.repositories import (
        PostgreSQLSubscriptionRepository,
    )
    from src.modules.sync.domain.entities import SyncProgress
    from src.modules.sync.infrastructure.dependencies import build_sync_runner
    from src.modules.sync.interfaces.schemas import SyncOutcomeSchema

    setup_logging()

    def log_progress(progress: SyncProgress) -> None:
        logger.info(
            f"  Progress: {progress.completed_stages}/{progress.total_stages} "
            f"({progress.current_stage})"
        )

    redis_client = RedisClient()
    try:
        subscription_repo = PostgreSQLSubscriptionRepository(
            get_async_session, SubscriptionMapper()
        )
        runner = build_sync_runner(subscription_repo, redis_client)

        if subscription_id is not None:
            outcomes = [await runner.run_one(subscription_id, log_progress)]
        else:
            outcomes = await runner.run_all()
    finally:
        await redis_client.close()

    for outcome in outcomes:
        if outcome.success and outcome.report:
            logger.info(
                f"Subscription {outcome.subscription_id}: "
                f"+{outcome.report.added_count} / -{outcome.report.removed_count} items"
            )
        else:
            logger.warning(
                f"Subscription {outcome.subscription_id} failed: {outcome.error}"
            )

    return [
        SyncOutcomeSchema.from_outcome(outcome).model_dump(mode="json")
        for outcome in outcomes
    ]


def main():
    parser = argparse.ArgumentParser(description="执行目录同步")
    parser.add_argument(
        "--subscription-id",
        type=int,
        default=None,
        help="指定订阅 ID（不指定则同步全部订阅）",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="以 JSON 输出结果",
    )

    args = parser.parse_args()
    results = asyncio.run(run_sync(args.subscription_id))

    if args.json:
        print(json.dumps(results, indent=2, ensure_ascii=False))

    sys.exit(0 if all(result["success"] for result in results) else 1)


if __name__ == "__main__":
    main()
