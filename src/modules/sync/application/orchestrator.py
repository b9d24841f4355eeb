"""Stage Orchestrator - 单个订阅的六阶段同步状态机。

CHANNEL_CATEGORIES → CHANNELS → MOVIE_CATEGORIES → MOVIES → SERIES_CATEGORIES → SERIES
→ COMPLETED，任一阶段遇到永久性 Provider 错误即停在 FAILED(stage)。

- 下一阶段只在上一阶段的批量写入返回后开始
- 写入有失败行的阶段仍然推进，失败计入报告
- 瞬时 Provider 错误有限次重试，耗尽后按永久错误处理
"""

import time
from collections.abc import Awaitable, Callable
from functools import partial

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import settings
from src.core.infrastructure.logging import BusinessEvents
from src.modules.catalog.domain.entities import ContentDomain
from src.modules.catalog.domain.repository import CatalogRepository
from src.modules.subscriptions.domain.entities import Subscription
from src.modules.sync.application.batch_reconciler import BatchReconciler
from src.modules.sync.application.diff_engine import DiffEngine
from src.modules.sync.application.normalizer import (
    build_missing_categories,
    normalize_categories,
    normalize_items,
)
from src.modules.sync.domain.entities import (
    STAGE_PLAN,
    StageKind,
    StagePlan,
    StageResult,
    StageStatus,
    SyncProgress,
    SyncReport,
)
from src.modules.sync.domain.provider import (
    ProviderClient,
    ProviderCredentials,
    ProviderError,
    ProviderRecord,
)

type ProgressCallback = Callable[[SyncProgress], None]


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.is_transient


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class StageOrchestrator:
    """驱动一个订阅走完全部同步阶段。

    每次 run 之间不保留任何状态，同一实例可被 Runner 依次复用。
    """

    def __init__(
        self,
        provider: ProviderClient,
        catalog_repository: CatalogRepository,
        reconciler: BatchReconciler | None = None,
        diff_engine: DiffEngine | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
        retry_backoff_max: float | None = None,
        provider_timeout: float | None = None,
    ):
        self.provider = provider
        self.catalog_repository = catalog_repository
        self.reconciler = reconciler or BatchReconciler()
        self.diff_engine = diff_engine or DiffEngine(catalog_repository)
        self.max_retries = (
            settings.PROVIDER_MAX_RETRIES if max_retries is None else max_retries
        )
        self.retry_backoff = (
            settings.PROVIDER_RETRY_BACKOFF_SEC if retry_backoff is None else retry_backoff
        )
        self.retry_backoff_max = (
            settings.PROVIDER_RETRY_BACKOFF_MAX_SEC
            if retry_backoff_max is None
            else retry_backoff_max
        )
        self.provider_timeout = (
            settings.PROVIDER_TIMEOUT_SEC if provider_timeout is None else provider_timeout
        )

    async def run(
        self,
        subscription: Subscription,
        on_progress: ProgressCallback | None = None,
    ) -> SyncReport:
        """执行完整同步并返回报告。

        永久性 Provider 错误不会抛出，而是体现在报告的 success / failed_stage 中；
        其它异常（存储不可用等）向上抛给 Runner。
        """
        if subscription.id is None:
            raise ValueError("Subscription must be persisted before it can be synced")

        started = time.monotonic()
        report = SyncReport(subscription_id=subscription.id)
        credentials = ProviderCredentials.from_subscription(subscription)
        # 本次运行中分类阶段取到的分类 ID，供按分类拉取条目时使用
        fetched_category_ids: dict[ContentDomain, list[str]] = {}

        logger.info(f"Starting catalog sync for subscription {subscription.id}")

        for plan in STAGE_PLAN:
            report.state = plan.stage
            stage_started = time.monotonic()
            try:
                if plan.kind == StageKind.CATEGORIES:
                    result = await self._run_category_stage(
                        plan, credentials, report, fetched_category_ids
                    )
                else:
                    result = await self._run_item_stage(
                        plan, credentials, report, fetched_category_ids
                    )
            except ProviderError as e:
                report.stages.append(
                    StageResult(
                        stage=plan.stage,
                        status=StageStatus.FAILED,
                        duration_ms=_elapsed_ms(stage_started),
                        error=e.message,
                    )
                )
                report.mark_failed(plan.stage, e.message)
                logger.warning(
                    f"Sync of subscription {subscription.id} halted at "
                    f"{plan.stage}: {e.message}"
                )
                BusinessEvents.sync_stage_failed(
                    subscription_id=subscription.id,
                    stage=plan.stage.value,
                    error=e.message,
                    status_code=e.status_code,
                )
                self._notify(on_progress, report)
                break

            result.duration_ms = _elapsed_ms(stage_started)
            report.stages.append(result)
            BusinessEvents.sync_stage_completed(
                subscription_id=subscription.id,
                stage=plan.stage.value,
                fetched=result.fetched_count,
                inserted=result.write.inserted_count,
                failed=result.write.failed_count,
                pruned=result.pruned_count,
                duration_ms=result.duration_ms,
            )
            self._notify(on_progress, report)
        else:
            report.mark_completed()

        BusinessEvents.subscription_sync_completed(
            subscription_id=subscription.id,
            success=report.success,
            added=report.added_count,
            removed=report.removed_count,
            latency_ms=_elapsed_ms(started),
            failed_rows=report.failed_count,
            failed_stage=report.failed_stage.value if report.failed_stage else None,
        )
        return report

    async def _run_category_stage(
        self,
        plan: StagePlan,
        credentials: ProviderCredentials,
        report: SyncReport,
        fetched_category_ids: dict[ContentDomain, list[str]],
    ) -> StageResult:
        subscription_id = report.subscription_id
        records = await self._call_provider(
            plan,
            partial(
                self.provider.fetch_categories,
                credentials,
                plan.domain,
                timeout=self.provider_timeout,
            ),
        )
        normalized = normalize_categories(records, subscription_id, plan.domain)
        fetched_category_ids[plan.domain] = [
            category.provider_category_id for category in normalized.rows
        ]

        known_ids = await self.catalog_repository.list_category_ids(subscription_id)
        write = await self.reconciler.reconcile(
            normalized.rows,
            self.catalog_repository.insert_categories,
            label=f"{plan.domain}_categories",
        )
        report.categories[plan.domain].extend(
            category
            for category in normalized.rows
            if category.provider_category_id not in known_ids
        )

        return StageResult(
            stage=plan.stage,
            status=StageStatus.PARTIAL if write.has_failures else StageStatus.SUCCESS,
            fetched_count=len(records),
            dropped_count=normalized.dropped_count,
            write=write,
        )

    async def _run_item_stage(
        self,
        plan: StagePlan,
        credentials: ProviderCredentials,
        report: SyncReport,
        fetched_category_ids: dict[ContentDomain, list[str]],
    ) -> StageResult:
        subscription_id = report.subscription_id
        records = await self._fetch_items(
            plan, credentials, fetched_category_ids.get(plan.domain, [])
        )
        normalized = normalize_items(records, subscription_id, plan.domain)

        # 条目引用了不存在的分类时先补占位分类，保证外键完整
        known_ids = await self.catalog_repository.list_category_ids(subscription_id)
        placeholders = build_missing_categories(
            normalized.rows, known_ids, subscription_id, plan.domain
        )
        if placeholders:
            placeholder_write = await self.reconciler.reconcile(
                placeholders,
                self.catalog_repository.insert_categories,
                label=f"{plan.domain}_categories",
            )
            report.categories[plan.domain].extend(placeholders)
            if placeholder_write.has_failures:
                logger.warning(
                    f"{placeholder_write.failed_count} placeholder {plan.domain} "
                    f"categories failed for subscription {subscription_id}: "
                    f"{placeholder_write.first_error}"
                )

        before = await self.diff_engine.snapshot_before(subscription_id, plan.domain)
        write = await self.reconciler.reconcile(
            normalized.rows,
            partial(self.catalog_repository.insert_items, plan.domain),
            label=str(plan.domain),
        )

        # 删除本次未从远端拉取到的条目
        current = await self.diff_engine.snapshot(subscription_id, plan.domain)
        fetched_keys = {item.natural_key for item in normalized.rows}
        stale_keys = [key for key in current if key not in fetched_keys]
        pruned = 0
        if stale_keys:
            pruned = await self.catalog_repository.delete_items(plan.domain, stale_keys)
            logger.info(
                f"Pruned {pruned} stale {plan.domain} rows for subscription "
                f"{subscription_id}"
            )
            after = await self.diff_engine.snapshot(subscription_id, plan.domain)
        else:
            after = current

        diff = self.diff_engine.compute(before, after)
        report.added_items[plan.domain].extend(diff.added)
        report.removed_items[plan.domain].extend(diff.removed)

        return StageResult(
            stage=plan.stage,
            status=StageStatus.PARTIAL if write.has_failures else StageStatus.SUCCESS,
            fetched_count=len(records),
            dropped_count=normalized.dropped_count,
            write=write,
            pruned_count=pruned,
            placeholder_count=len(placeholders),
        )

    async def _fetch_items(
        self,
        plan: StagePlan,
        credentials: ProviderCredentials,
        category_ids: list[str],
    ) -> list[ProviderRecord]:
        if self.provider.supports_bulk_items:
            return await self._call_provider(
                plan,
                partial(
                    self.provider.fetch_items,
                    credentials,
                    plan.domain,
                    timeout=self.provider_timeout,
                ),
            )

        records: list[ProviderRecord] = []
        for category_id in category_ids:
            records.extend(
                await self._call_provider(
                    plan,
                    partial(
                        self.provider.fetch_items,
                        credentials,
                        plan.domain,
                        category_id,
                        timeout=self.provider_timeout,
                    ),
                )
            )
        return records

    async def _call_provider(
        self,
        plan: StagePlan,
        call: Callable[[], Awaitable[list[ProviderRecord]]],
    ) -> list[ProviderRecord]:
        """调用 Provider，瞬时错误按退避重试，耗尽后升级为永久错误。"""

        def log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                f"Transient provider error at {plan.stage} "
                f"(attempt {retry_state.attempt_number}/{self.max_retries + 1}): {exc}"
            )

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                stop=stop_after_attempt(self.max_retries + 1),
                wait=wait_exponential(
                    multiplier=self.retry_backoff, max=self.retry_backoff_max
                ),
                before_sleep=log_retry,
                reraise=True,
            ):
                with attempt:
                    records = await call()
        except ProviderError as e:
            if e.is_transient:
                raise e.escalate() from e
            raise
        return records

    @staticmethod
    def _notify(on_progress: ProgressCallback | None, report: SyncReport) -> None:
        if on_progress is None:
            return
        try:
            on_progress(report.progress)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
