"""Sync domain entities."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from src.modules.catalog.domain.entities import CatalogItemRef, Category, ContentDomain


class SyncStage(StrEnum):
    """同步阶段，按固定顺序推进。"""

    CHANNEL_CATEGORIES = "channel_categories"
    CHANNELS = "channels"
    MOVIE_CATEGORIES = "movie_categories"
    MOVIES = "movies"
    SERIES_CATEGORIES = "series_categories"
    SERIES = "series"
    COMPLETED = "completed"
    FAILED = "failed"


class StageKind(StrEnum):
    CATEGORIES = "categories"
    ITEMS = "items"


@dataclass(frozen=True)
class StagePlan:
    """一个同步阶段：写入哪个内容域的分类或条目。"""

    stage: SyncStage
    domain: ContentDomain
    kind: StageKind


STAGE_PLAN: tuple[StagePlan, ...] = (
    StagePlan(SyncStage.CHANNEL_CATEGORIES, ContentDomain.CHANNEL, StageKind.CATEGORIES),
    StagePlan(SyncStage.CHANNELS, ContentDomain.CHANNEL, StageKind.ITEMS),
    StagePlan(SyncStage.MOVIE_CATEGORIES, ContentDomain.MOVIE, StageKind.CATEGORIES),
    StagePlan(SyncStage.MOVIES, ContentDomain.MOVIE, StageKind.ITEMS),
    StagePlan(SyncStage.SERIES_CATEGORIES, ContentDomain.SERIES, StageKind.CATEGORIES),
    StagePlan(SyncStage.SERIES, ContentDomain.SERIES, StageKind.ITEMS),
)

TOTAL_STAGES = len(STAGE_PLAN)


class StageStatus(StrEnum):
    SUCCESS = "success"
    PARTIAL = "partial"  # 有写入失败的行，但阶段仍然推进
    FAILED = "failed"


@dataclass
class BatchWriteResult:
    """批量写入结果。"""

    inserted_count: int = 0
    failed_count: int = 0
    first_error: str | None = None
    conflict_count: int = 0
    chunk_count: int = 0

    @property
    def has_failures(self) -> bool:
        return self.failed_count > 0

    def record_failure(self, rows: int, error: BaseException | str) -> None:
        self.failed_count += rows
        if self.first_error is None:
            self.first_error = str(error)


@dataclass
class CatalogDiff:
    """两次快照之间按自然键计算出的差异。"""

    added: list[CatalogItemRef] = field(default_factory=list)
    removed: list[CatalogItemRef] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


@dataclass
class StageResult:
    """单个阶段的执行结果。"""

    stage: SyncStage
    status: StageStatus
    fetched_count: int = 0
    dropped_count: int = 0
    write: BatchWriteResult = field(default_factory=BatchWriteResult)
    pruned_count: int = 0
    placeholder_count: int = 0
    duration_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "fetched": self.fetched_count,
            "dropped": self.dropped_count,
            "inserted": self.write.inserted_count,
            "failed": self.write.failed_count,
            "first_error": self.write.first_error,
            "pruned": self.pruned_count,
            "placeholders": self.placeholder_count,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


@dataclass(frozen=True)
class SyncProgress:
    """同步进度快照（completed_stages / 6）。"""

    completed_stages: int
    current_stage: SyncStage
    total_stages: int = TOTAL_STAGES

    @property
    def ratio(self) -> float:
        return self.completed_stages / self.total_stages


def _empty_by_domain() -> dict[ContentDomain, list]:
    return {domain: [] for domain in ContentDomain}


@dataclass
class SyncReport:
    """一次订阅同步的报告。不持久化，由调用方直接消费。"""

    subscription_id: int
    success: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    added_items: dict[ContentDomain, list[CatalogItemRef]] = field(
        default_factory=_empty_by_domain
    )
    removed_items: dict[ContentDomain, list[CatalogItemRef]] = field(
        default_factory=_empty_by_domain
    )
    categories: dict[ContentDomain, list[Category]] = field(
        default_factory=_empty_by_domain
    )
    stages: list[StageResult] = field(default_factory=list)
    state: SyncStage = SyncStage.CHANNEL_CATEGORIES
    failed_stage: SyncStage | None = None
    error: str | None = None

    @property
    def completed_stages(self) -> int:
        return sum(1 for result in self.stages if result.status != StageStatus.FAILED)

    @property
    def progress(self) -> SyncProgress:
        return SyncProgress(
            completed_stages=self.completed_stages, current_stage=self.state
        )

    @property
    def failed_count(self) -> int:
        return sum(result.write.failed_count for result in self.stages)

    @property
    def added_count(self) -> int:
        return sum(len(items) for items in self.added_items.values())

    @property
    def removed_count(self) -> int:
        return sum(len(items) for items in self.removed_items.values())

    def mark_failed(self, stage: SyncStage, error: str) -> None:
        self.success = False
        self.state = SyncStage.FAILED
        self.failed_stage = stage
        self.error = error

    def mark_completed(self) -> None:
        self.success = True
        self.state = SyncStage.COMPLETED


@dataclass
class SubscriptionSyncOutcome:
    """Runner 中单个订阅的结果条目：成功时带报告，失败时带错误。"""

    subscription_id: int
    success: bool
    report: SyncReport | None = None
    error: str | None = None

    @classmethod
    def from_report(cls, report: SyncReport) -> "SubscriptionSyncOutcome":
        return cls(
            subscription_id=report.subscription_id,
            success=report.success,
            report=report,
            error=report.error,
        )

    @classmethod
    def failed(cls, subscription_id: int, error: str) -> "SubscriptionSyncOutcome":
        return cls(subscription_id=subscription_id, success=False, error=error)
