"""Sync API schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.modules.catalog.domain.entities import CatalogItemRef, Category
from src.modules.sync.domain.entities import (
    StageResult,
    SubscriptionSyncOutcome,
    SyncReport,
)


class CatalogItemRefSchema(BaseModel):
    """新增 / 删除的条目。"""

    provider_item_id: str = Field(..., description="Provider 条目 ID")
    category_id: str = Field(..., description="Provider 分类 ID")
    name: str = Field(..., description="名称")

    @classmethod
    def from_ref(cls, ref: CatalogItemRef) -> "CatalogItemRefSchema":
        return cls(
            provider_item_id=ref.provider_item_id,
            category_id=ref.provider_category_id,
            name=ref.name,
        )


class CategorySchema(BaseModel):
    """新建的分类。"""

    category_id: str = Field(..., description="Provider 分类 ID")
    name: str = Field(..., description="分类名称")

    @classmethod
    def from_category(cls, category: Category) -> "CategorySchema":
        return cls(category_id=category.provider_category_id, name=category.name)


class StageResultSchema(BaseModel):
    """单阶段结果。"""

    stage: str
    status: str
    fetched: int
    dropped: int
    inserted: int
    failed: int
    first_error: str | None = None
    pruned: int
    placeholders: int
    duration_ms: int
    error: str | None = None

    @classmethod
    def from_result(cls, result: StageResult) -> "StageResultSchema":
        return cls(**result.to_dict())


class SyncReportSchema(BaseModel):
    """同步报告。"""

    subscription_id: int
    success: bool
    timestamp: datetime
    added_items: dict[str, list[CatalogItemRefSchema]]
    removed_items: dict[str, list[CatalogItemRefSchema]]
    categories: dict[str, list[CategorySchema]]
    stages: list[StageResultSchema]
    completed_stages: int = Field(..., description="已完成阶段数")
    progress: float = Field(..., description="completed_stages / 6")
    failed_count: int = Field(..., description="写入失败的行数")
    failed_stage: str | None = None
    error: str | None = None

    @classmethod
    def from_report(cls, report: SyncReport) -> "SyncReportSchema":
        return cls(
            subscription_id=report.subscription_id,
            success=report.success,
            timestamp=report.timestamp,
            added_items={
                domain.value: [CatalogItemRefSchema.from_ref(ref) for ref in refs]
                for domain, refs in report.added_items.items()
            },
            removed_items={
                domain.value: [CatalogItemRefSchema.from_ref(ref) for ref in refs]
                for domain, refs in report.removed_items.items()
            },
            categories={
                domain.value: [CategorySchema.from_category(c) for c in categories]
                for domain, categories in report.categories.items()
            },
            stages=[StageResultSchema.from_result(result) for result in report.stages],
            completed_stages=report.completed_stages,
            progress=report.progress.ratio,
            failed_count=report.failed_count,
            failed_stage=report.failed_stage.value if report.failed_stage else None,
            error=report.error,
        )


class SyncOutcomeSchema(BaseModel):
    """单个订阅的同步结果。"""

    subscription_id: int
    success: bool
    report: SyncReportSchema | None = None
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: SubscriptionSyncOutcome) -> "SyncOutcomeSchema":
        return cls(
            subscription_id=outcome.subscription_id,
            success=outcome.success,
            report=SyncReportSchema.from_report(outcome.report)
            if outcome.report
            else None,
            error=outcome.error,
        )


class CronSyncResponse(BaseModel):
    """定时同步响应。"""

    success: bool = True
    message: str = "Catalog sync completed"
    results: list[SyncOutcomeSchema] = Field(default_factory=list)
