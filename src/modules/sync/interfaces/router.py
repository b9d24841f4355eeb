"""Sync API routes."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from loguru import logger

from src.core.application.security import require_cron_secret
from src.core.interfaces.http.response import ApiResponse
from src.modules.sync.application.dependencies import get_sync_runner
from src.modules.sync.application.runner import SubscriptionSyncRunner
from src.modules.sync.interfaces.schemas import CronSyncResponse, SyncOutcomeSchema

router = APIRouter(prefix="/sync", tags=["sync"])


@router.api_route(
    "/cron",
    methods=["GET", "POST"],
    response_model=CronSyncResponse,
    summary="定时同步全部订阅",
    description="供外部 cron 调用，需携带 `Authorization: Bearer <CRON_SECRET>`。",
    dependencies=[Depends(require_cron_secret)],
)
async def run_scheduled_sync(
    runner: SubscriptionSyncRunner = Depends(get_sync_runner),
):
    try:
        outcomes = await runner.run_all()
    except Exception as e:
        logger.exception(f"Scheduled catalog sync failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(e)},
        )

    return CronSyncResponse(
        results=[SyncOutcomeSchema.from_outcome(outcome) for outcome in outcomes]
    )


@router.post(
    "/subscriptions/{subscription_id}",
    response_model=ApiResponse[SyncOutcomeSchema],
    summary="手动同步单个订阅",
    description="立即同步指定订阅；该订阅正在同步时返回 409。",
    dependencies=[Depends(require_cron_secret)],
)
async def sync_subscription(
    subscription_id: int,
    runner: SubscriptionSyncRunner = Depends(get_sync_runner),
):
    outcome = await runner.run_one(subscription_id)
    return ApiResponse.success(
        data=SyncOutcomeSchema.from_outcome(outcome),
        message="Catalog sync completed" if outcome.success else "Catalog sync failed",
    )
