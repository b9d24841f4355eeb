"""Sync API 路由测试。"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from src.core.config import settings
from src.core.domain.exceptions import SyncAlreadyRunningError
from src.modules.catalog.domain.entities import CatalogItemRef, ContentDomain
from src.modules.subscriptions.domain.exceptions import SubscriptionNotFoundError
from src.modules.sync.application.dependencies import get_sync_runner
from src.modules.sync.domain.entities import (
    StageResult,
    StageStatus,
    SubscriptionSyncOutcome,
    SyncReport,
    SyncStage,
)

pytestmark = pytest.mark.anyio

SECRET = "test-cron-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


def _completed_report(subscription_id: int) -> SyncReport:
    report = SyncReport(subscription_id=subscription_id)
    report.stages.append(
        StageResult(stage=SyncStage.CHANNEL_CATEGORIES, status=StageStatus.SUCCESS)
    )
    report.added_items[ContentDomain.CHANNEL].append(CatalogItemRef("1", "10", "CNN"))
    report.mark_completed()
    return report


class _FakeRunner:
    def __init__(self):
        self.run_all_error: Exception | None = None
        self.run_one_error: Exception | None = None
        self.outcomes: list[SubscriptionSyncOutcome] = [
            SubscriptionSyncOutcome.from_report(_completed_report(1)),
            SubscriptionSyncOutcome.failed(2, "Provider rejected the credentials"),
        ]

    async def run_all(self):
        if self.run_all_error:
            raise self.run_all_error
        return self.outcomes

    async def run_one(self, subscription_id, on_progress=None):
        if self.run_one_error:
            raise self.run_one_error
        return SubscriptionSyncOutcome.from_report(_completed_report(subscription_id))


@pytest.fixture
def fake_runner() -> _FakeRunner:
    return _FakeRunner()


@pytest.fixture
async def client(monkeypatch, fake_runner) -> AsyncGenerator[AsyncClient, None]:
    from main import app

    monkeypatch.setattr(settings, "CRON_SECRET", SECRET)
    monkeypatch.setitem(app.dependency_overrides, get_sync_runner, lambda: fake_runner)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as http_client:
        yield http_client


class TestCronEndpoint:
    """定时同步接口测试。"""

    async def test_missing_secret_is_rejected(self, client):
        response = await client.get("/api/v1/sync/cron")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_wrong_secret_is_rejected(self, client):
        response = await client.get(
            "/api/v1/sync/cron", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    @pytest.mark.parametrize("method", ["GET", "POST"])
    async def test_runs_all_subscriptions(self, client, method):
        response = await client.request(method, "/api/v1/sync/cron", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Catalog sync completed"
        assert [r["subscription_id"] for r in body["results"]] == [1, 2]

        first = body["results"][0]
        assert first["success"] is True
        assert first["report"]["added_items"]["channel"] == [
            {"provider_item_id": "1", "category_id": "10", "name": "CNN"}
        ]
        assert first["report"]["stages"][0]["stage"] == "channel_categories"

        second = body["results"][1]
        assert second["success"] is False
        assert second["report"] is None
        assert second["error"] == "Provider rejected the credentials"

    async def test_runner_failure_returns_500(self, client, fake_runner):
        fake_runner.run_all_error = ConnectionError("database down")

        response = await client.post("/api/v1/sync/cron", headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "database down"}


class TestManualSync:
    """手动同步接口测试。"""

    async def test_sync_one(self, client):
        response = await client.post("/api/v1/sync/subscriptions/5", headers=AUTH)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["subscription_id"] == 5
        assert data["success"] is True
        assert data["report"]["progress"] == pytest.approx(1 / 6)

    async def test_requires_secret(self, client):
        response = await client.post("/api/v1/sync/subscriptions/5")

        assert response.status_code == 401

    async def test_unknown_subscription(self, client, fake_runner):
        fake_runner.run_one_error = SubscriptionNotFoundError(5)

        response = await client.post("/api/v1/sync/subscriptions/5", headers=AUTH)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SUBSCRIPTION_NOT_FOUND"

    async def test_sync_in_progress(self, client, fake_runner):
        fake_runner.run_one_error = SyncAlreadyRunningError(5)

        response = await client.post("/api/v1/sync/subscriptions/5", headers=AUTH)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SYNC_IN_PROGRESS"
