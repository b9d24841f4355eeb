"""catalogSync Backend - IPTV 目录同步服务入口。"""

import sentry_sdk
from fastapi import FastAPI
from fastapi.concurrency import asynccontextmanager
from fastapi.routing import APIRoute
from loguru import logger

from src.core.application import security as app_security
from src.core.config import settings
from src.core.domain.exceptions import DomainException
from src.core.infrastructure.database.session import check_db_health, init_db
from src.core.infrastructure.logging import setup_logging
from src.core.infrastructure.redis import redis_client
from src.core.infrastructure.security import cron_auth as infra_cron_auth
from src.core.interfaces.http.exceptions import (
    domain_exception_handler,
    global_exception_handler,
)
from src.core.interfaces.http.routers import api_router
from src.modules.subscriptions.application import dependencies as subscriptions_app_deps
from src.modules.subscriptions.infrastructure import (
    dependencies as subscriptions_infra_deps,
)
from src.modules.sync.application import dependencies as sync_app_deps
from src.modules.sync.infrastructure import dependencies as sync_infra_deps


def custom_generate_unique_id(route: APIRoute) -> str:
    """Generate unique operation IDs for OpenAPI."""
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


# Initialize Sentry if configured
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(
        dsn=str(settings.SENTRY_DSN),
        enable_tracing=True,
        environment=settings.ENVIRONMENT,
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting catalogSync backend...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    logger.info("Initializing database connection...")
    await init_db()

    yield

    await redis_client.close()
    logger.info("Shutting down catalogSync backend...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description=(
        "IPTV 目录同步服务 - 从 Xtream 兼容的 provider 拉取频道、电影与剧集目录\n\n"
        "## 认证方式\n\n"
        "同步接口需在 `Authorization` 请求头中携带 `Bearer <CRON_SECRET>`。"
    ),
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    root_path=settings.ROOTPATH,
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

# Dependency overrides (application -> infrastructure)
app.dependency_overrides[app_security.require_cron_secret] = (
    infra_cron_auth.require_cron_secret
)

app.dependency_overrides[subscriptions_app_deps.get_subscription_repository] = (
    subscriptions_infra_deps.get_subscription_repository
)

app.dependency_overrides[sync_app_deps.get_sync_runner] = (
    sync_infra_deps.get_sync_runner
)

# Exception handlers
app.add_exception_handler(DomainException, domain_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint.

    - healthy: 数据库与 Redis 均正常
    - degraded: 数据库正常但 Redis 异常（同步锁降级运行）
    - unhealthy: 数据库异常
    """
    db_health_result = await check_db_health()
    redis_health_result = await redis_client.health_check()

    db_ok = db_health_result.status.value == "ok"
    redis_ok = redis_health_result.status.value == "ok"

    if db_ok and redis_ok:
        overall_status = "healthy"
    elif db_ok:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return {
        "status": overall_status,
        "environment": settings.ENVIRONMENT,
        "version": "0.1.0",
        "components": {
            "database": db_health_result.to_dict(),
            "redis": redis_health_result.to_dict(),
        },
        "feature_flags": {
            "sync_lock_enabled": settings.SYNC_LOCK_ENABLED,
        },
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to catalogSync API",
        "docs": f"{settings.API_V1_STR}/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.SERVER_PORT,
        reload=settings.ENVIRONMENT == "local",
    )
