"""Logging configuration with structlog integration.

提供两种日志记录方式：
1. loguru: 用于一般调试日志
2. structlog: 用于关键业务事件的结构化日志
"""

import sys
from typing import Any

import structlog
from loguru import logger

from src.core.config import settings


def setup_logging() -> None:
    """Configure application logging with structlog and loguru."""
    # 配置 structlog
    _configure_structlog()

    # 配置 loguru
    _configure_loguru()

    logger.info(f"Logging configured with level: {settings.LOG_LEVEL}")


def _configure_structlog() -> None:
    """配置 structlog 处理器链。"""
    # 根据环境选择渲染器
    if settings.ENVIRONMENT == "local":
        # 本地开发使用人类可读格式
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        # 生产环境使用 JSON 格式
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            # 添加上下文变量
            structlog.contextvars.merge_contextvars,
            # 添加日志级别
            structlog.stdlib.add_log_level,
            # 添加时间戳
            structlog.processors.TimeStamper(fmt="iso"),
            # 添加调用者信息
            structlog.processors.CallsiteParameterAdder(
                [
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            ),
            # 格式化异常
            structlog.processors.format_exc_info,
            # 最终渲染
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            _get_log_level_number(settings.LOG_LEVEL)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def _configure_loguru() -> None:
    """配置 loguru。"""
    # Remove default handler
    logger.remove()

    # Add console handler with appropriate level
    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
    )

    # Add file handler for production
    if settings.ENVIRONMENT != "local":
        logger.add(
            "logs/catalogsync_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        )


def _get_log_level_number(level: str) -> int:
    """将日志级别字符串转换为数字。"""
    levels = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
        "CRITICAL": 50,
    }
    return levels.get(level.upper(), 20)


# ============================================================================
# 业务事件日志记录器
# ============================================================================

def get_business_logger() -> structlog.BoundLogger:
    """获取业务事件日志记录器。

    用于记录关键业务事件，输出为结构化格式。

    Usage:
        from src.core.infrastructure.logging import get_business_logger

        log = get_business_logger()
        log.info("cron_sync_triggered", subscription_count=12)
    """
    return structlog.get_logger("business")


class BusinessEvents:
    """业务事件日志助手类。

    提供统一的业务事件日志记录接口，确保事件格式一致。

    Usage:
        from src.core.infrastructure.logging import BusinessEvents

        BusinessEvents.sync_stage_completed(subscription_id=1, stage="channels", ...)
        BusinessEvents.subscription_sync_failed(subscription_id=1, error="...")
    """

    _log = structlog.get_logger("business.events")

    @classmethod
    def sync_stage_completed(
        cls,
        subscription_id: int,
        stage: str,
        fetched: int,
        inserted: int,
        failed: int,
        **extra: Any,
    ) -> None:
        """记录单个同步阶段完成事件。"""
        level = "info" if failed == 0 else "warning"
        getattr(cls._log, level)(
            "sync_stage_completed",
            event_type="sync",
            subscription_id=subscription_id,
            stage=stage,
            fetched=fetched,
            inserted=inserted,
            failed=failed,
            **extra,
        )

    @classmethod
    def sync_stage_failed(
        cls,
        subscription_id: int,
        stage: str,
        error: str,
        **extra: Any,
    ) -> None:
        """记录同步阶段失败（流程终止）事件。"""
        cls._log.warning(
            "sync_stage_failed",
            event_type="sync_error",
            subscription_id=subscription_id,
            stage=stage,
            error=error,
            **extra,
        )

    @classmethod
    def batch_write_failed(
        cls,
        table: str,
        failed_rows: int,
        error: str,
        **extra: Any,
    ) -> None:
        """记录批量写入中的失败分块。"""
        cls._log.warning(
            "batch_write_failed",
            event_type="write_error",
            table=table,
            failed_rows=failed_rows,
            error=error,
            **extra,
        )

    @classmethod
    def subscription_sync_completed(
        cls,
        subscription_id: int,
        success: bool,
        added: int,
        removed: int,
        latency_ms: int,
        **extra: Any,
    ) -> None:
        """记录订阅同步完成事件。"""
        level = "info" if success else "warning"
        getattr(cls._log, level)(
            "subscription_sync_completed",
            event_type="sync",
            subscription_id=subscription_id,
            success=success,
            added=added,
            removed=removed,
            latency_ms=latency_ms,
            **extra,
        )

    @classmethod
    def subscription_sync_failed(
        cls,
        subscription_id: int,
        error: str,
        **extra: Any,
    ) -> None:
        """记录订阅同步异常事件。"""
        cls._log.error(
            "subscription_sync_failed",
            event_type="sync_error",
            subscription_id=subscription_id,
            error=error,
            **extra,
        )

    @classmethod
    def feature_degraded(
        cls,
        feature: str,
        reason: str,
        **extra: Any,
    ) -> None:
        """记录功能降级事件。"""
        cls._log.warning(
            "feature_degraded",
            event_type="degradation",
            feature=feature,
            reason=reason,
            **extra,
        )
