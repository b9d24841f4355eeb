"""Bearer shared-secret check for scheduler-invoked endpoints."""

import hmac

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from src.core.config import settings
from src.core.domain.exceptions import AuthenticationError

_bearer = HTTPBearer(auto_error=False)


async def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> None:
    """校验 ``Authorization: Bearer <CRON_SECRET>``。

    缺失或不匹配时抛出 AuthenticationError（401），请求不会进入同步流程。
    """
    if credentials is None or not hmac.compare_digest(
        credentials.credentials.encode(), settings.CRON_SECRET.encode()
    ):
        logger.warning("Rejected cron request with missing or invalid secret")
        raise AuthenticationError()
