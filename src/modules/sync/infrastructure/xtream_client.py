"""Xtream-Codes player_api provider client."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from src.core.config import settings
from src.modules.catalog.domain.entities import ContentDomain
from src.modules.sync.domain.provider import (
    ProviderCredentials,
    ProviderError,
    ProviderRecord,
)

_CATEGORY_ACTIONS: dict[ContentDomain, str] = {
    ContentDomain.CHANNEL: "get_live_categories",
    ContentDomain.MOVIE: "get_vod_categories",
    ContentDomain.SERIES: "get_series_categories",
}

_ITEM_ACTIONS: dict[ContentDomain, str] = {
    ContentDomain.CHANNEL: "get_live_streams",
    ContentDomain.MOVIE: "get_vod_streams",
    ContentDomain.SERIES: "get_series",
}


class XtreamProviderClient:
    """通过 ``{host}/player_api.php`` 读取目录。

    - 超时、连接错误、HTTP 5xx / 429 → 瞬时错误
    - 其它 4xx、鉴权失败（user_info.auth == 0）、非 JSON 或非列表响应 → 永久错误

    频道与电影记录会补上播放地址（url 字段）。
    """

    supports_bulk_items = True

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        self._http_client = http_client

    async def fetch_categories(
        self,
        credentials: ProviderCredentials,
        domain: ContentDomain,
        timeout: float | None = None,
    ) -> list[ProviderRecord]:
        return await self._request(
            credentials, _CATEGORY_ACTIONS[domain], timeout=timeout
        )

    async def fetch_items(
        self,
        credentials: ProviderCredentials,
        domain: ContentDomain,
        category_id: str | None = None,
        timeout: float | None = None,
    ) -> list[ProviderRecord]:
        params = {"category_id": category_id} if category_id is not None else {}
        records = await self._request(
            credentials, _ITEM_ACTIONS[domain], timeout=timeout, **params
        )
        if domain == ContentDomain.CHANNEL:
            return [self._with_live_url(credentials, record) for record in records]
        if domain == ContentDomain.MOVIE:
            return [self._with_movie_url(credentials, record) for record in records]
        return records

    @staticmethod
    def live_url(credentials: ProviderCredentials, stream_id: Any) -> str:
        return (
            f"{credentials.host}/live/{credentials.username}/{credentials.password}/"
            f"{stream_id}.{settings.PROVIDER_LIVE_FORMAT}"
        )

    @staticmethod
    def movie_url(
        credentials: ProviderCredentials, stream_id: Any, extension: str | None
    ) -> str:
        return (
            f"{credentials.host}/movie/{credentials.username}/{credentials.password}/"
            f"{stream_id}.{extension or 'mp4'}"
        )

    def _with_live_url(
        self, credentials: ProviderCredentials, record: ProviderRecord
    ) -> ProviderRecord:
        if record.get("url") or record.get("stream_id") is None:
            return record
        return {**record, "url": self.live_url(credentials, record["stream_id"])}

    def _with_movie_url(
        self, credentials: ProviderCredentials, record: ProviderRecord
    ) -> ProviderRecord:
        if record.get("url") or record.get("stream_id") is None:
            return record
        url = self.movie_url(
            credentials, record["stream_id"], record.get("container_extension")
        )
        return {**record, "url": url}

    async def _request(
        self,
        credentials: ProviderCredentials,
        action: str,
        timeout: float | None = None,
        **extra_params: str,
    ) -> list[ProviderRecord]:
        url = f"{credentials.host}/player_api.php"
        params = {
            "username": credentials.username,
            "password": credentials.password,
            "action": action,
            **extra_params,
        }
        request_timeout = timeout or settings.PROVIDER_TIMEOUT_SEC

        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, params=params, headers=self._headers(), timeout=request_timeout
                )
            else:
                async with httpx.AsyncClient(
                    timeout=request_timeout, follow_redirects=True
                ) as client:
                    response = await client.get(url, params=params, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning(f"Xtream {action} timeout for {credentials.host}: {exc}")
            raise ProviderError.transient(f"Timeout calling {action}") from exc
        except httpx.TransportError as exc:
            logger.warning(f"Xtream {action} transport error for {credentials.host}: {exc}")
            raise ProviderError.transient(f"Network error calling {action}: {exc}") from exc

        self._raise_for_status(action, response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError.permanent(
                f"{action} returned a non-JSON response", response.status_code
            ) from exc

        return self._parse_payload(action, payload)

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": settings.PROVIDER_USER_AGENT,
            "Accept": "application/json",
        }

    @staticmethod
    def _raise_for_status(action: str, response: httpx.Response) -> None:
        status_code = response.status_code
        if status_code < 400:
            return
        message = f"{action} failed with HTTP {status_code}"
        if status_code >= 500 or status_code == httpx.codes.TOO_MANY_REQUESTS:
            raise ProviderError.transient(message, status_code)
        raise ProviderError.permanent(message, status_code)

    @staticmethod
    def _parse_payload(action: str, payload: Any) -> list[ProviderRecord]:
        if isinstance(payload, list):
            return [record for record in payload if isinstance(record, dict)]

        if isinstance(payload, dict):
            user_info = payload.get("user_info")
            if isinstance(user_info, dict) and str(user_info.get("auth")) == "0":
                raise ProviderError.permanent("Provider rejected the credentials")
            if "user_info" in payload:
                raise ProviderError.permanent(f"{action} returned account info only")
            if not payload:
                return []
            # 部分面板以 {"0": {...}, "1": {...}} 的形式返回列表
            if all(isinstance(value, dict) for value in payload.values()):
                return list(payload.values())

        raise ProviderError.permanent(f"{action} returned an unexpected payload shape")
