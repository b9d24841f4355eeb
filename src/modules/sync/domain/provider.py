"""Provider client port.

同步引擎通过该接口读取远端目录；具体协议（Xtream player_api 等）由基础设施层实现。
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from src.modules.catalog.domain.entities import ContentDomain
from src.modules.subscriptions.domain.entities import Subscription

# Provider 返回的原始记录，字段名保持 provider 原样
type ProviderRecord = dict[str, Any]


class ProviderErrorKind(StrEnum):
    """Provider 错误类型。"""

    TRANSIENT = "transient"  # 网络 / 超时 / 5xx，可重试
    PERMANENT = "permanent"  # 凭据错误 / 4xx / 响应格式错误


class ProviderError(Exception):
    """Provider 调用失败。"""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        status_code: int | None = None,
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        return self.kind == ProviderErrorKind.TRANSIENT

    @classmethod
    def transient(cls, message: str, status_code: int | None = None) -> "ProviderError":
        return cls(ProviderErrorKind.TRANSIENT, message, status_code)

    @classmethod
    def permanent(cls, message: str, status_code: int | None = None) -> "ProviderError":
        return cls(ProviderErrorKind.PERMANENT, message, status_code)

    def escalate(self) -> "ProviderError":
        """重试耗尽后把瞬时错误升级为永久错误。"""
        return ProviderError(
            ProviderErrorKind.PERMANENT,
            f"{self.message} (retries exhausted)",
            self.status_code,
        )


@dataclass(frozen=True)
class ProviderCredentials:
    """一次 Provider 调用所需的账户信息。"""

    host: str
    username: str
    password: str

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "ProviderCredentials":
        return cls(
            host=subscription.host,
            username=subscription.username,
            password=subscription.password,
        )


class ProviderClient(Protocol):
    """远端目录读取接口。

    supports_bulk_items 为 True 时，fetch_items 不带 category_id 一次返回整个内容域；
    否则调用方按分类逐个调用。
    """

    supports_bulk_items: bool

    async def fetch_categories(
        self,
        credentials: ProviderCredentials,
        domain: ContentDomain,
        timeout: float | None = None,
    ) -> list[ProviderRecord]: ...

    async def fetch_items(
        self,
        credentials: ProviderCredentials,
        domain: ContentDomain,
        category_id: str | None = None,
        timeout: float | None = None,
    ) -> list[ProviderRecord]: ...
