"""Subscription domain entities."""

from datetime import datetime

from pydantic import Field

from src.core.domain.base_entity import BaseEntity


class Subscription(BaseEntity):
    """Subscription - 一个 Provider 账户（host + 凭据）。

    由用户注册流程创建，同步引擎只读取。
    """

    owner_id: str = Field(..., description="所属用户")
    base_url: str = Field(..., description="Provider 地址")
    username: str = Field(..., description="账户用户名")
    password: str = Field(..., description="账户密码")
    status: str | None = Field(default=None, description="账户状态")
    exp_date: datetime | None = Field(default=None, description="到期时间")
    is_trial: bool = Field(default=False, description="是否试用账户")

    @property
    def host(self) -> str:
        """不带结尾斜杠的 Provider 地址。"""
        return self.base_url.rstrip("/")
