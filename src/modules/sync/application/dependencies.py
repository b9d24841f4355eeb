"""Sync module application dependencies."""

from typing import NoReturn

from src.modules.sync.application.runner import SubscriptionSyncRunner


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def get_sync_runner() -> SubscriptionSyncRunner:
    _missing_dependency("SubscriptionSyncRunner")
