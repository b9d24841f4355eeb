"""Application-level security dependencies.

Defines auth dependencies without importing infrastructure.
The actual implementations are injected via FastAPI dependency_overrides in main.py.
"""

from typing import NoReturn


def _missing_dependency(name: str) -> NoReturn:
    raise RuntimeError(f"Missing dependency override for {name}")


async def require_cron_secret() -> None:
    """Reject callers that do not present the shared cron secret.

    This stub is overridden in main.py with the bearer-token check.
    """
    _missing_dependency("require_cron_secret")
