import asyncio
import time
from typing import Any, Awaitable, Callable, Dict

from ..logging_config import get_logger

logger = get_logger(__name__)


class AntiEnumerationGuard:
    """Make "does this email exist" operations look identical from outside.

    The wrapped operation runs to completion (or failure, which is logged and
    absorbed), then the call is padded so it never returns faster than
    ``min_seconds``. Callers always send back ``uniform(...)``.
    """

    def __init__(self, min_seconds: float = 0.5, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.min_seconds = min_seconds
        self._sleep = sleep

    async def run(self, operation: Callable[[], Awaitable[Any]], label: str = "operation") -> None:
        start = time.monotonic()
        try:
            await operation()
        except Exception as e:
            logger.warning("guarded_operation_failed", label=label, error=str(e))
        remaining = self.min_seconds - (time.monotonic() - start)
        if remaining > 0:
            await self._sleep(remaining)

    @staticmethod
    def uniform(message: str) -> Dict[str, Any]:
        return {"success": True, "message": message}
