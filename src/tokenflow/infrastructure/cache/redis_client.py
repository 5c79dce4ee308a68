import asyncio
import json
import time
from typing import Any, Optional

import redis.asyncio as redis_asyncio

from ...logging_config import get_logger

logger = get_logger(__name__)


def _record_cache_operation(operation: str, cache_type: str, duration: float | None = None):
    """Record cache metrics (lazy import to avoid circular dependency)."""
    from ...metrics import CACHE_OPERATION_DURATION, CACHE_OPERATIONS

    if CACHE_OPERATIONS is not None:
        CACHE_OPERATIONS.labels(operation=operation, cache_type=cache_type).inc()
    if duration is not None and CACHE_OPERATION_DURATION is not None:
        CACHE_OPERATION_DURATION.labels(operation=operation, cache_type=cache_type).observe(
            duration
        )


class InMemoryCache:
    def __init__(self):
        # store: key -> (value: Any, expire_at: Optional[float])
        self.store: dict[str, tuple[Any, Optional[float]]] = {}
        self.lock = asyncio.Lock()

    def _live_entry(self, key: str) -> Optional[tuple[Any, Optional[float]]]:
        # caller holds the lock
        entry = self.store.get(key)
        if not entry:
            return None
        _, expire_at = entry
        if expire_at is not None and time.time() >= expire_at:
            del self.store[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[Any]:
        start = time.time()
        async with self.lock:
            entry = self._live_entry(key)
        _record_cache_operation("get", "in_memory", time.time() - start)
        return entry[0] if entry else None

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> None:
        start = time.time()
        expire_at = time.time() + int(ex) if ex is not None else None
        async with self.lock:
            self.store[key] = (value, expire_at)
        _record_cache_operation("set", "in_memory", time.time() - start)

    async def set_if_absent(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        """Store ``value`` only if ``key`` holds no live entry. Returns True on write."""
        start = time.time()
        expire_at = time.time() + int(ex) if ex is not None else None
        async with self.lock:
            if self._live_entry(key) is not None:
                written = False
            else:
                self.store[key] = (value, expire_at)
                written = True
        _record_cache_operation("set_if_absent", "in_memory", time.time() - start)
        return written

    async def replace(self, key: str, value: Any) -> bool:
        """Overwrite a live entry keeping its expiry. Returns False if the key is gone."""
        start = time.time()
        async with self.lock:
            entry = self._live_entry(key)
            if entry is None:
                written = False
            else:
                self.store[key] = (value, entry[1])
                written = True
        _record_cache_operation("replace", "in_memory", time.time() - start)
        return written

    async def expire(self, key: str, seconds: int) -> None:
        start = time.time()
        async with self.lock:
            entry = self._live_entry(key)
            if entry is not None:
                self.store[key] = (entry[0], time.time() + int(seconds))
        _record_cache_operation("expire", "in_memory", time.time() - start)

    async def delete(self, key: str) -> None:
        start = time.time()
        async with self.lock:
            self.store.pop(key, None)
        _record_cache_operation("delete", "in_memory", time.time() - start)

    async def close(self) -> None:
        return None


class AioredisClient:
    def __init__(self, url: str, client: Any = None):
        self.client = client or redis_asyncio.from_url(url, decode_responses=False)

    @staticmethod
    def _decode(key: str, raw: Any) -> Optional[Any]:
        if raw is None:
            return None
        text = raw.decode() if isinstance(raw, bytes) else str(raw)
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug("redis_json_decode_failed", key=key, error=str(e))
            return text

    async def get(self, key: str) -> Optional[Any]:
        start = time.time()
        raw = await self.client.get(key)
        _record_cache_operation("get", "redis", time.time() - start)
        return self._decode(key, raw)

    async def set(self, key: str, value: Any, ex: Optional[int] = None) -> None:
        start = time.time()
        await self.client.set(key, json.dumps(value), ex=ex)
        _record_cache_operation("set", "redis", time.time() - start)

    async def set_if_absent(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        start = time.time()
        # SET NX is a single atomic command on the server
        written = await self.client.set(key, json.dumps(value), ex=ex, nx=True)
        _record_cache_operation("set_if_absent", "redis", time.time() - start)
        return bool(written)

    async def replace(self, key: str, value: Any) -> bool:
        start = time.time()
        written = await self.client.set(key, json.dumps(value), xx=True, keepttl=True)
        _record_cache_operation("replace", "redis", time.time() - start)
        return bool(written)

    async def expire(self, key: str, seconds: int) -> None:
        start = time.time()
        await self.client.expire(key, seconds)
        _record_cache_operation("expire", "redis", time.time() - start)

    async def delete(self, key: str) -> None:
        start = time.time()
        await self.client.delete(key)
        _record_cache_operation("delete", "redis", time.time() - start)

    async def close(self) -> None:
        await self.client.aclose()
