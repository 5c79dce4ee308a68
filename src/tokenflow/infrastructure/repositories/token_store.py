"""Cache-backed store for single-use link tokens.

Each token is two cache entries:

- ``linktoken:<value>``: the token record, written once with set-if-absent.
- ``linktoken:<value>:consumed``: the consumption marker. Writing it with
  set-if-absent is the only mutation of a token, so of any number of
  concurrent consumers exactly one wins.

Both entries live until ``expires_at`` plus a retention grace, so a late click
is still reported as expired (or already used) rather than unknown.

``linktoken:current:<scope>`` points at the links most recently issued for one
subject (for example ``reg:<id>``) so older links can be told apart.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from ...domain.tokens import ConsumeOutcome, ConsumeStatus, Token, utc_now
from ...exceptions import TokenConflictError
from ...logging_config import get_logger, token_ref
from ...metrics import record_token_operation

logger = get_logger(__name__)

KEY_PREFIX = "linktoken"


class CacheTokenStore:
    """Manages link tokens in a cache client (Redis or InMemoryCache)."""

    def __init__(self, cache, retention_grace_seconds: int = 86400):
        """Initialize with a cache client.

        Args:
            cache: Cache client implementing get/set_if_absent/replace/delete
            retention_grace_seconds: How long records outlive ``expires_at``
        """
        self.cache = cache
        self.retention_grace_seconds = retention_grace_seconds

    @staticmethod
    def _record_key(value: str) -> str:
        return f"{KEY_PREFIX}:{value}"

    @staticmethod
    def _marker_key(value: str) -> str:
        return f"{KEY_PREFIX}:{value}:consumed"

    def _retention(self, token: Token, now: datetime) -> int:
        return max(token.ttl_seconds(now), 1) + self.retention_grace_seconds

    async def put(self, token: Token) -> None:
        """Store a freshly minted token; raises TokenConflictError on value reuse."""
        now = utc_now()
        written = await self.cache.set_if_absent(
            self._record_key(token.value), token.to_dict(), ex=self._retention(token, now)
        )
        if not written:
            logger.warning("token_put_conflict", token=token_ref(token.value))
            raise TokenConflictError(token=token_ref(token.value))
        record_token_operation("issue", token.action.value)
        logger.debug(
            "token_stored",
            token=token_ref(token.value),
            subject_kind=token.subject_kind.value,
            expires_at=token.expires_at.isoformat(),
        )

    async def _load(self, value: str) -> Optional[Token]:
        raw = await self.cache.get(self._record_key(value))
        if not isinstance(raw, dict):
            return None
        try:
            return Token.from_dict(raw)
        except (KeyError, ValueError) as e:
            logger.warning("token_record_unreadable", token=token_ref(value), error=str(e))
            return None

    @staticmethod
    def _apply_marker(token: Token, marker: Any) -> Token:
        if isinstance(marker, dict):
            token.consumed_at = Token._coerce_datetime(marker.get("consumed_at"))
            token.consumed_result = marker.get("result")
        return token

    async def try_consume(self, value: str, now: Optional[datetime] = None) -> ConsumeOutcome:
        """Atomically mark a token consumed.

        Expiry is checked against the stored ``expires_at`` before anything is
        written, so an expired token is never consumed even if the cache has
        not evicted it yet.
        """
        now = now or utc_now()
        token = await self._load(value)
        if token is None:
            record_token_operation("not_found", "unknown")
            return ConsumeOutcome(ConsumeStatus.NOT_FOUND)

        marker_key = self._marker_key(value)
        if token.is_expired(now):
            self._apply_marker(token, await self.cache.get(marker_key))
            record_token_operation("expired", token.action.value)
            return ConsumeOutcome(ConsumeStatus.EXPIRED, token)

        marker = {"consumed_at": now.isoformat(), "result": None}
        won = await self.cache.set_if_absent(marker_key, marker, ex=self._retention(token, now))
        if not won:
            self._apply_marker(token, await self.cache.get(marker_key))
            record_token_operation("replay", token.action.value)
            logger.info("token_already_consumed", token=token_ref(value))
            return ConsumeOutcome(ConsumeStatus.ALREADY_CONSUMED, token)

        token.consumed_at = now
        record_token_operation("consume", token.action.value)
        logger.info(
            "token_consumed",
            token=token_ref(value),
            subject_kind=token.subject_kind.value,
            action=token.action.value,
        )
        return ConsumeOutcome(ConsumeStatus.CONSUMED, token)

    async def record_result(self, value: str, result: Dict[str, Any]) -> None:
        """Attach the applied outcome to a consumed token for replay reporting."""
        marker_key = self._marker_key(value)
        marker = await self.cache.get(marker_key)
        if not isinstance(marker, dict):
            logger.warning("token_result_without_marker", token=token_ref(value))
            return
        updated = dict(marker)
        updated["result"] = dict(result)
        await self.cache.replace(marker_key, updated)

    async def peek(self, value: str) -> Optional[Token]:
        """Read-only view of a token with its consumption state; never consumes."""
        token = await self._load(value)
        if token is None:
            return None
        record_token_operation("peek", token.action.value)
        return self._apply_marker(token, await self.cache.get(self._marker_key(value)))

    @staticmethod
    def _current_key(scope: str) -> str:
        return f"{KEY_PREFIX}:current:{scope}"

    async def get_current(self, scope: str) -> Optional[Dict[str, Any]]:
        """Pointer to the most recently issued links for ``scope``, if still retained."""
        pointer = await self.cache.get(self._current_key(scope))
        return pointer if isinstance(pointer, dict) else None

    async def set_current(self, scope: str, values: Dict[str, Any], expires_at: datetime) -> None:
        """Point ``scope`` at newly issued links; kept as long as those links are."""
        now = utc_now()
        ttl = max(int((expires_at - now).total_seconds()), 1) + self.retention_grace_seconds
        await self.cache.set(self._current_key(scope), dict(values), ex=ttl)
