from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from ..domain.tokens import ConsumeOutcome, Token


class TokenStore(Protocol):
    """Protocol for single-use token storage with atomic consumption."""

    async def put(self, token: Token) -> None: ...

    async def try_consume(self, value: str, now: Optional[datetime] = None) -> ConsumeOutcome: ...

    async def record_result(self, value: str, result: Dict[str, Any]) -> None: ...

    async def peek(self, value: str) -> Optional[Token]: ...

    async def get_current(self, scope: str) -> Optional[Dict[str, Any]]:
        """Values of the links currently issued for ``scope`` (e.g. one registration)."""
        ...

    async def set_current(self, scope: str, values: Dict[str, Any], expires_at: datetime) -> None: ...
