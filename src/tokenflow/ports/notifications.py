from typing import Any, Dict, Protocol

from ..domain.tokens import SubjectKind, TokenAction


class NotificationSender(Protocol):
    """Protocol for out-of-band notifications (email links and confirmations)."""

    async def send(
        self,
        kind: SubjectKind,
        subject_id: str,
        action: TokenAction,
        context: Dict[str, Any],
    ) -> None: ...
