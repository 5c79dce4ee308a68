import asyncio
from typing import Any, Dict

from ...domain.tokens import SubjectKind, TokenAction


class MockNotificationSender:
    def __init__(self):
        self.sent = []

    async def send(
        self,
        kind: SubjectKind,
        subject_id: str,
        action: TokenAction,
        context: Dict[str, Any],
    ) -> None:
        # simulate async send
        await asyncio.sleep(0)
        self.sent.append(
            {
                "kind": kind,
                "subject_id": subject_id,
                "action": action,
                "template": context.get("template"),
                "to": context.get("to"),
                "context": dict(context),
            }
        )
