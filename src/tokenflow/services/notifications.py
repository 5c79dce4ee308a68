import asyncio
from typing import Any, Dict, Optional, Set

from ..domain.tokens import SubjectKind, TokenAction
from ..logging_config import get_logger
from ..metrics import NOTIFICATION_FAILURES
from ..ports.notifications import NotificationSender

logger = get_logger(__name__)


async def notify(
    sender: Optional[NotificationSender],
    kind: SubjectKind,
    subject_id: str,
    action: TokenAction,
    context: Dict[str, Any],
) -> bool:
    """Fire-and-forget send. Failures are logged and never undo token state."""
    if sender is None:
        return False
    try:
        await sender.send(kind, subject_id, action, context)
        return True
    except Exception as e:
        if NOTIFICATION_FAILURES is not None:
            NOTIFICATION_FAILURES.labels(action=action.value).inc()
        logger.warning(
            "notification_failed",
            template=context.get("template"),
            kind=kind.value,
            subject_id=subject_id,
            error=str(e),
        )
        return False


# Sends scheduled off the request path; held here so they are not collected mid-flight
_pending: Set["asyncio.Task[bool]"] = set()


def notify_later(
    sender: Optional[NotificationSender],
    kind: SubjectKind,
    subject_id: str,
    action: TokenAction,
    context: Dict[str, Any],
) -> Optional["asyncio.Task[bool]"]:
    """Schedule ``notify`` in the background so its latency never reaches the caller."""
    if sender is None:
        return None
    task = asyncio.get_running_loop().create_task(
        notify(sender, kind, subject_id, action, context)
    )
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


async def drain_notifications() -> None:
    """Wait for every scheduled send (used at shutdown and in tests)."""
    loop = asyncio.get_running_loop()
    while True:
        waiting = [t for t in _pending if t.get_loop() is loop and not t.done()]
        if not waiting:
            return
        await asyncio.gather(*waiting, return_exceptions=True)
