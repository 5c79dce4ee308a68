import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..domain.subjects import SubjectRecord
from ..domain.tokens import ConsumeStatus, SubjectKind, TokenAction, utc_now
from ..exceptions import (
    AlreadyProcessedError,
    InvalidTokenError,
    MalformedTokenError,
    TokenExpiredError,
    UpdateFailedError,
    ValidationError,
)
from ..logging_config import get_logger, token_ref
from ..metrics import record_outcome
from ..ports.hashing import PasswordHasher
from ..ports.notifications import NotificationSender
from ..ports.token_store import TokenStore
from ..utils.password import validate_password_strength
from .anti_enumeration import AntiEnumerationGuard
from .notifications import notify, notify_later
from .subject_update_router import SubjectUpdateRouter
from .token_codec import TokenCodec
from .user_type_resolver import UserTypeResolver

logger = get_logger(__name__)

DEFAULT_RECOVERY_TTL_SECONDS = 30 * 60
REQUEST_ACCEPTED_MESSAGE = (
    "If an account exists with this email, a password reset link has been sent"
)


@dataclass
class RecoveryResetResult:
    success: bool
    message: str
    subject_kind: str
    processed_at: datetime


class RecoveryWorkflow:
    """Email-based password recovery for accounts and affiliates.

    ``request`` never reveals whether the email exists: both branches run
    through the AntiEnumerationGuard and return the same body. ``reset``
    consumes the link exactly once and routes the new hash by the kind
    recorded in the token.
    """

    def __init__(
        self,
        store: TokenStore,
        resolver: UserTypeResolver,
        router: SubjectUpdateRouter,
        hasher: PasswordHasher,
        sender: Optional[NotificationSender] = None,
        guard: Optional[AntiEnumerationGuard] = None,
        codec: Optional[TokenCodec] = None,
        ttl_seconds: int = DEFAULT_RECOVERY_TTL_SECONDS,
        frontend_url: str = "",
        password_min_length: int = 8,
        password_max_length: int = 128,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.resolver = resolver
        self.router = router
        self.hasher = hasher
        self.sender = sender
        self.guard = guard or AntiEnumerationGuard()
        self.codec = codec or TokenCodec()
        self.ttl_seconds = ttl_seconds
        self.frontend_url = frontend_url.rstrip("/")
        self.password_min_length = password_min_length
        self.password_max_length = password_max_length
        self.clock = clock

    @staticmethod
    def organization_context(kind: SubjectKind, subject: SubjectRecord) -> str:
        if kind is SubjectKind.AFFILIATE:
            if subject.organization_name:
                return f" for {subject.organization_name}"
            return " for your organization"
        return ""

    def reset_url(self, value: str) -> str:
        return f"{self.frontend_url}/reset-password?token={value}"

    async def _issue(self, email: str) -> None:
        resolved = await self.resolver.resolve(email)
        if not resolved.found:
            logger.info("recovery_request_unmatched")
            return
        subject = resolved.subject
        token = self.codec.mint(
            resolved.kind,
            subject.id,
            TokenAction.PASSWORD_RESET,
            self.ttl_seconds,
            self.clock(),
            {"email": subject.email, "organization_name": subject.organization_name},
        )
        await self.store.put(token)
        # sent in the background: only the padded guard time is visible to the caller
        notify_later(
            self.sender,
            resolved.kind,
            subject.id,
            TokenAction.PASSWORD_RESET,
            {
                "template": "password_reset_request",
                "to": subject.email,
                "reset_url": self.reset_url(token.value),
                "account_type": resolved.kind.value,
                "organization_context": self.organization_context(resolved.kind, subject),
                "expires_in_minutes": self.ttl_seconds // 60,
            },
        )
        logger.info(
            "recovery_token_issued",
            kind=resolved.kind.value,
            subject_id=subject.id,
            token=token_ref(token.value),
        )

    async def request(self, email: str) -> Dict[str, Any]:
        await self.guard.run(lambda: self._issue(email), label="password_recovery_request")
        record_outcome("recovery", "requested")
        return self.guard.uniform(REQUEST_ACCEPTED_MESSAGE)

    async def validate(self, token: str) -> bool:
        try:
            decoded = self.codec.decode(token)
        except MalformedTokenError:
            return False
        if decoded.action is not TokenAction.PASSWORD_RESET:
            return False
        record = await self.store.peek(token)
        return record is not None and record.is_usable(self.clock())

    async def _hash(self, password: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.hasher.hash, password)

    async def reset(self, token: str, new_password: str) -> RecoveryResetResult:
        ok, message = validate_password_strength(
            new_password, self.password_min_length, self.password_max_length
        )
        if not ok:
            raise ValidationError(message)

        decoded = self.codec.decode(token)
        if decoded.action is not TokenAction.PASSWORD_RESET:
            raise InvalidTokenError()

        now = self.clock()
        outcome = await self.store.try_consume(token, now)
        if outcome.status is ConsumeStatus.NOT_FOUND:
            record_outcome("recovery", "not_found")
            raise InvalidTokenError()
        record = outcome.token
        if outcome.status is ConsumeStatus.EXPIRED:
            record_outcome("recovery", "expired")
            raise TokenExpiredError(expired_at=record.expires_at.isoformat())
        if outcome.status is ConsumeStatus.ALREADY_CONSUMED:
            record_outcome("recovery", "replay")
            raise AlreadyProcessedError(previous=record.consumed_result)

        kind = record.subject_kind
        subject = SubjectRecord(
            id=record.subject_id,
            email=str(record.data.get("email", "")),
            organization_name=record.data.get("organization_name"),
        )
        hashed = await self._hash(new_password)
        try:
            await self.router.apply_password(kind, subject, hashed)
        except UpdateFailedError:
            await self.store.record_result(token, {"status": "update_failed", "kind": kind.value})
            record_outcome("recovery", "update_failed")
            raise

        await self.store.record_result(
            token,
            {"status": "password_updated", "kind": kind.value, "processed_at": now.isoformat()},
        )
        await notify(
            self.sender,
            kind,
            subject.id,
            TokenAction.PASSWORD_RESET,
            {
                "template": "password_changed",
                "to": subject.email,
                "account_type": kind.value,
                "organization_context": self.organization_context(kind, subject),
                "changed_at": now.isoformat(),
            },
        )
        record_outcome("recovery", "password_updated")
        return RecoveryResetResult(
            success=True,
            message="Password has been reset successfully",
            subject_kind=kind.value,
            processed_at=now,
        )
