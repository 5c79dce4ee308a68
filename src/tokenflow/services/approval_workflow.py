"""Approve/reject links for pending registrations.

``issue`` mints a pair of tokens (one approve, one reject) for a pending
registration and emails both links to the administrators. ``consume`` turns
one click into exactly one state change:

1. parse the decision and decode the link (nothing is consumed on bad input)
2. atomically consume the token; not found / expired / already used end here
3. burn the sibling link so the other decision can no longer be clicked
4. check the registration is still pending, then apply the decision through
   the repository's conditional transition and record the outcome
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..domain.registration import ApprovalDecision, RegistrationStatus
from ..domain.tokens import ConsumeStatus, SubjectKind, Token, TokenAction, utc_now
from ..exceptions import (
    AlreadyProcessedError,
    InvalidStateError,
    InvalidTokenError,
    RegistrationNotFoundError,
    TokenExpiredError,
    UpdateFailedError,
    ValidationError,
)
from ..logging_config import get_logger, token_ref
from ..metrics import record_outcome
from ..ports.notifications import NotificationSender
from ..ports.registrations import RegistrationRepository
from ..ports.token_store import TokenStore
from .notifications import notify
from .token_codec import TokenCodec

logger = get_logger(__name__)

DEFAULT_APPROVAL_TTL_SECONDS = 7 * 24 * 3600


@dataclass
class ApprovalIssue:
    registration_id: str
    approve_token: str
    reject_token: str
    expires_at: datetime
    approve_url: str
    reject_url: str


@dataclass
class ApprovalResult:
    success: bool
    message: str
    subject_id: str
    status: str
    action: str
    processed_at: datetime
    reason: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "action": self.action,
            "reason": self.reason,
            "processed_at": self.processed_at.isoformat(),
        }


@dataclass
class TokenStatus:
    state: str  # usable / consumed / expired
    action: str
    subject_id: str
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None


class ApprovalWorkflow:
    def __init__(
        self,
        store: TokenStore,
        registrations: RegistrationRepository,
        sender: Optional[NotificationSender] = None,
        codec: Optional[TokenCodec] = None,
        ttl_seconds: int = DEFAULT_APPROVAL_TTL_SECONDS,
        approval_base_url: str = "",
        admin_emails: Optional[list[str]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.registrations = registrations
        self.sender = sender
        self.codec = codec or TokenCodec()
        self.ttl_seconds = ttl_seconds
        self.approval_base_url = approval_base_url.rstrip("/")
        self.admin_emails = admin_emails or []
        self.clock = clock

    def _url(self, value: str) -> str:
        return f"{self.approval_base_url}/{value}"

    async def issue(self, registration_id: str) -> ApprovalIssue:
        registration = await self.registrations.get(registration_id)
        if registration is None:
            raise RegistrationNotFoundError(registration_id=registration_id)
        if registration.status is not RegistrationStatus.PENDING:
            raise InvalidStateError(
                f"Cannot request approval for a registration that is {registration.status.value}",
                status=registration.status.value,
            )

        now = self.clock()
        data = {"email": registration.email}
        approve = self.codec.mint(
            SubjectKind.REGISTRATION, registration.id, TokenAction.APPROVE, self.ttl_seconds, now, data
        )
        reject = self.codec.mint(
            SubjectKind.REGISTRATION, registration.id, TokenAction.REJECT, self.ttl_seconds, now, data
        )
        approve.data["sibling"] = reject.value
        reject.data["sibling"] = approve.value
        scope = self._scope(registration.id)
        previous = await self.store.get_current(scope)
        await self.store.put(approve)
        await self.store.put(reject)
        await self.store.set_current(
            scope, {"approve": approve.value, "reject": reject.value}, approve.expires_at
        )
        if previous:
            await self._supersede(previous, now)

        issued = ApprovalIssue(
            registration_id=registration.id,
            approve_token=approve.value,
            reject_token=reject.value,
            expires_at=approve.expires_at,
            approve_url=self._url(approve.value),
            reject_url=self._url(reject.value),
        )
        await notify(
            self.sender,
            SubjectKind.REGISTRATION,
            registration.id,
            TokenAction.APPROVE,
            {
                "template": "approval_request",
                "to": self.admin_emails,
                "applicant_name": registration.display_name,
                "applicant_email": registration.email,
                "approve_url": issued.approve_url,
                "reject_url": issued.reject_url,
                "expires_at": issued.expires_at.isoformat(),
            },
        )
        logger.info(
            "approval_tokens_issued",
            registration_id=registration.id,
            approve=token_ref(approve.value),
            reject=token_ref(reject.value),
        )
        record_outcome("approval", "issued")
        return issued

    def _decode_for(self, value: str, decision: ApprovalDecision):
        decoded = self.codec.decode(value)
        if decoded.subject_kind is not SubjectKind.REGISTRATION:
            raise InvalidTokenError()
        if decoded.action.value != decision.value:
            raise ValidationError(
                f"This link can only be used to {decoded.action.value}",
                action=decision.value,
            )
        return decoded

    async def consume(
        self, token: str, decision: Any, reason: Optional[str] = None
    ) -> ApprovalResult:
        parsed = ApprovalDecision.parse(decision)
        self._decode_for(token, parsed)

        now = self.clock()
        outcome = await self.store.try_consume(token, now)
        if outcome.status is ConsumeStatus.NOT_FOUND:
            record_outcome("approval", "not_found")
            raise InvalidTokenError()
        record = outcome.token
        assert record is not None
        if outcome.status is ConsumeStatus.EXPIRED:
            record_outcome("approval", "expired")
            await self._expire_registration(record)
            raise TokenExpiredError(expired_at=record.expires_at.isoformat())
        if outcome.status is ConsumeStatus.ALREADY_CONSUMED:
            record_outcome("approval", "replay")
            raise AlreadyProcessedError(previous=record.consumed_result)

        await self._burn_sibling(record, parsed, now)

        registration = await self.registrations.get(record.subject_id)
        if registration is None or registration.status is not RegistrationStatus.PENDING:
            current = registration.status.value if registration else "missing"
            await self.store.record_result(token, {"status": current, "action": parsed.value})
            record_outcome("approval", "invalid_state")
            raise InvalidStateError(status=current)

        target = parsed.target_status
        try:
            changed = await self.registrations.transition(
                registration.id, RegistrationStatus.PENDING, target, reason
            )
        except Exception as e:
            logger.exception(
                "registration_decision_failed", registration_id=registration.id, error=str(e)
            )
            await self.store.record_result(token, {"status": "update_failed", "action": parsed.value})
            record_outcome("approval", "update_failed")
            raise UpdateFailedError(registration_id=registration.id) from e
        if not changed:
            # another decision landed between the status check and the write
            await self.store.record_result(token, {"status": "update_failed", "action": parsed.value})
            record_outcome("approval", "update_failed")
            raise UpdateFailedError(
                "The registration was changed by another decision", registration_id=registration.id
            )

        result = ApprovalResult(
            success=True,
            message=f"Registration {target.value} successfully",
            subject_id=registration.id,
            status=target.value,
            action=parsed.value,
            reason=reason,
            processed_at=now,
        )
        await self.store.record_result(token, result.to_record())
        await notify(
            self.sender,
            SubjectKind.REGISTRATION,
            registration.id,
            TokenAction(parsed.value),
            {
                "template": f"registration_{target.value}",
                "to": registration.email,
                "reason": reason,
            },
        )
        logger.info(
            "registration_decided",
            registration_id=registration.id,
            status=target.value,
            token=token_ref(token),
        )
        record_outcome("approval", target.value)
        return result

    async def _burn_sibling(self, record: Token, decision: ApprovalDecision, now: datetime) -> None:
        sibling = record.data.get("sibling")
        if not sibling:
            return
        outcome = await self.store.try_consume(sibling, now)
        if outcome.consumed:
            await self.store.record_result(
                sibling, {"status": "superseded", "action": decision.value}
            )

    @staticmethod
    def _scope(registration_id: str) -> str:
        return f"reg:{registration_id}"

    async def _supersede(self, previous: Dict[str, Any], now: datetime) -> None:
        """Retire links from an earlier ``issue`` so only the newest pair works."""
        for value in previous.values():
            outcome = await self.store.try_consume(value, now)
            if outcome.consumed:
                await self.store.record_result(value, {"status": "superseded", "action": "reissued"})
                logger.info("approval_token_superseded", token=token_ref(value))

    async def _expire_registration(self, record: Token) -> None:
        current = await self.store.get_current(self._scope(record.subject_id))
        if current and record.value not in current.values():
            # a newer pair was issued; it decides whether the registration expires
            logger.info(
                "stale_approval_link_expired",
                registration_id=record.subject_id,
                token=token_ref(record.value),
            )
            return
        try:
            await self.registrations.transition(
                record.subject_id, RegistrationStatus.PENDING, RegistrationStatus.EXPIRED
            )
        except Exception as e:
            logger.warning(
                "registration_expire_failed", registration_id=record.subject_id, error=str(e)
            )

    async def status(self, token: str) -> TokenStatus:
        """Read-only view for confirmation pages; never consumes."""
        self.codec.decode(token)
        record = await self.store.peek(token)
        if record is None or record.subject_kind is not SubjectKind.REGISTRATION:
            raise InvalidTokenError()
        now = self.clock()
        if record.is_expired(now):
            state = "expired"
        elif record.consumed_at is not None:
            state = "consumed"
        else:
            state = "usable"
        return TokenStatus(
            state=state,
            action=record.action.value,
            subject_id=record.subject_id,
            expires_at=record.expires_at,
            consumed_at=record.consumed_at,
            result=record.consumed_result,
        )
