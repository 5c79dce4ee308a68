"""Token domain model: what a single-use email link acts on and when it is usable."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SubjectKind(str, Enum):
    """Closed set of record kinds a token can act on."""

    REGISTRATION = "registration"
    ACCOUNT = "account"
    AFFILIATE = "affiliate"
    # Resolver result only; never minted into a token
    UNKNOWN = "unknown"


class TokenAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    PASSWORD_RESET = "password_reset"


class ConsumeStatus(str, Enum):
    CONSUMED = "consumed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_CONSUMED = "already_consumed"


@dataclass(slots=True)
class Token:
    value: str
    subject_kind: SubjectKind
    subject_id: str
    action: TokenAction
    issued_at: datetime
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    consumed_result: Optional[Dict[str, Any]] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        return self.consumed_at is None and not self.is_expired(now)

    def ttl_seconds(self, now: Optional[datetime] = None) -> int:
        remaining = (self.expires_at - (now or utc_now())).total_seconds()
        return max(int(remaining), 0)

    @staticmethod
    def _coerce_datetime(value: Any) -> Optional[datetime]:
        if value is None:
            return None
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(str(value))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable record; consumption state lives in a separate marker."""
        return {
            "value": self.value,
            "subject_kind": self.subject_kind.value,
            "subject_id": self.subject_id,
            "action": self.action.value,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "data": dict(self.data),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Token":
        issued_at = cls._coerce_datetime(payload["issued_at"])
        expires_at = cls._coerce_datetime(payload["expires_at"])
        if issued_at is None or expires_at is None:
            raise ValueError("token record is missing its timestamps")
        return cls(
            value=str(payload["value"]),
            subject_kind=SubjectKind(payload["subject_kind"]),
            subject_id=str(payload["subject_id"]),
            action=TokenAction(payload["action"]),
            issued_at=issued_at,
            expires_at=expires_at,
            consumed_at=cls._coerce_datetime(payload.get("consumed_at")),
            consumed_result=payload.get("consumed_result"),
            data=dict(payload.get("data") or {}),
        )


@dataclass(slots=True)
class ConsumeOutcome:
    """Result of TokenStore.try_consume.

    ``token`` is populated for every status except NOT_FOUND so callers can
    report on what the link referred to.
    """

    status: ConsumeStatus
    token: Optional[Token] = None

    @property
    def consumed(self) -> bool:
        return self.status is ConsumeStatus.CONSUMED


@dataclass(slots=True)
class DecodedToken:
    action: TokenAction
    subject_kind: SubjectKind
    issued_at: datetime
    expires_at: datetime


__all__ = [
    "utc_now",
    "SubjectKind",
    "TokenAction",
    "ConsumeStatus",
    "Token",
    "ConsumeOutcome",
    "DecodedToken",
]
