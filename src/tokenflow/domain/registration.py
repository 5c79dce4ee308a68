import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..exceptions import ValidationError


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def parse(cls, raw: object) -> "ApprovalDecision":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            raise ValidationError("action must be 'approve' or 'reject'", action=repr(raw))
        try:
            return cls(raw.strip().lower())
        except ValueError:
            raise ValidationError("action must be 'approve' or 'reject'", action=raw) from None

    @property
    def target_status(self) -> RegistrationStatus:
        if self is ApprovalDecision.APPROVE:
            return RegistrationStatus.APPROVED
        return RegistrationStatus.REJECTED


@dataclass
class PendingRegistration:
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization_name: Optional[str] = None
    status: RegistrationStatus = RegistrationStatus.PENDING
    decision_reason: Optional[str] = None
    decided_at: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.datetime.now(datetime.timezone.utc)

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or self.email
