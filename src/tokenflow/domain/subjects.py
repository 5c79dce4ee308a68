from dataclasses import dataclass
from typing import Optional

from .tokens import SubjectKind


@dataclass(slots=True)
class SubjectRecord:
    """What a lookup collaborator returns about an existing user record."""

    id: str
    email: str
    organization_name: Optional[str] = None


@dataclass(slots=True)
class ResolvedUser:
    kind: SubjectKind
    subject: Optional[SubjectRecord] = None

    @property
    def found(self) -> bool:
        return self.kind is not SubjectKind.UNKNOWN and self.subject is not None

    @classmethod
    def unknown(cls) -> "ResolvedUser":
        return cls(kind=SubjectKind.UNKNOWN)
