from typing import Any, Dict, Optional, Protocol

from ..domain.subjects import SubjectRecord


class SubjectLookup(Protocol):
    """Per-kind lookup; returning None is a normal outcome, not an error."""

    async def find_by_email(self, email: str) -> Optional[SubjectRecord]: ...


class AccountUpdater(Protocol):
    async def patch(self, email: str, fields: Dict[str, Any]) -> bool: ...


class AffiliateCredentialUpdater(Protocol):
    async def update_credential(self, affiliate_id: str, hashed_password: str) -> bool: ...
