from typing import Optional, Sequence, Tuple

from ..domain.subjects import ResolvedUser
from ..domain.tokens import SubjectKind
from ..logging_config import get_logger
from ..ports.subjects import SubjectLookup

logger = get_logger(__name__)


class UserTypeResolver:
    """Decide which kind of user record owns an email.

    Lookups are tried in the given order and the first hit wins. A lookup that
    raises is logged and counted as a miss; ``resolve`` never raises.
    """

    def __init__(self, lookups: Sequence[Tuple[SubjectKind, SubjectLookup]]):
        self.lookups = list(lookups)

    @classmethod
    def for_accounts_and_affiliates(
        cls, accounts: SubjectLookup, affiliates: SubjectLookup
    ) -> "UserTypeResolver":
        return cls([(SubjectKind.ACCOUNT, accounts), (SubjectKind.AFFILIATE, affiliates)])

    async def resolve(self, email: Optional[str]) -> ResolvedUser:
        normalized = (email or "").strip().lower()
        if not normalized:
            return ResolvedUser.unknown()
        for kind, lookup in self.lookups:
            try:
                subject = await lookup.find_by_email(normalized)
            except Exception as e:
                logger.warning("user_lookup_failed", kind=kind.value, error=str(e))
                continue
            if subject is not None:
                logger.debug("user_type_resolved", kind=kind.value, subject_id=subject.id)
                return ResolvedUser(kind=kind, subject=subject)
        return ResolvedUser.unknown()
