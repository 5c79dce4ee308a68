from typing import Awaitable, Callable, Dict

from ..domain.subjects import SubjectRecord
from ..domain.tokens import SubjectKind
from ..exceptions import UnsupportedSubjectKindError, UpdateFailedError
from ..logging_config import get_logger
from ..ports.subjects import AccountUpdater, AffiliateCredentialUpdater

logger = get_logger(__name__)

# Kinds whose records hold a credential; each must have exactly one update path.
CREDENTIAL_KINDS = frozenset({SubjectKind.ACCOUNT, SubjectKind.AFFILIATE})

UpdatePath = Callable[[SubjectRecord, str], Awaitable[bool]]


class SubjectUpdateRouter:
    """Apply an already-hashed password through the path that owns the subject kind.

    Accounts are patched by email through their general update operation.
    Affiliates go through the dedicated credential operation keyed by id,
    since their general update path does not accept credentials.
    """

    def __init__(self, accounts: AccountUpdater, affiliates: AffiliateCredentialUpdater):
        self.accounts = accounts
        self.affiliates = affiliates
        self._paths: Dict[SubjectKind, UpdatePath] = {
            SubjectKind.ACCOUNT: self._update_account,
            SubjectKind.AFFILIATE: self._update_affiliate,
        }
        missing = CREDENTIAL_KINDS - set(self._paths)
        if missing:
            raise RuntimeError(f"no password update path for: {sorted(k.value for k in missing)}")

    async def _update_account(self, subject: SubjectRecord, hashed_password: str) -> bool:
        return await self.accounts.patch(subject.email, {"password": hashed_password})

    async def _update_affiliate(self, subject: SubjectRecord, hashed_password: str) -> bool:
        return await self.affiliates.update_credential(subject.id, hashed_password)

    async def apply_password(
        self, kind: SubjectKind, subject: SubjectRecord, hashed_password: str
    ) -> None:
        path = self._paths.get(kind)
        if path is None:
            raise UnsupportedSubjectKindError(kind=kind.value)
        try:
            ok = await path(subject, hashed_password)
        except Exception as e:
            logger.exception(
                "subject_update_failed", kind=kind.value, subject_id=subject.id, error=str(e)
            )
            raise UpdateFailedError(kind=kind.value) from e
        if not ok:
            logger.warning("subject_update_no_rows", kind=kind.value, subject_id=subject.id)
            raise UpdateFailedError("The record to update no longer exists", kind=kind.value)
        logger.info("subject_password_updated", kind=kind.value, subject_id=subject.id)
