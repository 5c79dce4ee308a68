"""Mint and parse link tokens.

Token values look like::

    <action>_<kind>_<issuedAtMillis>_<randomHex>_<expiresAtMillis>

for example ``approve_reg_1718000000000_9f...e1_1718604800000``. The random part
is 32 bytes from :mod:`secrets`; the subject id is never part of the value.
"""

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..domain.tokens import DecodedToken, SubjectKind, Token, TokenAction, utc_now
from ..exceptions import MalformedTokenError

RANDOM_BYTES = 32

ACTION_TAGS = {
    TokenAction.APPROVE: "approve",
    TokenAction.REJECT: "reject",
    TokenAction.PASSWORD_RESET: "reset",
}
KIND_TAGS = {
    SubjectKind.REGISTRATION: "reg",
    SubjectKind.ACCOUNT: "acc",
    SubjectKind.AFFILIATE: "aff",
}
# Which kinds each action is ever minted for
ALLOWED_KINDS = {
    TokenAction.APPROVE: {SubjectKind.REGISTRATION},
    TokenAction.REJECT: {SubjectKind.REGISTRATION},
    TokenAction.PASSWORD_RESET: {SubjectKind.ACCOUNT, SubjectKind.AFFILIATE},
}

_ACTIONS_BY_TAG = {tag: action for action, tag in ACTION_TAGS.items()}
_KINDS_BY_TAG = {tag: kind for kind, tag in KIND_TAGS.items()}
_HEX_RE = re.compile(rf"^[0-9a-f]{{{RANDOM_BYTES * 2}}}$")
_MILLIS_RE = re.compile(r"^[0-9]{1,15}$")


def _to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


class TokenCodec:
    def generate(
        self,
        subject_kind: SubjectKind,
        action: TokenAction,
        issued_at: datetime,
        expires_at: datetime,
    ) -> str:
        if subject_kind not in ALLOWED_KINDS[action]:
            raise ValueError(f"{action.value} tokens cannot target {subject_kind.value}")
        return "_".join(
            [
                ACTION_TAGS[action],
                KIND_TAGS[subject_kind],
                str(_to_millis(issued_at)),
                secrets.token_hex(RANDOM_BYTES),
                str(_to_millis(expires_at)),
            ]
        )

    def mint(
        self,
        subject_kind: SubjectKind,
        subject_id: str,
        action: TokenAction,
        ttl: int | timedelta,
        now: Optional[datetime] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Token:
        """Build a fresh, unconsumed token record for one subject and action."""
        issued_at = now or utc_now()
        lifetime = ttl if isinstance(ttl, timedelta) else timedelta(seconds=int(ttl))
        expires_at = issued_at + lifetime
        return Token(
            value=self.generate(subject_kind, action, issued_at, expires_at),
            subject_kind=subject_kind,
            subject_id=str(subject_id),
            action=action,
            issued_at=issued_at,
            expires_at=expires_at,
            data=dict(data or {}),
        )

    def decode(self, value: str) -> DecodedToken:
        if not isinstance(value, str):
            raise MalformedTokenError()
        parts = value.split("_")
        if len(parts) != 5:
            raise MalformedTokenError()
        action_tag, kind_tag, issued_raw, random_part, expires_raw = parts
        action = _ACTIONS_BY_TAG.get(action_tag)
        kind = _KINDS_BY_TAG.get(kind_tag)
        if action is None or kind is None or kind not in ALLOWED_KINDS[action]:
            raise MalformedTokenError()
        if not _HEX_RE.match(random_part):
            raise MalformedTokenError()
        if not (_MILLIS_RE.match(issued_raw) and _MILLIS_RE.match(expires_raw)):
            raise MalformedTokenError()
        issued_ms, expires_ms = int(issued_raw), int(expires_raw)
        if expires_ms <= issued_ms:
            raise MalformedTokenError()
        return DecodedToken(
            action=action,
            subject_kind=kind,
            issued_at=_from_millis(issued_ms),
            expires_at=_from_millis(expires_ms),
        )
