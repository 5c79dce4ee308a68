from datetime import datetime, timedelta, timezone

import pytest

from tokenflow.domain.tokens import SubjectKind, TokenAction
from tokenflow.exceptions import InvalidTokenError, MalformedTokenError
from tokenflow.services.token_codec import TokenCodec

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_generate_layout():
    codec = TokenCodec()
    value = codec.generate(
        SubjectKind.REGISTRATION, TokenAction.APPROVE, NOW, NOW + timedelta(days=7)
    )
    action, kind, issued, rand, expires = value.split("_")
    assert action == "approve"
    assert kind == "reg"
    assert int(issued) == int(NOW.timestamp() * 1000)
    assert len(rand) == 64
    assert int(expires) - int(issued) == 7 * 24 * 3600 * 1000


def test_values_are_unique():
    codec = TokenCodec()
    values = {
        codec.generate(SubjectKind.ACCOUNT, TokenAction.PASSWORD_RESET, NOW, NOW + timedelta(minutes=30))
        for _ in range(200)
    }
    assert len(values) == 200


def test_mint_sets_window_and_subject():
    token = TokenCodec().mint(
        SubjectKind.AFFILIATE, 42, TokenAction.PASSWORD_RESET, 1800, NOW, {"email": "a@x.io"}
    )
    assert token.value.startswith("reset_aff_")
    assert token.subject_id == "42"
    assert token.expires_at - token.issued_at == timedelta(minutes=30)
    assert token.consumed_at is None
    assert token.data == {"email": "a@x.io"}
    # subject id never leaks into the link
    assert "_42_" not in token.value


def test_decode_roundtrip_fields():
    codec = TokenCodec()
    token = codec.mint(SubjectKind.REGISTRATION, "r1", TokenAction.REJECT, 3600, NOW)
    decoded = codec.decode(token.value)
    assert decoded.action is TokenAction.REJECT
    assert decoded.subject_kind is SubjectKind.REGISTRATION
    assert decoded.issued_at == NOW
    assert decoded.expires_at == NOW + timedelta(hours=1)


def test_mint_rejects_disallowed_kind():
    with pytest.raises(ValueError):
        TokenCodec().mint(SubjectKind.ACCOUNT, "1", TokenAction.APPROVE, 60, NOW)
    with pytest.raises(ValueError):
        TokenCodec().mint(SubjectKind.REGISTRATION, "1", TokenAction.PASSWORD_RESET, 60, NOW)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "approve_reg_123",
        "approve_reg_1_" + "a" * 64 + "_2_extra",
        "delete_reg_1_" + "a" * 64 + "_2",
        "approve_acc_1_" + "a" * 64 + "_2",
        "reset_reg_1_" + "a" * 64 + "_2",
        "approve_reg_1_" + "g" * 64 + "_2",
        "approve_reg_1_" + "a" * 10 + "_2",
        "approve_reg_x_" + "a" * 64 + "_2",
        "approve_reg_5_" + "a" * 64 + "_5",
    ],
)
def test_decode_malformed(value):
    with pytest.raises(MalformedTokenError) as exc:
        TokenCodec().decode(value)
    assert exc.value.code == "malformed_token"
    # still an invalid-token error for callers that only care about that
    assert isinstance(exc.value, InvalidTokenError)
