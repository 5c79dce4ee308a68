import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tokenflow.domain.subjects import SubjectRecord
from tokenflow.domain.tokens import SubjectKind, TokenAction
from tokenflow.exceptions import (
    AlreadyProcessedError,
    InvalidTokenError,
    TokenExpiredError,
    UpdateFailedError,
    ValidationError,
)
from tokenflow.services.anti_enumeration import AntiEnumerationGuard
from tokenflow.services.notifications import drain_notifications
from tokenflow.services.recovery_workflow import REQUEST_ACCEPTED_MESSAGE, RecoveryWorkflow
from tokenflow.services.subject_update_router import SubjectUpdateRouter
from tokenflow.services.token_codec import TokenCodec
from tokenflow.services.user_type_resolver import UserTypeResolver

ACCOUNT = SubjectRecord(id="acc-1", email="user@example.com")
AFFILIATE = SubjectRecord(id="aff-1", email="partner@example.com", organization_name="Acme Labs")


class Directory:
    """Accounts and affiliates keyed by email, recording every write."""

    def __init__(self, records):
        self.records = {r.email: r for r in records}
        self.find_by_email = AsyncMock(side_effect=lambda email: self.records.get(email))
        self.patch = AsyncMock(return_value=True)
        self.update_credential = AsyncMock(return_value=True)


async def _no_sleep(seconds):
    return None


@pytest.fixture
def accounts():
    return Directory([ACCOUNT])


@pytest.fixture
def affiliates():
    return Directory([AFFILIATE])


@pytest.fixture
def hasher():
    h = MagicMock()
    h.hash.side_effect = lambda plaintext: f"hashed:{plaintext}"
    return h


@pytest.fixture
def workflow(store, accounts, affiliates, hasher, sender, clock):
    return RecoveryWorkflow(
        store,
        UserTypeResolver.for_accounts_and_affiliates(accounts, affiliates),
        SubjectUpdateRouter(accounts, affiliates),
        hasher,
        sender=sender,
        guard=AntiEnumerationGuard(min_seconds=0, sleep=_no_sleep),
        ttl_seconds=1800,
        frontend_url="http://frontend.test",
        clock=clock,
    )


async def _request(workflow, email):
    body = await workflow.request(email)
    await drain_notifications()
    return body


def _reset_token(sender):
    url = sender.sent[-1]["context"]["reset_url"]
    return url.split("token=", 1)[1]


@pytest.mark.asyncio
async def test_request_for_account_sends_reset_link(workflow, sender):
    body = await _request(workflow, "user@example.com")
    assert body == {"success": True, "message": REQUEST_ACCEPTED_MESSAGE}

    mail = sender.sent[-1]
    assert mail["template"] == "password_reset_request"
    assert mail["to"] == "user@example.com"
    assert mail["kind"] is SubjectKind.ACCOUNT
    assert mail["context"]["organization_context"] == ""
    assert mail["context"]["expires_in_minutes"] == 30
    assert _reset_token(sender).startswith("reset_acc_")


@pytest.mark.asyncio
async def test_request_for_affiliate_uses_organization_framing(workflow, sender):
    await _request(workflow, "partner@example.com")
    mail = sender.sent[-1]
    assert mail["kind"] is SubjectKind.AFFILIATE
    assert mail["context"]["organization_context"] == " for Acme Labs"
    assert mail["context"]["account_type"] == "affiliate"
    assert _reset_token(sender).startswith("reset_aff_")


def test_affiliate_without_organization_name():
    record = SubjectRecord(id="aff-2", email="p@example.com")
    assert (
        RecoveryWorkflow.organization_context(SubjectKind.AFFILIATE, record)
        == " for your organization"
    )


@pytest.mark.asyncio
async def test_unknown_and_known_email_answer_identically(workflow, sender):
    known = await _request(workflow, "user@example.com")
    unknown = await _request(workflow, "ghost@example.com")
    assert known == unknown
    assert len(sender.sent) == 1


@pytest.mark.asyncio
async def test_request_absorbs_collaborator_failures(store, hasher, sender, clock):
    broken = AsyncMock()
    broken.find_by_email.side_effect = RuntimeError("db down")
    failing_store = AsyncMock()
    failing_store.put.side_effect = RuntimeError("cache down")
    accounts = Directory([ACCOUNT])
    workflow = RecoveryWorkflow(
        failing_store,
        UserTypeResolver.for_accounts_and_affiliates(accounts, broken),
        SubjectUpdateRouter(accounts, broken),
        hasher,
        sender=sender,
        guard=AntiEnumerationGuard(min_seconds=0, sleep=_no_sleep),
        clock=clock,
    )
    assert (await _request(workflow, "user@example.com"))["success"] is True
    assert (await _request(workflow, "nobody@example.com"))["success"] is True


@pytest.mark.asyncio
async def test_reset_routes_account_by_email(workflow, sender, accounts, affiliates, hasher):
    await _request(workflow, "user@example.com")
    token = _reset_token(sender)

    result = await workflow.reset(token, "NewPass123!")
    assert result.success
    assert result.subject_kind == "account"
    accounts.patch.assert_awaited_once_with("user@example.com", {"password": "hashed:NewPass123!"})
    affiliates.update_credential.assert_not_awaited()
    assert sender.sent[-1]["template"] == "password_changed"


@pytest.mark.asyncio
async def test_reset_routes_affiliate_by_id(workflow, sender, accounts, affiliates):
    await _request(workflow, "partner@example.com")
    token = _reset_token(sender)

    await workflow.reset(token, "NewPass123!")
    affiliates.update_credential.assert_awaited_once_with("aff-1", "hashed:NewPass123!")
    accounts.patch.assert_not_awaited()


@pytest.mark.asyncio
async def test_reset_uses_token_kind_not_a_fresh_lookup(workflow, sender, accounts, affiliates):
    await _request(workflow, "partner@example.com")
    token = _reset_token(sender)
    # an account now claims the same email; the link still targets the affiliate
    accounts.records["partner@example.com"] = SubjectRecord(id="acc-9", email="partner@example.com")

    await workflow.reset(token, "NewPass123!")
    affiliates.update_credential.assert_awaited_once()
    accounts.patch.assert_not_awaited()


@pytest.mark.asyncio
async def test_reset_twice_applies_once(workflow, sender, accounts, hasher):
    await _request(workflow, "user@example.com")
    token = _reset_token(sender)
    await workflow.reset(token, "NewPass123!")

    with pytest.raises(AlreadyProcessedError) as exc:
        await workflow.reset(token, "Another123!")
    assert exc.value.context["previous"]["status"] == "password_updated"
    assert hasher.hash.call_count == 1
    assert accounts.patch.await_count == 1


@pytest.mark.asyncio
async def test_expired_affiliate_link_leaves_credential_unchanged(
    workflow, sender, affiliates, hasher, clock
):
    await _request(workflow, "partner@example.com")
    token = _reset_token(sender)
    clock.advance(minutes=31)

    with pytest.raises(TokenExpiredError):
        await workflow.reset(token, "NewPass123!")
    affiliates.update_credential.assert_not_awaited()
    hasher.hash.assert_not_called()


@pytest.mark.asyncio
async def test_weak_password_leaves_link_usable(workflow, sender, accounts):
    await _request(workflow, "user@example.com")
    token = _reset_token(sender)

    with pytest.raises(ValidationError):
        await workflow.reset(token, "short")
    assert await workflow.validate(token) is True
    accounts.patch.assert_not_awaited()


@pytest.mark.asyncio
async def test_validate_before_and_after_reset(workflow, sender, clock):
    await _request(workflow, "user@example.com")
    token = _reset_token(sender)

    assert await workflow.validate(token) is True
    await workflow.reset(token, "NewPass123!")
    assert await workflow.validate(token) is False


@pytest.mark.asyncio
async def test_validate_rejects_other_links(workflow, clock):
    assert await workflow.validate("garbage") is False
    approve = TokenCodec().mint(SubjectKind.REGISTRATION, "r1", TokenAction.APPROVE, 60, clock())
    assert await workflow.validate(approve.value) is False


@pytest.mark.asyncio
async def test_reset_rejects_non_reset_links(workflow, store, clock):
    approve = TokenCodec().mint(SubjectKind.REGISTRATION, "r1", TokenAction.APPROVE, 60, clock())
    await store.put(approve)
    with pytest.raises(InvalidTokenError):
        await workflow.reset(approve.value, "NewPass123!")
    assert (await store.peek(approve.value)).consumed_at is None


@pytest.mark.asyncio
async def test_update_failure_keeps_link_consumed(workflow, sender, affiliates):
    affiliates.update_credential.return_value = False
    await _request(workflow, "partner@example.com")
    token = _reset_token(sender)

    with pytest.raises(UpdateFailedError):
        await workflow.reset(token, "NewPass123!")
    with pytest.raises(AlreadyProcessedError) as exc:
        await workflow.reset(token, "NewPass123!")
    assert exc.value.context["previous"]["status"] == "update_failed"


class SlowSender:
    def __init__(self, delay):
        self.delay = delay
        self.sent = []

    async def send(self, kind, subject_id, action, context):
        await asyncio.sleep(self.delay)
        self.sent.append({"subject_id": subject_id, "template": context.get("template")})


@pytest.mark.asyncio
async def test_slow_mail_delivery_does_not_lengthen_known_email_requests(
    store, accounts, affiliates, hasher, clock
):
    slow = SlowSender(delay=0.3)
    workflow = RecoveryWorkflow(
        store,
        UserTypeResolver.for_accounts_and_affiliates(accounts, affiliates),
        SubjectUpdateRouter(accounts, affiliates),
        hasher,
        sender=slow,
        guard=AntiEnumerationGuard(min_seconds=0.1),
        clock=clock,
    )
    loop = asyncio.get_running_loop()

    started = loop.time()
    await workflow.request("user@example.com")
    known_elapsed = loop.time() - started

    started = loop.time()
    await workflow.request("ghost@example.com")
    unknown_elapsed = loop.time() - started

    assert known_elapsed < slow.delay
    assert abs(known_elapsed - unknown_elapsed) < 0.1
    assert slow.sent == []

    await drain_notifications()
    assert slow.sent == [{"subject_id": "acc-1", "template": "password_reset_request"}]
