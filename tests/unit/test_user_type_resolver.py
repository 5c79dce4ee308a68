from unittest.mock import AsyncMock

import pytest

from tokenflow.domain.subjects import SubjectRecord
from tokenflow.domain.tokens import SubjectKind
from tokenflow.services.user_type_resolver import UserTypeResolver


def _lookup(result=None, error=None):
    lookup = AsyncMock()
    if error is not None:
        lookup.find_by_email.side_effect = error
    else:
        lookup.find_by_email.return_value = result
    return lookup


@pytest.mark.asyncio
async def test_account_match_wins_first():
    accounts = _lookup(SubjectRecord(id="a1", email="x@example.com"))
    affiliates = _lookup(SubjectRecord(id="f1", email="x@example.com"))
    resolver = UserTypeResolver.for_accounts_and_affiliates(accounts, affiliates)

    resolved = await resolver.resolve("x@example.com")
    assert resolved.kind is SubjectKind.ACCOUNT
    assert resolved.subject.id == "a1"
    affiliates.find_by_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_affiliate_match():
    resolver = UserTypeResolver.for_accounts_and_affiliates(
        _lookup(None), _lookup(SubjectRecord(id="f1", email="org@example.com", organization_name="Org"))
    )
    resolved = await resolver.resolve("org@example.com")
    assert resolved.found
    assert resolved.kind is SubjectKind.AFFILIATE


@pytest.mark.asyncio
async def test_email_is_normalized():
    accounts = _lookup(None)
    resolver = UserTypeResolver.for_accounts_and_affiliates(accounts, _lookup(None))
    await resolver.resolve("  Mixed@Example.COM ")
    accounts.find_by_email.assert_awaited_once_with("mixed@example.com")


@pytest.mark.asyncio
async def test_no_match_is_unknown():
    resolver = UserTypeResolver.for_accounts_and_affiliates(_lookup(None), _lookup(None))
    resolved = await resolver.resolve("nobody@example.com")
    assert resolved.kind is SubjectKind.UNKNOWN
    assert not resolved.found


@pytest.mark.asyncio
async def test_empty_email_skips_lookups():
    accounts = _lookup(None)
    resolver = UserTypeResolver.for_accounts_and_affiliates(accounts, _lookup(None))
    resolved = await resolver.resolve("   ")
    assert resolved.kind is SubjectKind.UNKNOWN
    accounts.find_by_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_lookup_failure_counts_as_miss():
    resolver = UserTypeResolver.for_accounts_and_affiliates(
        _lookup(error=RuntimeError("db down")),
        _lookup(SubjectRecord(id="f1", email="org@example.com")),
    )
    resolved = await resolver.resolve("org@example.com")
    assert resolved.kind is SubjectKind.AFFILIATE
