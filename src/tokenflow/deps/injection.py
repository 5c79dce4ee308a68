"""Dependency injection functions for FastAPI.

This module provides FastAPI Depends() functions for repositories, the token
store, database sessions and the two workflows.
"""

from typing import Any, AsyncGenerator, Dict

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..infrastructure.repositories.token_store import CacheTokenStore
from ..services.anti_enumeration import AntiEnumerationGuard
from ..services.approval_workflow import ApprovalWorkflow
from ..services.recovery_workflow import RecoveryWorkflow
from ..services.subject_update_router import SubjectUpdateRouter
from ..services.user_type_resolver import UserTypeResolver
from .providers import (
    get_cache_from_request,
    get_notification_sender,
    get_password_hasher,
    get_settings,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    The db module is read at call time so the factory registered by
    ``db.create_sessionmaker`` during startup (or by tests) is respected.
    """
    from .. import db as db_mod

    if db_mod.AsyncDbSessionFactory is None:
        raise RuntimeError(
            "Database session factory not initialized. Call create_engine()/create_sessionmaker() in your application startup."
        )
    async with db_mod.AsyncDbSessionFactory() as db_session:
        yield db_session


async def get_repos(db_session: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """Subject repositories bound to the request's database session."""
    from ..infrastructure.repositories import get_repositories

    return get_repositories(db_session)


async def get_token_store(
    request: Request, settings: Settings = Depends(get_settings)
) -> CacheTokenStore:
    return CacheTokenStore(
        get_cache_from_request(request),
        retention_grace_seconds=settings.token_retention_grace_seconds,
    )


async def get_approval_workflow(
    request: Request,
    repos: Dict[str, Any] = Depends(get_repos),
    store: CacheTokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
) -> ApprovalWorkflow:
    return ApprovalWorkflow(
        store,
        repos["registrations"],
        sender=get_notification_sender(request),
        ttl_seconds=settings.approval_token_ttl_seconds,
        approval_base_url=settings.approval_base_url,
        admin_emails=settings.admin_email_list(),
    )


async def get_recovery_workflow(
    request: Request,
    repos: Dict[str, Any] = Depends(get_repos),
    store: CacheTokenStore = Depends(get_token_store),
    settings: Settings = Depends(get_settings),
) -> RecoveryWorkflow:
    return RecoveryWorkflow(
        store,
        UserTypeResolver.for_accounts_and_affiliates(repos["accounts"], repos["affiliates"]),
        SubjectUpdateRouter(repos["accounts"], repos["affiliates"]),
        get_password_hasher(),
        sender=get_notification_sender(request),
        guard=AntiEnumerationGuard(settings.anti_enumeration_min_seconds),
        ttl_seconds=settings.recovery_token_ttl_seconds,
        frontend_url=settings.frontend_url,
        password_min_length=settings.password_min_length,
        password_max_length=settings.password_max_length,
    )
