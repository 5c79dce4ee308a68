"""Dependency injection for FastAPI.

This package provides all FastAPI dependency functions organized by responsibility:
- providers: Singleton providers (settings, password hasher, cache, notification sender)
- injection: Database session, repository and workflow dependency injection
"""

from .injection import (
    get_approval_workflow,
    get_db,
    get_recovery_workflow,
    get_repos,
    get_token_store,
)
from .providers import (
    get_cache_from_request,
    get_notification_sender,
    get_password_hasher,
    get_settings,
)

__all__ = [
    # Providers
    "get_settings",
    "get_password_hasher",
    "get_notification_sender",
    "get_cache_from_request",
    # Injection
    "get_db",
    "get_repos",
    "get_token_store",
    "get_approval_workflow",
    "get_recovery_workflow",
]
