"""Singleton providers for application-wide services and clients.

This module handles lazy initialization of singleton instances like Settings,
the password hasher, cache clients, and notification senders. Clients set up
at startup live on ``app.state`` and take precedence over the fallbacks here.
"""

from typing import Any

from fastapi import Request

from ..config import Settings
from ..infrastructure.cache.redis_client import InMemoryCache
from ..infrastructure.email.mock import MockNotificationSender
from ..infrastructure.security.password_hasher import PasslibPasswordHasher
from ..ports.hashing import PasswordHasher
from ..ports.notifications import NotificationSender

# Lazy singletons to avoid import-time side-effects
_settings: Settings | None = None
_password_hasher: PasslibPasswordHasher | None = None
_fallback_cache: InMemoryCache | None = None


def _default_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_settings(request: Request = None) -> Settings:  # type: ignore[assignment]
    """Settings attached to the app at creation time, else a process-wide default."""
    if request is not None:
        settings = getattr(request.app.state, "settings", None)
        if settings is not None:
            return settings
    return _default_settings()


def get_password_hasher() -> PasswordHasher:
    """Get or create singleton PasslibPasswordHasher instance."""
    global _password_hasher
    if _password_hasher is None:
        _password_hasher = PasslibPasswordHasher()
    return _password_hasher


def get_cache_from_request(request: Any = None):
    """Get cache client from request.app.state with an in-process fallback.

    The fallback is shared by every request so tokens issued by one call can
    be consumed by the next even when startup wiring has not run.
    """
    global _fallback_cache
    if request is not None:
        cache = getattr(request.app.state, "cache_client", None)
        if cache is not None:
            return cache
    if _fallback_cache is None:
        _fallback_cache = InMemoryCache()
    return _fallback_cache


def get_notification_sender(request: Request = None) -> NotificationSender:  # type: ignore[assignment]
    """Prefer the app-initialized sender; fall back to the recording mock."""
    if request is not None:
        sender = getattr(request.app.state, "notification_sender", None)
        if sender is not None:
            return sender  # type: ignore[no-any-return]
    return MockNotificationSender()
