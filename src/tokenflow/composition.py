from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI

from . import db as db_mod
from .config import Settings
from .logging_config import get_logger
from .services.notifications import drain_notifications
from .setup_db import create_all

logger = get_logger(__name__)


@dataclass
class WireResult:
    app: Any
    engine: Any
    sessionmaker: Any
    teardown: Any


async def wire_app(app: FastAPI, settings: Settings | None = None) -> WireResult:
    """Runtime wiring run at startup.

    Sets the cache client and notification sender on ``app.state``, builds
    the DB engine and sessionmaker using the factories in ``db`` and creates
    the tables.

    This function creates the DB engine, so it MUST NOT be called at module
    import time; tests set DATABASE_URL before any engine exists.
    """
    settings = settings or getattr(app.state, "settings", None) or Settings()
    app.state.settings = settings

    from .infrastructure.cache.redis_client import AioredisClient, InMemoryCache

    cache_client: Any = InMemoryCache()
    if settings.redis_url:
        cache_client = AioredisClient(settings.redis_url)
        logger.info("initialized redis cache client", redis_url=settings.redis_url)
    app.state.cache_client = cache_client

    from .infrastructure.email.mock import MockNotificationSender

    sender: Any = MockNotificationSender()
    if settings.sendgrid_api_key:
        from .infrastructure.email.sendgrid import SendGridNotificationSender

        sender = SendGridNotificationSender(
            settings.sendgrid_api_key, settings.email_from, settings.organization_name
        )
    app.state.notification_sender = sender

    logger.info(
        "initialized notification sender and cache client",
        sender=type(sender).__name__,
        cache=type(cache_client).__name__,
    )

    db_engine = db_mod.create_engine(settings)
    session_factory = db_mod.create_sessionmaker(db_engine)
    await create_all(engine=db_engine)

    async def _teardown():
        await drain_notifications()
        cache = getattr(app.state, "cache_client", None)
        if cache is not None:
            try:
                await cache.close()
            except Exception as e:
                logger.debug("cache_client_close_failed", error=str(e))
        try:
            await db_engine.dispose()
        except Exception as e:
            logger.debug("engine_dispose_failed", error=str(e))

    return WireResult(
        app=app, engine=db_engine, sessionmaker=session_factory, teardown=_teardown
    )
