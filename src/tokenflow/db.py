from typing import Any, Optional, cast

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from .config import Settings

# Database engine and session factory for the registration/account/affiliate tables
engine: Optional[Any] = None
AsyncDbSessionFactory: Any = None


def create_engine(settings: Settings) -> Any:
    """Create and return an async engine for the given settings and register it
    on the module so other modules (or tests) can rebind or inspect it.

    - pool_recycle: Recycle connections after N seconds (prevents stale connections)
    - pool_pre_ping: Test connection health before use (auto-reconnect on failure)
    """
    global engine
    database_url = settings.database_url

    # Only add command_timeout for PostgreSQL (asyncpg driver supports it)
    connect_args = {}
    if "postgresql" in database_url:
        connect_args["command_timeout"] = 30

    engine = create_async_engine(
        database_url,
        echo=False,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        connect_args=connect_args,
    )
    return engine


def create_sessionmaker(bind_engine: Any) -> Any:
    """Create and register a SQLAlchemy AsyncSession factory bound to the provided engine."""
    global AsyncDbSessionFactory
    AsyncDbSessionFactory = cast(
        Any, sessionmaker(bind=bind_engine, expire_on_commit=False, class_=AsyncSession)
    )  # type: ignore[call-overload]
    return AsyncDbSessionFactory
