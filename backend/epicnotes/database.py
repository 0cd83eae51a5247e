"""
Epic Notes Backend - Database Session Management
==================================================

What:  Declarative base, the `Database` handle (async engine + session
       factory) and the FastAPI session dependency.
How:   The app factory constructs one `Database` per serving process and
       stores it on `app.state.database`. Request handlers receive a session
       through `get_db_session`, which commits on success and rolls back on
       error. Nothing here is a module-level connection singleton, so tests
       can hand the app an in-memory SQLite database.

Connection Pooling (PostgreSQL):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite (tests, local hacking) uses a StaticPool so every session shares
    the single in-memory connection.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from epicnotes.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic."""
    pass


def _engine_options(url: str, config: Settings) -> dict:
    if url.startswith("sqlite"):
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        "pool_size": config.db_pool_size,
        "max_overflow": config.db_max_overflow,
        "pool_pre_ping": config.db_pool_pre_ping,
        "pool_recycle": 3600,
    }


class Database:
    """
    Process-scoped datastore handle.

    Owns the async engine and the session factory. Built once by
    `create_app()` and disposed during shutdown.

    Usage:
        database = Database("sqlite+aiosqlite:///:memory:")
        await database.create_all()
        async with database.session() as session:
            ...
    """

    def __init__(self, url: Optional[str] = None, config: Optional[Settings] = None):
        config = config or default_settings
        self.url = url or config.database_url
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=config.log_level == "DEBUG",
            **_engine_options(self.url, config),
        )
        # expire_on_commit=False: ORM objects stay readable after commit
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        """Open a new session (use as an async context manager)."""
        return self.session_factory()

    async def create_all(self) -> None:
        """Create every table known to `Base.metadata` (tests and local dev only)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Run SELECT 1; returns False instead of raising when unreachable."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Close every pooled connection (application shutdown)."""
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the handle the app was built with."""
    return request.app.state.database


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides one database session per request.

    Commits if the handler returns normally, rolls back on any exception,
    and always closes the session so the connection returns to the pool.
    """
    database = get_database(request)
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
