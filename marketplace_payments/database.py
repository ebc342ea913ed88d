"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - create_engine(): Builds the async engine (the connection pool)
  - create_session_factory(): Builds the AsyncSession factory bound to it
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request
  - session_scope(): The same commit/rollback/close discipline for code
    running outside a request (scripts, background sweeps)

Resource handle:
  There is no module-level engine. The application factory builds exactly one
  engine at process start and stores it, with its session factory, on
  app.state. Everything that needs the database receives a session derived
  from that handle, so tests can point the whole app at another database by
  overriding get_db.

Session lifecycle:
  Each API request gets its own session via get_db(). The session commits on
  success, rolls back on any exception, and is closed (its connection
  returned to the pool) on every exit path.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from marketplace_payments.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for the configured DATABASE_URL.

    Pool sizing and checkout timeouts only apply to server databases; SQLite
    gets a busy timeout instead so concurrent writers wait for the file lock
    rather than failing immediately.
    """
    url = make_url(settings.DATABASE_URL)
    engine_kwargs: dict = {"echo": settings.DEBUG}

    if url.get_backend_name() == "sqlite":
        engine_kwargs["connect_args"] = {
            "timeout": settings.DB_CONNECT_TIMEOUT_SECONDS,
        }
    else:
        engine_kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
            pool_pre_ping=True,
        )

    return create_async_engine(url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps attributes readable after commit without a
    # lazy reload, which would need a synchronous DB call in async context.
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Provides metadata tracking for create_all() and Alembic migrations.
    """
    pass


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Transactional scope around a series of operations.

    Commits when the block exits normally, rolls back when it raises, and
    always closes the session.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session factory comes from app.state, populated by create_app().
    """
    async with session_scope(request.app.state.session_factory) as session:
        yield session
