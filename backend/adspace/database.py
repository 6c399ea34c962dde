"""
Database configuration and session management.
Uses PostgreSQL via asyncpg with SQLAlchemy 2 async engine.
SQLite (aiosqlite) is accepted for local development and the test suite.

One request == one session == one transaction: `get_db` commits when the
handler returns and rolls back on any exception, so a service operation
either lands completely or not at all.
"""

import logging
import ssl
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from sqlalchemy import text
from adspace.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def connect_args_for(url: str) -> dict:
    """Driver connect args. DATABASE_SSL=require turns on TLS without certificate checks."""
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    args = {"timeout": 30}
    if settings.database_ssl == "require":
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        args["ssl"] = ctx
    elif settings.database_ssl == "verify":
        args["ssl"] = ssl.create_default_context()
    return args


def _engine_kwargs() -> dict:
    url = settings.database_url
    kwargs = {"connect_args": connect_args_for(url)}
    if settings.is_sqlite:
        # In-memory SQLite only lives as long as its single connection
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    kwargs.update(pool_size=settings.db_pool_size, max_overflow=10, pool_pre_ping=True)
    return kwargs


engine = create_async_engine(settings.database_url, echo=False, **_engine_kwargs())

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Dependency that provides a database session with auto-commit/rollback."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """
    Create all tables defined in models.
    Uses create_all which only creates tables that don't exist yet;
    schema changes go through Alembic.
    """
    # Import models to ensure they are registered with Base.metadata
    import adspace.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database initialized with {len(Base.metadata.tables)} tables: "
                    f"{', '.join(Base.metadata.tables.keys())}")


async def check_db_connection() -> bool:
    """Test database connectivity."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
