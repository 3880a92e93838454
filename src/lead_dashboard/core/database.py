"""Database connection and session management."""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import settings

logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    settings.database_dsn,
    echo=settings.debug,
    pool_pre_ping=True,
)

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Create the dashboard tables that are missing.

    The leads table is usually owned by the system that registers leads; on a
    shared database this is a no-op apart from the existence checks.
    """
    # Import here to avoid circular imports
    from lead_dashboard.models import Base

    tables = ", ".join(sorted(Base.metadata.tables))
    logger.info(f"Ensuring tables exist: {tables}")
    try:
        async with engine.begin() as conn:
            # checkfirst=True keeps this safe when several workers start together
            await conn.run_sync(
                lambda sync_conn: Base.metadata.create_all(sync_conn, checkfirst=True)
            )
    except Exception as e:
        # Another worker won the race to create them
        if "already exists" not in str(e).lower():
            logger.error(f"Failed to initialize database schema: {e}")
            raise
    logger.info("Database schema ready")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
