"""Database initialization utilities."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.base import Base
from app.db.session import engine
from app.models.user import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables."""
    # Import models so they register on the metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def create_initial_admin(session: AsyncSession) -> User | None:
    """Create initial admin actor if none exists.

    Returns:
        Created admin user or None if admin already exists
    """
    result = await session.execute(
        select(User).where(User.role == UserRole.ADMIN).limit(1)
    )
    if result.scalar_one_or_none():
        logger.info("Admin user already exists, skipping creation")
        return None

    admin = User(
        email="admin@medibook.local",
        role=UserRole.ADMIN,
        status=UserStatus.ACTIVE,
        first_name="System",
        last_name="Admin",
    )
    session.add(admin)
    await session.commit()
    await session.refresh(admin)

    logger.warning("Created initial admin user admin@medibook.local")
    return admin


async def init_db(session: AsyncSession) -> None:
    """Initialize database with required data."""
    await create_tables()
    await create_initial_admin(session)
    logger.info("Database initialization complete")
