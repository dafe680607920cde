import logging
from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy import MetaData
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession

from settings.config import get_settings

# Alembic-friendly naming convention to ensure stable constraint names
naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)
Base = declarative_base(metadata=metadata)

logger = logging.getLogger(__name__)


@lru_cache()
def get_engine() -> AsyncEngine:
    """
    Create the SQLAlchemy ASYNC engine from settings (psycopg3) on first use.
    """
    settings = get_settings()
    engine = create_async_engine(
        settings.build_database_url(),
        pool_pre_ping=True,  # Validate connections before use
    )
    logger.info("SQLAlchemy async engine created")
    return engine


@lru_cache()
def get_sessionmaker() -> async_sessionmaker:
    return async_sessionmaker(
        bind=get_engine(), autoflush=False, class_=AsyncSession, expire_on_commit=False
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an Async SQLAlchemy session and ensures it's closed.
    """
    async with get_sessionmaker()() as db:
        yield db


async def commit_or_rollback(db: AsyncSession) -> None:
    """
    Commit the session; on failure roll it back so it stays usable, then re-raise.
    """
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
