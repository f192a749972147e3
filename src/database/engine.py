"""Async engine and session factory for the ledger database."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
    pool_recycle=3600,
    echo=settings.db_echo,
)

# expire_on_commit=False: response schemas read ORM attributes after get_db commits
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
