import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.engine import async_session

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields one transactional session per request.

    Everything a request writes (ledger events, status, outbox rows) commits
    together or not at all. Row locks taken with SELECT ... FOR UPDATE are
    held until the commit or rollback below.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.debug("Rolled back request transaction: %s", type(exc).__name__)
            raise
