"""OutboxService — records domain events in the same transaction as ledger writes."""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.models.enums import EventStatus
from src.models.event_outbox import EventOutbox

logger = logging.getLogger(__name__)


class OutboxService:
    """Publishes events for downstream consumers and lets them acknowledge delivery."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def publish_event(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_id: uuid.UUID,
        payload: dict,
    ) -> EventOutbox:
        """Stage a PENDING event; it becomes visible only if the caller's transaction commits."""
        event = EventOutbox(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            payload=payload,
            status=EventStatus.PENDING,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_pending_events(self, batch_size: int | None = None) -> list[EventOutbox]:
        """Oldest PENDING events first."""
        statement = (
            select(EventOutbox)
            .where(EventOutbox.status == EventStatus.PENDING)
            .order_by(EventOutbox.created_at.asc())
            .limit(batch_size or settings.event_outbox_batch_size)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def mark_completed(self, event_id: uuid.UUID) -> None:
        statement = (
            update(EventOutbox)
            .where(EventOutbox.id == event_id)
            .values(
                status=EventStatus.COMPLETED,
                processed_at=datetime.now(UTC),
            )
        )
        await self.session.execute(statement)
        await self.session.flush()

    async def mark_processing(self, event_id: uuid.UUID) -> None:
        statement = (
            update(EventOutbox)
            .where(EventOutbox.id == event_id)
            .values(status=EventStatus.PROCESSING)
        )
        await self.session.execute(statement)
        await self.session.flush()

    async def mark_failed(self, event_id: uuid.UUID, error: str) -> EventStatus:
        """Record a delivery failure.

        The event goes back to PENDING for another attempt until it has failed
        ``max_retries`` times, then stays FAILED.
        """
        result = await self.session.execute(
            select(EventOutbox).where(EventOutbox.id == event_id)
        )
        event = result.scalar_one()

        retry_count = event.retry_count + 1
        status = EventStatus.FAILED if retry_count >= event.max_retries else EventStatus.PENDING

        await self.session.execute(
            update(EventOutbox)
            .where(EventOutbox.id == event_id)
            .values(retry_count=retry_count, last_error=error, status=status)
        )
        await self.session.flush()
        if status == EventStatus.FAILED:
            logger.warning("Outbox event %s failed permanently: %s", event_id, error)
        return status
