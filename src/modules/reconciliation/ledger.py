"""QuantityLedger — append-only store of fulfillment events."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import NotFoundException, ValidationException
from src.models.enums import FulfillmentEventKind, FulfillmentEventType
from src.models.fulfillment_event import FulfillmentEvent
from src.models.line_item import DocumentLineItem
from src.modules.reconciliation.summaries import ZERO, to_quantity

logger = logging.getLogger(__name__)


class QuantityLedger:
    """Appends and reads FulfillmentEvents. Never updates or deletes a row.

    The ledger knows nothing about document status; it only guards the shape
    of each event and that it points at a real line item.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def append(
        self,
        line_item: DocumentLineItem | None,
        *,
        document_id: uuid.UUID,
        line_key: str,
        event_type: FulfillmentEventType,
        quantity: Decimal,
        kind: FulfillmentEventKind = FulfillmentEventKind.FULFILLMENT,
        recorded_by: uuid.UUID | None = None,
        billing_address: str | None = None,
        shipping_address: str | None = None,
        corrects_event_id: uuid.UUID | None = None,
        reason: str | None = None,
    ) -> FulfillmentEvent:
        """Stage a new event in the current transaction.

        ``line_item`` is the already-loaded line for (document_id, line_key);
        pass None to have the ledger look it up.
        """
        quantity = to_quantity(quantity, line_key)
        if kind == FulfillmentEventKind.FULFILLMENT and quantity <= ZERO:
            raise ValidationException(
                f"Fulfillment quantity must be positive (line '{line_key}', got {quantity})"
            )
        if kind == FulfillmentEventKind.CORRECTION and quantity == ZERO:
            raise ValidationException(
                f"Correction quantity must be non-zero (line '{line_key}')"
            )

        if line_item is None:
            line_item = await self._get_line_item(document_id, line_key)
        elif line_item.document_id != document_id or line_item.line_key != line_key:
            raise NotFoundException(
                f"Line '{line_key}' not found on document {document_id}"
            )

        event = FulfillmentEvent(
            document_id=document_id,
            line_item_id=line_item.id,
            line_key=line_key,
            event_type=event_type,
            kind=kind,
            quantity=quantity,
            recorded_by=recorded_by,
            billing_address=billing_address,
            shipping_address=shipping_address,
            corrects_event_id=corrects_event_id,
            reason=reason,
        )
        self.db.add(event)
        logger.debug(
            "Staged %s %s event on %s/%s qty=%s",
            kind.value, event_type.value, document_id, line_key, quantity,
        )
        return event

    async def flush(self) -> None:
        """Write staged events so they get their sequence numbers."""
        await self.db.flush()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def events_for(
        self, document_id: uuid.UUID, line_key: str
    ) -> list[FulfillmentEvent]:
        """All events for one line, in append order."""
        await self._get_line_item(document_id, line_key)
        result = await self.db.execute(
            select(FulfillmentEvent)
            .where(
                FulfillmentEvent.document_id == document_id,
                FulfillmentEvent.line_key == line_key,
            )
            .order_by(FulfillmentEvent.sequence.asc())
        )
        return list(result.scalars().all())

    async def events_for_document(
        self,
        document_id: uuid.UUID,
        event_type: FulfillmentEventType | None = None,
    ) -> list[FulfillmentEvent]:
        """All events of a document (optionally one measure), in append order."""
        query = select(FulfillmentEvent).where(FulfillmentEvent.document_id == document_id)
        if event_type is not None:
            query = query.where(FulfillmentEvent.event_type == event_type)
        result = await self.db.execute(query.order_by(FulfillmentEvent.sequence.asc()))
        return list(result.scalars().all())

    async def get_event(self, event_id: uuid.UUID) -> FulfillmentEvent:
        result = await self.db.execute(
            select(FulfillmentEvent).where(FulfillmentEvent.id == event_id)
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise NotFoundException(f"Fulfillment event {event_id} not found")
        return event

    async def _get_line_item(self, document_id: uuid.UUID, line_key: str) -> DocumentLineItem:
        result = await self.db.execute(
            select(DocumentLineItem).where(
                DocumentLineItem.document_id == document_id,
                DocumentLineItem.line_key == line_key,
            )
        )
        line_item = result.scalar_one_or_none()
        if line_item is None:
            raise NotFoundException(
                f"Line '{line_key}' not found on document {document_id}"
            )
        return line_item
