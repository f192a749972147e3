"""Reconciliation service — records fulfillment, corrections and cancellation.

Every write runs inside the caller's transaction with the parent document row
locked (SELECT ... FOR UPDATE), so concurrent writes against the same document
serialize while different documents proceed independently.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.exceptions import (
    InvalidStateException,
    NotFoundException,
    OverFulfillmentException,
    ValidationException,
)
from src.models.enums import (
    DocumentFamily,
    DocumentStatus,
    FulfillmentEventKind,
    FulfillmentEventType,
)
from src.models.fulfillment_event import FulfillmentEvent
from src.models.line_item import DocumentLineItem
from src.models.parent_document import ParentDocument
from src.modules.events.outbox_service import OutboxService
from src.modules.identity.auth import AuthenticatedUser
from src.modules.reconciliation import state_machine
from src.modules.reconciliation.address import resolve_address
from src.modules.reconciliation.constants import (
    EVENT_DOCUMENT_CANCELLED,
    EVENT_DOCUMENT_STATUS_CHANGED,
    EVENT_FULFILLMENT_CORRECTED,
    EVENT_FULFILLMENT_RECORDED,
    FAMILY_STATUS_EVENT_TYPE,
)
from src.modules.reconciliation.ledger import QuantityLedger
from src.modules.reconciliation.summaries import ZERO, FulfillmentSummary, summarize, to_quantity

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    document_id: uuid.UUID
    document_number: str
    family: DocumentFamily
    event_type: FulfillmentEventType
    status: DocumentStatus
    summaries: list[FulfillmentSummary]
    recorded_events: list[FulfillmentEvent] = field(default_factory=list)


class ReconciliationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = QuantityLedger(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _lock_document(self, document_id: uuid.UUID) -> ParentDocument:
        """Load the document with its lines and counterparty, holding a row lock."""
        result = await self.db.execute(
            select(ParentDocument)
            .options(
                selectinload(ParentDocument.line_items),
                selectinload(ParentDocument.counterparty),
            )
            .where(ParentDocument.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundException(f"Document {document_id} not found")
        return document

    async def _get_document(self, document_id: uuid.UUID) -> ParentDocument:
        result = await self.db.execute(
            select(ParentDocument)
            .options(selectinload(ParentDocument.line_items))
            .where(ParentDocument.id == document_id)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundException(f"Document {document_id} not found")
        return document

    def _assert_accepts(self, document: ParentDocument, event_type: FulfillmentEventType) -> None:
        try:
            state_machine.assert_writable(document.family, document.status)
        except InvalidStateException:
            logger.warning(
                "Rejected %s write on document %s in status %s",
                event_type.value, document.id, document.status.value,
            )
            raise
        state_machine.assert_event_type_accepted(document.family, event_type)

    # ------------------------------------------------------------------
    # Record fulfillment
    # ------------------------------------------------------------------

    async def record_fulfillment(
        self,
        document_id: uuid.UUID,
        event_type: FulfillmentEventType,
        entries: list[dict],
        actor: AuthenticatedUser,
        billing_address: str | None = None,
        shipping_address: str | None = None,
    ) -> ReconciliationResult:
        """Validate a batch against remaining quantities and append it.

        The batch is all-or-nothing: if any line would be over-fulfilled,
        nothing is appended. Zero-quantity entries are accepted and skipped.
        """
        document = await self._lock_document(document_id)
        self._assert_accepts(document, event_type)

        lines_by_key = {li.line_key: li for li in document.line_items}
        requested = self._collect_requested(entries, lines_by_key)

        events = await self.ledger.events_for_document(document.id, event_type)
        before = {s.line_key: s for s in summarize(document.line_items, events)}

        for line_key, quantity in requested.items():
            remaining = before[line_key].remaining
            if quantity > remaining:
                logger.warning(
                    "Rejected %s batch on document %s: line %s requested %s, remaining %s",
                    event_type.value, document.id, line_key, quantity, remaining,
                )
                raise OverFulfillmentException(line_key, quantity, remaining)

        billing_snapshot = resolve_address(
            billing_address or document.billing_address_text,
            document.billing_address,
            document.counterparty,
            "billing",
        )
        shipping_snapshot = resolve_address(
            shipping_address or document.shipping_address_text,
            document.shipping_address,
            document.counterparty,
            "shipping",
        )

        new_events: list[FulfillmentEvent] = []
        for line_key, quantity in requested.items():
            if quantity == ZERO:
                continue
            event = await self.ledger.append(
                lines_by_key[line_key],
                document_id=document.id,
                line_key=line_key,
                event_type=event_type,
                quantity=quantity,
                recorded_by=actor.id,
                billing_address=billing_snapshot,
                shipping_address=shipping_snapshot,
            )
            new_events.append(event)

        if new_events:
            await self.ledger.flush()
            outbox = OutboxService(self.db)
            await outbox.publish_event(
                event_type=EVENT_FULFILLMENT_RECORDED,
                aggregate_type="document",
                aggregate_id=document.id,
                payload={
                    "document_id": str(document.id),
                    "document_number": document.document_number,
                    "event_type": event_type.value,
                    "recorded_by": str(actor.id),
                    "items": [
                        {"line_key": e.line_key, "quantity": str(e.quantity)}
                        for e in new_events
                    ],
                },
            )

        result = await self._recompute(document, event_type, events + new_events, actor)
        result.recorded_events = new_events

        logger.info(
            "Recorded %d %s event(s) on document %s; status %s",
            len(new_events), event_type.value, document.id, result.status.value,
        )
        return result

    def _collect_requested(
        self,
        entries: list[dict],
        lines_by_key: dict[str, DocumentLineItem],
    ) -> dict[str, Decimal]:
        """Validate entries and sum quantities per line key, in line order."""
        if not entries:
            raise ValidationException("Fulfillment batch must include at least one line")

        totals: dict[str, Decimal] = {}
        for entry in entries:
            line_key = entry.get("line_key")
            if not line_key:
                raise ValidationException("Each entry needs a line_key")
            if line_key not in lines_by_key:
                raise NotFoundException(f"Line '{line_key}' not found on document")
            quantity = to_quantity(entry.get("quantity", 0), line_key)
            if quantity < ZERO:
                raise ValidationException(
                    f"Quantity for line '{line_key}' cannot be negative (got {quantity})"
                )
            totals[line_key] = totals.get(line_key, ZERO) + quantity

        return {key: totals[key] for key in lines_by_key if key in totals}

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------

    async def correct_fulfillment(
        self,
        document_id: uuid.UUID,
        event_type: FulfillmentEventType,
        line_key: str,
        quantity_delta: Decimal,
        actor: AuthenticatedUser,
        corrects_event_id: uuid.UUID | None = None,
        reason: str | None = None,
    ) -> ReconciliationResult:
        """Append a signed compensating event for one line.

        The caller decides the policy: to replace a recorded quantity, send
        ``new - old`` as the delta.
        """
        document = await self._lock_document(document_id)
        self._assert_accepts(document, event_type)

        lines_by_key = {li.line_key: li for li in document.line_items}
        line_item = lines_by_key.get(line_key)
        if line_item is None:
            raise NotFoundException(f"Line '{line_key}' not found on document {document_id}")

        delta = to_quantity(quantity_delta, line_key)
        if delta == ZERO:
            raise ValidationException("Correction delta must be non-zero")

        if corrects_event_id is not None:
            original = await self.ledger.get_event(corrects_event_id)
            if (
                original.document_id != document.id
                or original.line_key != line_key
                or original.event_type != event_type
            ):
                raise ValidationException(
                    f"Event {corrects_event_id} does not belong to line '{line_key}' "
                    f"({event_type.value}) of document {document_id}"
                )

        events = await self.ledger.events_for_document(document.id, event_type)
        current = summarize([line_item], events)[0]
        corrected = current.fulfilled + delta
        if corrected > current.ordered:
            raise OverFulfillmentException(line_key, delta, current.remaining)
        if corrected < ZERO:
            raise ValidationException(
                f"Correction of {delta} on line '{line_key}' would leave "
                f"{corrected} fulfilled (currently {current.fulfilled})"
            )

        event = await self.ledger.append(
            line_item,
            document_id=document.id,
            line_key=line_key,
            event_type=event_type,
            quantity=delta,
            kind=FulfillmentEventKind.CORRECTION,
            recorded_by=actor.id,
            corrects_event_id=corrects_event_id,
            reason=reason,
        )
        await self.ledger.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_FULFILLMENT_CORRECTED,
            aggregate_type="document",
            aggregate_id=document.id,
            payload={
                "document_id": str(document.id),
                "event_type": event_type.value,
                "line_key": line_key,
                "quantity_delta": str(delta),
                "corrects_event_id": str(corrects_event_id) if corrects_event_id else None,
                "reason": reason,
                "recorded_by": str(actor.id),
            },
        )

        result = await self._recompute(document, event_type, events + [event], actor)
        result.recorded_events = [event]

        logger.info(
            "Corrected line %s on document %s by %s (%s); status %s",
            line_key, document.id, delta, event_type.value, result.status.value,
        )
        return result

    # ------------------------------------------------------------------
    # Status recomputation
    # ------------------------------------------------------------------

    async def _recompute(
        self,
        document: ParentDocument,
        event_type: FulfillmentEventType,
        events: list[FulfillmentEvent],
        actor: AuthenticatedUser,
    ) -> ReconciliationResult:
        """Summarize every line and overwrite the stored status projection."""
        summaries = summarize(document.line_items, events)

        status_type = FAMILY_STATUS_EVENT_TYPE[document.family]
        if status_type == event_type:
            status_summaries = summaries
        else:
            status_summaries = summarize(
                document.line_items,
                await self.ledger.events_for_document(document.id, status_type),
            )

        old_status = document.status
        new_status = state_machine.next_status(document.family, old_status, status_summaries)

        if new_status != old_status:
            document.status = new_status
            await self.db.flush()

            outbox = OutboxService(self.db)
            await outbox.publish_event(
                event_type=EVENT_DOCUMENT_STATUS_CHANGED,
                aggregate_type="document",
                aggregate_id=document.id,
                payload={
                    "document_id": str(document.id),
                    "document_number": document.document_number,
                    "from_status": old_status.value,
                    "to_status": new_status.value,
                    "triggered_by": str(actor.id),
                },
            )
            logger.info(
                "Document %s transitioned %s -> %s",
                document.id, old_status.value, new_status.value,
            )

        return ReconciliationResult(
            document_id=document.id,
            document_number=document.document_number,
            family=document.family,
            event_type=event_type,
            status=document.status,
            summaries=summaries,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_summaries(
        self,
        document_id: uuid.UUID,
        event_type: FulfillmentEventType | None = None,
    ) -> ReconciliationResult:
        """Recompute summaries and status from ledger history without writing."""
        document = await self._get_document(document_id)
        status_type = FAMILY_STATUS_EVENT_TYPE[document.family]
        measure = event_type or status_type
        state_machine.assert_event_type_accepted(document.family, measure)

        events = await self.ledger.events_for_document(document.id, measure)
        summaries = summarize(document.line_items, events)
        if measure == status_type:
            status_summaries = summaries
        else:
            status_summaries = summarize(
                document.line_items,
                await self.ledger.events_for_document(document.id, status_type),
            )

        return ReconciliationResult(
            document_id=document.id,
            document_number=document.document_number,
            family=document.family,
            event_type=measure,
            status=state_machine.derive_status(document.family, document.status, status_summaries),
            summaries=summaries,
        )

    async def events_for(self, document_id: uuid.UUID, line_key: str) -> list[FulfillmentEvent]:
        """Audit trail of one line, in append order."""
        return await self.ledger.events_for(document_id, line_key)

    # ------------------------------------------------------------------
    # Cancel
    # ------------------------------------------------------------------

    async def cancel(
        self,
        document_id: uuid.UUID,
        actor: AuthenticatedUser,
        reason: str | None = None,
    ) -> ParentDocument:
        """Move a sales order into CANCELLED. Terminal documents are rejected."""
        document = await self._lock_document(document_id)
        old_status = document.status
        document.status = state_machine.cancellation_target(document.family, old_status)
        document.cancellation_reason = reason
        await self.db.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_DOCUMENT_CANCELLED,
            aggregate_type="document",
            aggregate_id=document.id,
            payload={
                "document_id": str(document.id),
                "document_number": document.document_number,
                "from_status": old_status.value,
                "cancelled_by": str(actor.id),
                "reason": reason,
            },
        )

        logger.info("Cancelled document %s (was %s): %s", document.id, old_status.value, reason)
        return document
