"""Document registry — the seam through which order workflows hand documents to the ledger."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.exceptions import (
    ConflictException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from src.models.counterparty import Counterparty
from src.models.enums import DocumentFamily, DocumentStatus
from src.models.line_item import DocumentLineItem
from src.models.parent_document import ParentDocument
from src.modules.events.outbox_service import OutboxService
from src.modules.identity.auth import AuthenticatedUser
from src.modules.reconciliation import state_machine
from src.modules.reconciliation.constants import (
    EVENT_DOCUMENT_OPENED,
    EVENT_DOCUMENT_REGISTERED,
    FAMILY_INITIAL_STATUS,
    LINE_KEY_CODE_PREFIX,
    LINE_KEY_PRODUCT_PREFIX,
)
from src.modules.reconciliation.summaries import to_quantity

logger = logging.getLogger(__name__)


def make_line_key(product_id: uuid.UUID | str | None, item_code: str | None) -> str:
    """``p-<product id>`` for catalog products, ``c-<item code>`` otherwise."""
    if product_id:
        return f"{LINE_KEY_PRODUCT_PREFIX}{product_id}"
    if item_code and item_code.strip():
        return f"{LINE_KEY_CODE_PREFIX}{item_code.strip()}"
    raise ValidationException("Each line needs either a product_id or an item_code")


class DocumentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    async def register_document(
        self,
        family: DocumentFamily,
        document_number: str,
        lines: list[dict],
        actor: AuthenticatedUser,
        counterparty_id: uuid.UUID | None = None,
        billing_address: dict | None = None,
        shipping_address: dict | None = None,
        billing_address_text: str | None = None,
        shipping_address_text: str | None = None,
    ) -> ParentDocument:
        """Create a document and all its lines in one unit of work."""
        if not lines:
            raise ValidationException("A document needs at least one line")

        existing = await self.db.execute(
            select(func.count())
            .select_from(ParentDocument)
            .where(ParentDocument.document_number == document_number)
        )
        if (existing.scalar() or 0) > 0:
            raise ConflictException(f"Document number '{document_number}' already exists")

        if counterparty_id is not None:
            cp_result = await self.db.execute(
                select(Counterparty).where(Counterparty.id == counterparty_id)
            )
            if cp_result.scalar_one_or_none() is None:
                raise NotFoundException(f"Counterparty {counterparty_id} not found")

        document = ParentDocument(
            id=uuid.uuid4(),
            document_number=document_number,
            family=family,
            counterparty_id=counterparty_id,
            status=FAMILY_INITIAL_STATUS[family],
            billing_address=billing_address,
            shipping_address=shipping_address,
            billing_address_text=billing_address_text,
            shipping_address_text=shipping_address_text,
            created_by=actor.id,
        )

        seen: set[str] = set()
        for position, line in enumerate(lines):
            line_key = make_line_key(line.get("product_id"), line.get("item_code"))
            if line_key in seen:
                raise ValidationException(f"Duplicate line '{line_key}' on document")
            seen.add(line_key)

            quantity = to_quantity(line.get("quantity_ordered", 0), line_key)
            if quantity < 0:
                raise ValidationException(
                    f"Ordered quantity for line '{line_key}' cannot be negative"
                )

            document.line_items.append(
                DocumentLineItem(
                    id=uuid.uuid4(),
                    document_id=document.id,
                    line_key=line_key,
                    position=position,
                    product_id=line.get("product_id"),
                    item_code=(line.get("item_code") or "").strip() or None,
                    item_name=line.get("item_name"),
                    description=line.get("description"),
                    quantity_ordered=quantity,
                )
            )

        self.db.add(document)
        await self.db.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_DOCUMENT_REGISTERED,
            aggregate_type="document",
            aggregate_id=document.id,
            payload={
                "document_id": str(document.id),
                "document_number": document_number,
                "family": family.value,
                "status": document.status.value,
                "line_count": len(document.line_items),
                "registered_by": str(actor.id),
            },
        )

        logger.info(
            "Registered %s %s with %d line(s)",
            family.value, document_number, len(document.line_items),
        )

        # Re-fetch with relationships for response
        return await self.get_document(document.id)

    # ------------------------------------------------------------------
    # Open / Get
    # ------------------------------------------------------------------

    async def open_document(
        self, document_id: uuid.UUID, actor: AuthenticatedUser
    ) -> ParentDocument:
        """Release a draft sales order so fulfillment can be recorded against it."""
        result = await self.db.execute(
            select(ParentDocument)
            .options(selectinload(ParentDocument.line_items))
            .where(ParentDocument.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundException(f"Document {document_id} not found")

        if document.status != DocumentStatus.DRAFT:
            raise InvalidStateException(
                f"Only DRAFT documents can be opened (current: {document.status.value})"
            )
        state_machine.assert_transition(document.family, document.status, DocumentStatus.OPEN)

        document.status = DocumentStatus.OPEN
        await self.db.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_DOCUMENT_OPENED,
            aggregate_type="document",
            aggregate_id=document.id,
            payload={
                "document_id": str(document.id),
                "document_number": document.document_number,
                "opened_by": str(actor.id),
            },
        )

        logger.info("Opened document %s", document.id)
        return document

    async def get_document(self, document_id: uuid.UUID) -> ParentDocument:
        """Get a document with its line items."""
        result = await self.db.execute(
            select(ParentDocument)
            .options(selectinload(ParentDocument.line_items))
            .where(ParentDocument.id == document_id)
        )
        document = result.scalar_one_or_none()
        if document is None:
            raise NotFoundException(f"Document {document_id} not found")
        return document
