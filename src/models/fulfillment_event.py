"""FulfillmentEvent model — immutable quantity ledger entry."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Identity, Index, Numeric, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, UUIDPrimaryKeyMixin
from src.models.enums import FulfillmentEventKind, FulfillmentEventType

if TYPE_CHECKING:
    from src.models.line_item import DocumentLineItem


class FulfillmentEvent(UUIDPrimaryKeyMixin, Base):
    """Append-only. Rows are never updated or deleted; corrections are new rows."""

    __tablename__ = "fulfillment_events"
    __mapper_args__ = {"eager_defaults": True}

    # Monotonic append order across the whole ledger
    sequence: Mapped[int] = mapped_column(
        BigInteger, Identity(always=True), nullable=False, unique=True
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parent_documents.id", ondelete="RESTRICT"),
        nullable=False,
    )
    line_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("document_line_items.id", ondelete="RESTRICT"),
        nullable=False,
    )
    line_key: Mapped[str] = mapped_column(String(120), nullable=False)
    event_type: Mapped[FulfillmentEventType] = mapped_column(nullable=False)
    kind: Mapped[FulfillmentEventKind] = mapped_column(
        nullable=False, server_default="FULFILLMENT"
    )
    # Positive for FULFILLMENT, signed and non-zero for CORRECTION
    quantity: Mapped[Decimal] = mapped_column(Numeric(15, 3), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    recorded_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    billing_address: Mapped[str | None] = mapped_column(Text)
    shipping_address: Mapped[str | None] = mapped_column(Text)

    corrects_event_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("fulfillment_events.id", ondelete="RESTRICT"),
    )
    reason: Mapped[str | None] = mapped_column(Text)

    # Relationships
    line_item: Mapped[DocumentLineItem] = relationship(
        "DocumentLineItem", lazy="noload"
    )

    __table_args__ = (
        CheckConstraint(
            "(kind = 'FULFILLMENT' AND quantity > 0) OR (kind = 'CORRECTION' AND quantity <> 0)",
            name="ck_fulfillment_events_quantity_sign",
        ),
        Index("ix_fulfillment_events_document_type", "document_id", "event_type", "sequence"),
        Index("ix_fulfillment_events_line", "document_id", "line_key", "sequence"),
    )

    def __repr__(self) -> str:
        return (
            f"<FulfillmentEvent seq={self.sequence} doc={self.document_id} "
            f"line={self.line_key} {self.event_type}/{self.kind} qty={self.quantity}>"
        )
