"""ParentDocument model — a sales or rental order being fulfilled."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import DocumentFamily, DocumentStatus

if TYPE_CHECKING:
    from src.models.counterparty import Counterparty
    from src.models.line_item import DocumentLineItem


class ParentDocument(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "parent_documents"

    document_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True
    )
    family: Mapped[DocumentFamily] = mapped_column(nullable=False)
    counterparty_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("counterparties.id", ondelete="SET NULL"),
    )
    # Written only by the reconciliation service and the explicit open/cancel actions
    status: Mapped[DocumentStatus] = mapped_column(
        nullable=False, server_default="OPEN"
    )

    # Address sources for event snapshots
    billing_address: Mapped[dict | None] = mapped_column(JSONB)
    shipping_address: Mapped[dict | None] = mapped_column(JSONB)
    billing_address_text: Mapped[str | None] = mapped_column(Text)
    shipping_address_text: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Relationships
    counterparty: Mapped[Counterparty | None] = relationship(
        "Counterparty", lazy="noload"
    )
    line_items: Mapped[list[DocumentLineItem]] = relationship(
        "DocumentLineItem",
        back_populates="document",
        lazy="noload",
        cascade="all, delete-orphan",
        order_by="DocumentLineItem.position",
    )

    __table_args__ = (
        Index("ix_parent_documents_family_status", "family", "status"),
        Index("ix_parent_documents_counterparty_id", "counterparty_id", postgresql_where="counterparty_id IS NOT NULL"),
    )
