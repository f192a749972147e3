"""DocumentLineItem model — one orderable line within a parent document."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.parent_document import ParentDocument


class DocumentLineItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "document_line_items"

    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parent_documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_key: Mapped[str] = mapped_column(String(120), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    product_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    item_code: Mapped[str | None] = mapped_column(String(100))
    item_name: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    # Fixed at creation
    quantity_ordered: Mapped[Decimal] = mapped_column(Numeric(15, 3), nullable=False)

    # Relationships
    document: Mapped[ParentDocument] = relationship(
        "ParentDocument", back_populates="line_items", lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint("document_id", "line_key", name="uq_document_line_items_key"),
        CheckConstraint("quantity_ordered >= 0", name="ck_document_line_items_qty_nonneg"),
        Index("ix_document_line_items_document_id", "document_id"),
    )
