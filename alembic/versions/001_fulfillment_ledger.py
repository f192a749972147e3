"""Fulfillment ledger - documents, lines, append-only events, outbox

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# --- Enum types (created explicitly in upgrade) ---
document_family_enum = ENUM(
    "SALES_ORDER", "RENTAL_ORDER", name="documentfamily", create_type=False
)
document_status_enum = ENUM(
    "DRAFT", "OPEN", "PARTIALLY_INVOICED", "INVOICED", "CANCELLED",
    "PARTIAL_RETURNED", "FULLY_RETURNED",
    name="documentstatus", create_type=False,
)
fulfillment_event_type_enum = ENUM(
    "DELIVERY", "RECEIPT", "INVOICE_POST", name="fulfillmenteventtype", create_type=False
)
fulfillment_event_kind_enum = ENUM(
    "FULFILLMENT", "CORRECTION", name="fulfillmenteventkind", create_type=False
)
event_status_enum = ENUM(
    "PENDING", "PROCESSING", "COMPLETED", "FAILED", name="eventstatus", create_type=False
)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # Create enum types first
    bind = op.get_bind()
    document_family_enum.create(bind, checkfirst=True)
    document_status_enum.create(bind, checkfirst=True)
    fulfillment_event_type_enum.create(bind, checkfirst=True)
    fulfillment_event_kind_enum.create(bind, checkfirst=True)
    event_status_enum.create(bind, checkfirst=True)

    # 1. counterparties
    op.create_table(
        "counterparties",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", JSONB, nullable=True),
        sa.Column("billing_address", JSONB, nullable=True),
        sa.Column("shipping_address", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    # 2. parent_documents
    op.create_table(
        "parent_documents",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("document_number", sa.String(50), nullable=False, unique=True),
        sa.Column("family", document_family_enum, nullable=False),
        sa.Column("counterparty_id", UUID(as_uuid=True), sa.ForeignKey("counterparties.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", document_status_enum, server_default="OPEN", nullable=False),
        sa.Column("billing_address", JSONB, nullable=True),
        sa.Column("shipping_address", JSONB, nullable=True),
        sa.Column("billing_address_text", sa.Text, nullable=True),
        sa.Column("shipping_address_text", sa.Text, nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_parent_documents_family_status", "parent_documents", ["family", "status"])
    op.create_index(
        "ix_parent_documents_counterparty_id",
        "parent_documents",
        ["counterparty_id"],
        postgresql_where=sa.text("counterparty_id IS NOT NULL"),
    )

    # 3. document_line_items
    op.create_table(
        "document_line_items",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("document_id", UUID(as_uuid=True), sa.ForeignKey("parent_documents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("line_key", sa.String(120), nullable=False),
        sa.Column("position", sa.Integer, server_default="0", nullable=False),
        sa.Column("product_id", UUID(as_uuid=True), nullable=True),
        sa.Column("item_code", sa.String(100), nullable=True),
        sa.Column("item_name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("quantity_ordered", sa.Numeric(15, 3), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("document_id", "line_key", name="uq_document_line_items_key"),
        sa.CheckConstraint("quantity_ordered >= 0", name="ck_document_line_items_qty_nonneg"),
    )
    op.create_index("ix_document_line_items_document_id", "document_line_items", ["document_id"])

    # 4. fulfillment_events
    op.create_table(
        "fulfillment_events",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("sequence", sa.BigInteger, sa.Identity(always=True), nullable=False, unique=True),
        sa.Column("document_id", UUID(as_uuid=True), sa.ForeignKey("parent_documents.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("line_item_id", UUID(as_uuid=True), sa.ForeignKey("document_line_items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("line_key", sa.String(120), nullable=False),
        sa.Column("event_type", fulfillment_event_type_enum, nullable=False),
        sa.Column("kind", fulfillment_event_kind_enum, server_default="FULFILLMENT", nullable=False),
        sa.Column("quantity", sa.Numeric(15, 3), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("recorded_by", UUID(as_uuid=True), nullable=True),
        sa.Column("billing_address", sa.Text, nullable=True),
        sa.Column("shipping_address", sa.Text, nullable=True),
        sa.Column("corrects_event_id", UUID(as_uuid=True), sa.ForeignKey("fulfillment_events.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.CheckConstraint(
            "(kind = 'FULFILLMENT' AND quantity > 0) OR (kind = 'CORRECTION' AND quantity <> 0)",
            name="ck_fulfillment_events_quantity_sign",
        ),
    )
    op.create_index(
        "ix_fulfillment_events_document_type",
        "fulfillment_events",
        ["document_id", "event_type", "sequence"],
    )
    op.create_index(
        "ix_fulfillment_events_line",
        "fulfillment_events",
        ["document_id", "line_key", "sequence"],
    )

    # Ledger rows are append-only
    op.execute("""
        CREATE OR REPLACE FUNCTION reject_fulfillment_event_mutation()
        RETURNS trigger AS $$
        BEGIN
          RAISE EXCEPTION 'fulfillment_events is append-only (% rejected)', TG_OP;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_fulfillment_events_append_only
          BEFORE UPDATE OR DELETE ON fulfillment_events
          FOR EACH ROW EXECUTE FUNCTION reject_fulfillment_event_mutation();
    """)

    # 5. event_outbox
    op.create_table(
        "event_outbox",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("aggregate_type", sa.String(50), server_default="document", nullable=False),
        sa.Column("aggregate_id", UUID(as_uuid=True), nullable=False),
        sa.Column("payload", JSONB, server_default="{}", nullable=False),
        sa.Column("status", event_status_enum, server_default="PENDING", nullable=False),
        sa.Column("retry_count", sa.Integer, server_default="0", nullable=False),
        sa.Column("max_retries", sa.Integer, server_default="3", nullable=False),
        sa.Column("last_error", sa.Text, nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index(
        "ix_event_outbox_aggregate",
        "event_outbox",
        ["aggregate_type", "aggregate_id", "created_at"],
    )
    op.create_index(
        "ix_event_outbox_pending",
        "event_outbox",
        ["created_at"],
        postgresql_where=sa.text("status = 'PENDING'"),
    )


def downgrade() -> None:
    op.drop_table("event_outbox")
    op.execute("DROP TRIGGER IF EXISTS trg_fulfillment_events_append_only ON fulfillment_events")
    op.execute("DROP FUNCTION IF EXISTS reject_fulfillment_event_mutation()")
    op.drop_table("fulfillment_events")
    op.drop_table("document_line_items")
    op.drop_table("parent_documents")
    op.drop_table("counterparties")

    bind = op.get_bind()
    event_status_enum.drop(bind, checkfirst=True)
    fulfillment_event_kind_enum.drop(bind, checkfirst=True)
    fulfillment_event_type_enum.drop(bind, checkfirst=True)
    document_status_enum.drop(bind, checkfirst=True)
    document_family_enum.drop(bind, checkfirst=True)
