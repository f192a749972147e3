"""Pydantic v2 schemas for the document ledger API."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.enums import (
    DocumentFamily,
    DocumentStatus,
    FulfillmentEventKind,
    FulfillmentEventType,
)
from src.modules.reconciliation.service import ReconciliationResult

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class AddressIn(BaseModel):
    address_line: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)


class DocumentLineCreate(BaseModel):
    product_id: uuid.UUID | None = None
    item_code: str | None = Field(None, max_length=100)
    item_name: str | None = Field(None, max_length=255)
    description: str | None = None
    quantity_ordered: Decimal = Field(..., ge=0, max_digits=15, decimal_places=3)

    @model_validator(mode="after")
    def _product_or_code(self) -> DocumentLineCreate:
        if self.product_id is None and not (self.item_code and self.item_code.strip()):
            raise ValueError("Either product_id or item_code is required")
        return self


class DocumentCreate(BaseModel):
    family: DocumentFamily
    document_number: str = Field(..., min_length=1, max_length=50)
    counterparty_id: uuid.UUID | None = None
    billing_address: AddressIn | None = None
    shipping_address: AddressIn | None = None
    billing_address_text: str | None = None
    shipping_address_text: str | None = None
    lines: list[DocumentLineCreate] = Field(..., min_length=1)


class FulfillmentEntry(BaseModel):
    line_key: str = Field(..., min_length=1, max_length=120)
    quantity: Decimal = Field(..., ge=0, max_digits=15, decimal_places=3)


class FulfillmentRecord(BaseModel):
    event_type: FulfillmentEventType
    items: list[FulfillmentEntry] = Field(..., min_length=1)
    billing_address: str | None = None
    shipping_address: str | None = None


class CorrectionCreate(BaseModel):
    event_type: FulfillmentEventType
    line_key: str = Field(..., min_length=1, max_length=120)
    quantity_delta: Decimal = Field(..., max_digits=15, decimal_places=3)
    corrects_event_id: uuid.UUID | None = None
    reason: str | None = Field(None, max_length=1000)


class DocumentCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class DocumentLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    line_key: str
    product_id: uuid.UUID | None = None
    item_code: str | None = None
    item_name: str | None = None
    description: str | None = None
    quantity_ordered: Decimal


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    document_number: str
    family: DocumentFamily
    counterparty_id: uuid.UUID | None = None
    status: DocumentStatus
    billing_address: dict | None = None
    shipping_address: dict | None = None
    billing_address_text: str | None = None
    shipping_address_text: str | None = None
    cancellation_reason: str | None = None
    line_items: list[DocumentLineResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class LineSummaryResponse(BaseModel):
    line_key: str
    ordered: Decimal
    fulfilled: Decimal
    remaining: Decimal


class ReconciliationResponse(BaseModel):
    document_id: uuid.UUID
    document_number: str
    family: DocumentFamily
    event_type: FulfillmentEventType
    status: DocumentStatus
    lines: list[LineSummaryResponse]
    recorded_event_ids: list[uuid.UUID] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> ReconciliationResponse:
        return cls(
            document_id=result.document_id,
            document_number=result.document_number,
            family=result.family,
            event_type=result.event_type,
            status=result.status,
            lines=[
                LineSummaryResponse(
                    line_key=s.line_key,
                    ordered=s.ordered,
                    fulfilled=s.fulfilled,
                    remaining=s.remaining,
                )
                for s in result.summaries
            ],
            recorded_event_ids=[e.id for e in result.recorded_events],
        )


class FulfillmentEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sequence: int
    document_id: uuid.UUID
    line_key: str
    event_type: FulfillmentEventType
    kind: FulfillmentEventKind
    quantity: Decimal
    recorded_at: datetime
    recorded_by: uuid.UUID | None = None
    billing_address: str | None = None
    shipping_address: str | None = None
    corrects_event_id: uuid.UUID | None = None
    reason: str | None = None
