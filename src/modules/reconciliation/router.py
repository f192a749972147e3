"""Document ledger API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.session import get_db
from src.models.enums import FulfillmentEventType
from src.modules.identity.auth import AuthenticatedUser, get_current_user, require_writer
from src.modules.reconciliation.document_service import DocumentService
from src.modules.reconciliation.schemas import (
    CorrectionCreate,
    DocumentCancelRequest,
    DocumentCreate,
    DocumentResponse,
    FulfillmentEventResponse,
    FulfillmentRecord,
    ReconciliationResponse,
)
from src.modules.reconciliation.service import ReconciliationService
from src.rate_limit import default_limit, limiter, write_limit

router = APIRouter(prefix="/documents", tags=["documents"])


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post("/", response_model=DocumentResponse, status_code=201)
@limiter.limit(write_limit)
async def register_document(
    request: Request,
    body: DocumentCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Register a sales or rental order with its lines."""
    require_writer(user)
    svc = DocumentService(db)
    document = await svc.register_document(
        family=body.family,
        document_number=body.document_number,
        lines=[line.model_dump() for line in body.lines],
        actor=user,
        counterparty_id=body.counterparty_id,
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
        billing_address_text=body.billing_address_text,
        shipping_address_text=body.shipping_address_text,
    )
    return DocumentResponse.model_validate(document)


@router.get("/{document_id}", response_model=DocumentResponse)
@limiter.limit(default_limit)
async def get_document(
    request: Request,
    document_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    svc = DocumentService(db)
    document = await svc.get_document(document_id)
    return DocumentResponse.model_validate(document)


@router.post("/{document_id}/open", response_model=DocumentResponse)
@limiter.limit(write_limit)
async def open_document(
    request: Request,
    document_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Move a draft sales order to OPEN."""
    require_writer(user)
    svc = DocumentService(db)
    document = await svc.open_document(document_id, actor=user)
    return DocumentResponse.model_validate(document)


@router.post("/{document_id}/cancel", response_model=DocumentResponse)
@limiter.limit(write_limit)
async def cancel_document(
    request: Request,
    document_id: uuid.UUID,
    body: DocumentCancelRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a sales order that is OPEN or PARTIALLY_INVOICED."""
    require_writer(user)
    svc = ReconciliationService(db)
    document = await svc.cancel(document_id, actor=user, reason=body.reason)
    return DocumentResponse.model_validate(document)


# ---------------------------------------------------------------------------
# Fulfillment
# ---------------------------------------------------------------------------


@router.post("/{document_id}/fulfillments", response_model=ReconciliationResponse)
@limiter.limit(write_limit)
async def record_fulfillment(
    request: Request,
    document_id: uuid.UUID,
    body: FulfillmentRecord,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Record a delivery, receipt or invoice posting against document lines."""
    require_writer(user)
    svc = ReconciliationService(db)
    result = await svc.record_fulfillment(
        document_id=document_id,
        event_type=body.event_type,
        entries=[item.model_dump() for item in body.items],
        actor=user,
        billing_address=body.billing_address,
        shipping_address=body.shipping_address,
    )
    return ReconciliationResponse.from_result(result)


@router.post("/{document_id}/corrections", response_model=ReconciliationResponse)
@limiter.limit(write_limit)
async def correct_fulfillment(
    request: Request,
    document_id: uuid.UUID,
    body: CorrectionCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Append a compensating event for one line."""
    require_writer(user)
    svc = ReconciliationService(db)
    result = await svc.correct_fulfillment(
        document_id=document_id,
        event_type=body.event_type,
        line_key=body.line_key,
        quantity_delta=body.quantity_delta,
        actor=user,
        corrects_event_id=body.corrects_event_id,
        reason=body.reason,
    )
    return ReconciliationResponse.from_result(result)


@router.get("/{document_id}/summary", response_model=ReconciliationResponse)
@limiter.limit(default_limit)
async def get_summary(
    request: Request,
    document_id: uuid.UUID,
    event_type: FulfillmentEventType | None = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Per-line ordered / fulfilled / remaining and the document status."""
    svc = ReconciliationService(db)
    result = await svc.get_summaries(document_id, event_type=event_type)
    return ReconciliationResponse.from_result(result)


@router.get(
    "/{document_id}/lines/{line_key:path}/events",
    response_model=list[FulfillmentEventResponse],
)
@limiter.limit(default_limit)
async def list_line_events(
    request: Request,
    document_id: uuid.UUID,
    line_key: str,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Ledger history of one line, in append order."""
    svc = ReconciliationService(db)
    events = await svc.events_for(document_id, line_key)
    return [FulfillmentEventResponse.model_validate(e) for e in events]
