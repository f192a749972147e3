"""Document status transitions, accepted event types, and outbox event names."""

from __future__ import annotations

from src.models.enums import DocumentFamily, DocumentStatus, FulfillmentEventType

# ---------------------------------------------------------------------------
# Valid status transitions per family: current_status -> allowed next statuses
# ---------------------------------------------------------------------------

SALES_ORDER_TRANSITIONS: dict[DocumentStatus, set[DocumentStatus]] = {
    DocumentStatus.DRAFT: {
        DocumentStatus.OPEN,
    },
    DocumentStatus.OPEN: {
        DocumentStatus.PARTIALLY_INVOICED,
        DocumentStatus.INVOICED,
        DocumentStatus.CANCELLED,
    },
    DocumentStatus.PARTIALLY_INVOICED: {
        DocumentStatus.INVOICED,
        DocumentStatus.CANCELLED,
        # Only reachable through a correction that brings the total back to zero
        DocumentStatus.OPEN,
    },
}

RENTAL_ORDER_TRANSITIONS: dict[DocumentStatus, set[DocumentStatus]] = {
    DocumentStatus.OPEN: {
        DocumentStatus.PARTIAL_RETURNED,
        DocumentStatus.FULLY_RETURNED,
    },
    DocumentStatus.PARTIAL_RETURNED: {
        DocumentStatus.FULLY_RETURNED,
        DocumentStatus.OPEN,
    },
}

FAMILY_TRANSITIONS: dict[DocumentFamily, dict[DocumentStatus, set[DocumentStatus]]] = {
    DocumentFamily.SALES_ORDER: SALES_ORDER_TRANSITIONS,
    DocumentFamily.RENTAL_ORDER: RENTAL_ORDER_TRANSITIONS,
}

# Terminal statuses (no further writes)
FAMILY_TERMINAL_STATUSES: dict[DocumentFamily, set[DocumentStatus]] = {
    DocumentFamily.SALES_ORDER: {DocumentStatus.INVOICED, DocumentStatus.CANCELLED},
    DocumentFamily.RENTAL_ORDER: {DocumentStatus.FULLY_RETURNED},
}

FAMILY_INITIAL_STATUS: dict[DocumentFamily, DocumentStatus] = {
    DocumentFamily.SALES_ORDER: DocumentStatus.DRAFT,
    DocumentFamily.RENTAL_ORDER: DocumentStatus.OPEN,
}

# (partial, full) status pair derived from the fulfilled total
FAMILY_PROGRESS_STATUSES: dict[DocumentFamily, tuple[DocumentStatus, DocumentStatus]] = {
    DocumentFamily.SALES_ORDER: (DocumentStatus.PARTIALLY_INVOICED, DocumentStatus.INVOICED),
    DocumentFamily.RENTAL_ORDER: (DocumentStatus.PARTIAL_RETURNED, DocumentStatus.FULLY_RETURNED),
}

# Statuses in which fulfillment may be recorded
FAMILY_WRITABLE_STATUSES: dict[DocumentFamily, set[DocumentStatus]] = {
    DocumentFamily.SALES_ORDER: {DocumentStatus.OPEN, DocumentStatus.PARTIALLY_INVOICED},
    DocumentFamily.RENTAL_ORDER: {DocumentStatus.OPEN, DocumentStatus.PARTIAL_RETURNED},
}

# ---------------------------------------------------------------------------
# Event types accepted per family, and the one whose totals drive status
# ---------------------------------------------------------------------------

FAMILY_EVENT_TYPES: dict[DocumentFamily, set[FulfillmentEventType]] = {
    DocumentFamily.SALES_ORDER: {
        FulfillmentEventType.DELIVERY,
        FulfillmentEventType.INVOICE_POST,
    },
    DocumentFamily.RENTAL_ORDER: {
        FulfillmentEventType.RECEIPT,
    },
}

FAMILY_STATUS_EVENT_TYPE: dict[DocumentFamily, FulfillmentEventType] = {
    DocumentFamily.SALES_ORDER: FulfillmentEventType.INVOICE_POST,
    DocumentFamily.RENTAL_ORDER: FulfillmentEventType.RECEIPT,
}

# Line key prefixes: catalog product vs free-text item code
LINE_KEY_PRODUCT_PREFIX = "p-"
LINE_KEY_CODE_PREFIX = "c-"

# ---------------------------------------------------------------------------
# Event type strings for the outbox
# ---------------------------------------------------------------------------

EVENT_DOCUMENT_REGISTERED = "document.registered"
EVENT_DOCUMENT_OPENED = "document.opened"
EVENT_DOCUMENT_CANCELLED = "document.cancelled"
EVENT_DOCUMENT_STATUS_CHANGED = "document.status_changed"
EVENT_FULFILLMENT_RECORDED = "fulfillment.recorded"
EVENT_FULFILLMENT_CORRECTED = "fulfillment.corrected"
