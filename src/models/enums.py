import enum


class DocumentFamily(str, enum.Enum):
    SALES_ORDER = "SALES_ORDER"
    RENTAL_ORDER = "RENTAL_ORDER"


class DocumentStatus(str, enum.Enum):
    # Sales-order family
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    PARTIALLY_INVOICED = "PARTIALLY_INVOICED"
    INVOICED = "INVOICED"
    CANCELLED = "CANCELLED"
    # Rental-order family (shares OPEN)
    PARTIAL_RETURNED = "PARTIAL_RETURNED"
    FULLY_RETURNED = "FULLY_RETURNED"


class FulfillmentEventType(str, enum.Enum):
    DELIVERY = "DELIVERY"
    RECEIPT = "RECEIPT"
    INVOICE_POST = "INVOICE_POST"


class FulfillmentEventKind(str, enum.Enum):
    FULFILLMENT = "FULFILLMENT"
    CORRECTION = "CORRECTION"


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
