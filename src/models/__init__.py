# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from src.models.counterparty import Counterparty
from src.models.enums import (
    DocumentFamily,
    DocumentStatus,
    EventStatus,
    FulfillmentEventKind,
    FulfillmentEventType,
)
from src.models.event_outbox import EventOutbox
from src.models.fulfillment_event import FulfillmentEvent
from src.models.line_item import DocumentLineItem
from src.models.parent_document import ParentDocument

__all__ = [
    "Counterparty",
    "DocumentFamily",
    "DocumentLineItem",
    "DocumentStatus",
    "EventOutbox",
    "EventStatus",
    "FulfillmentEvent",
    "FulfillmentEventKind",
    "FulfillmentEventType",
    "ParentDocument",
]
