"""Document lifecycle state machine for the sales-order and rental-order families.

Status is a function of the previous status and the fulfilled totals of the
family's status-driving measure. It is never taken from client input.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.exceptions import InvalidStateException, ValidationException
from src.models.enums import DocumentFamily, DocumentStatus, FulfillmentEventType
from src.modules.reconciliation.constants import (
    FAMILY_EVENT_TYPES,
    FAMILY_PROGRESS_STATUSES,
    FAMILY_TERMINAL_STATUSES,
    FAMILY_TRANSITIONS,
    FAMILY_WRITABLE_STATUSES,
)
from src.modules.reconciliation.summaries import (
    ZERO,
    FulfillmentSummary,
    total_fulfilled,
    total_ordered,
)


def is_terminal(family: DocumentFamily, status: DocumentStatus) -> bool:
    return status in FAMILY_TERMINAL_STATUSES[family]


def assert_writable(family: DocumentFamily, status: DocumentStatus) -> None:
    """Raise InvalidStateException unless ledger writes are allowed in ``status``."""
    if is_terminal(family, status):
        raise InvalidStateException(
            f"Document is in terminal status '{status.value}' and accepts no further fulfillment"
        )
    if status not in FAMILY_WRITABLE_STATUSES[family]:
        raise InvalidStateException(
            f"Cannot record fulfillment while document is in status '{status.value}'"
        )


def assert_event_type_accepted(family: DocumentFamily, event_type: FulfillmentEventType) -> None:
    accepted = FAMILY_EVENT_TYPES[family]
    if event_type not in accepted:
        raise ValidationException(
            f"Event type '{event_type.value}' is not accepted for {family.value} documents. "
            f"Allowed: {sorted(t.value for t in accepted)}"
        )


def assert_transition(
    family: DocumentFamily, current: DocumentStatus, new: DocumentStatus
) -> None:
    if new == current:
        return
    allowed = FAMILY_TRANSITIONS[family].get(current, set())
    if new not in allowed:
        raise InvalidStateException(
            f"Cannot transition {family.value} from '{current.value}' to '{new.value}'. "
            f"Allowed: {sorted(s.value for s in allowed)}"
        )


def derive_status(
    family: DocumentFamily,
    current: DocumentStatus,
    summaries: Sequence[FulfillmentSummary],
) -> DocumentStatus:
    """Compute the status implied by the fulfilled totals across all lines."""
    if is_terminal(family, current):
        return current

    partial, full = FAMILY_PROGRESS_STATUSES[family]
    fulfilled = total_fulfilled(summaries)
    ordered = total_ordered(summaries)

    if fulfilled == ZERO:
        if current == partial:
            return DocumentStatus.OPEN
        return current
    if fulfilled < ordered:
        return partial
    return full


def next_status(
    family: DocumentFamily,
    current: DocumentStatus,
    summaries: Sequence[FulfillmentSummary],
) -> DocumentStatus:
    """derive_status, checked against the family's transition table."""
    new = derive_status(family, current, summaries)
    assert_transition(family, current, new)
    return new


def cancellation_target(family: DocumentFamily, current: DocumentStatus) -> DocumentStatus:
    if family != DocumentFamily.SALES_ORDER:
        raise InvalidStateException(f"{family.value} documents cannot be cancelled")
    if is_terminal(family, current):
        raise InvalidStateException(
            f"Cannot cancel document in terminal status '{current.value}'"
        )
    assert_transition(family, current, DocumentStatus.CANCELLED)
    return DocumentStatus.CANCELLED
