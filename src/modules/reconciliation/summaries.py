"""Quantity parsing and per-line fulfillment summaries derived from ledger history."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from src.exceptions import ValidationException
from src.models.fulfillment_event import FulfillmentEvent
from src.models.line_item import DocumentLineItem

ZERO = Decimal("0")
# Quantities are stored as NUMERIC(15, 3)
QUANTITY_STEP = Decimal("0.001")
MAX_QUANTITY = Decimal("999999999999.999")


def to_quantity(value, line_key: str) -> Decimal:
    """Parse ``value`` as a quantity the ledger can store without rounding."""
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationException(
            f"Quantity for line '{line_key}' is not a number: {value!r}"
        ) from exc
    if not quantity.is_finite():
        raise ValidationException(f"Quantity for line '{line_key}' is not a number: {value!r}")
    if abs(quantity) > MAX_QUANTITY:
        raise ValidationException(f"Quantity for line '{line_key}' is too large: {quantity}")
    if quantity != quantity.quantize(QUANTITY_STEP):
        raise ValidationException(
            f"Quantity for line '{line_key}' has more than 3 decimal places: {quantity}"
        )
    return quantity


@dataclass(frozen=True)
class FulfillmentSummary:
    line_key: str
    ordered: Decimal
    fulfilled: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.ordered - self.fulfilled

    def as_dict(self) -> dict:
        return {
            "line_key": self.line_key,
            "ordered": str(self.ordered),
            "fulfilled": str(self.fulfilled),
            "remaining": str(self.remaining),
        }


def fold_quantities(events: Iterable[FulfillmentEvent]) -> Decimal:
    """Sum of signed event quantities; corrections carry their own sign."""
    return sum((e.quantity for e in events), ZERO)


def fulfilled_by_line(events: Iterable[FulfillmentEvent]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for event in events:
        totals[event.line_key] = totals.get(event.line_key, ZERO) + event.quantity
    return totals


def summarize(
    line_items: Iterable[DocumentLineItem],
    events: Iterable[FulfillmentEvent],
) -> list[FulfillmentSummary]:
    """One summary per line item, in line order, from events of a single measure."""
    totals = fulfilled_by_line(events)
    return [
        FulfillmentSummary(
            line_key=li.line_key,
            ordered=li.quantity_ordered,
            fulfilled=totals.get(li.line_key, ZERO),
        )
        for li in line_items
    ]


def total_ordered(summaries: Iterable[FulfillmentSummary]) -> Decimal:
    return sum((s.ordered for s in summaries), ZERO)


def total_fulfilled(summaries: Iterable[FulfillmentSummary]) -> Decimal:
    return sum((s.fulfilled for s in summaries), ZERO)
