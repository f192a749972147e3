"""Tests for per-line summaries folded from ledger events."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from src.exceptions import ValidationException
from src.models.enums import FulfillmentEventKind, FulfillmentEventType
from src.models.fulfillment_event import FulfillmentEvent
from src.models.line_item import DocumentLineItem
from src.modules.reconciliation.summaries import (
    fold_quantities,
    summarize,
    total_fulfilled,
    total_ordered,
    to_quantity,
)


def _line(key: str, ordered: str) -> DocumentLineItem:
    return DocumentLineItem(id=uuid.uuid4(), line_key=key, quantity_ordered=Decimal(ordered))


def _event(key: str, qty: str, kind=FulfillmentEventKind.FULFILLMENT) -> FulfillmentEvent:
    return FulfillmentEvent(
        line_key=key,
        event_type=FulfillmentEventType.RECEIPT,
        kind=kind,
        quantity=Decimal(qty),
    )


def test_fold_includes_signed_corrections() -> None:
    events = [
        _event("c-a", "4"),
        _event("c-a", "3"),
        _event("c-a", "-2", FulfillmentEventKind.CORRECTION),
    ]
    assert fold_quantities(events) == Decimal("5")


def test_fold_of_nothing_is_zero() -> None:
    assert fold_quantities([]) == Decimal("0")


def test_summarize_keeps_line_order_and_defaults_to_zero() -> None:
    lines = [_line("c-b", "2"), _line("c-a", "5")]
    summaries = summarize(lines, [_event("c-a", "1.5")])

    assert [s.line_key for s in summaries] == ["c-b", "c-a"]
    assert summaries[0].fulfilled == Decimal("0")
    assert summaries[1].fulfilled == Decimal("1.5")
    assert summaries[1].remaining == Decimal("3.5")


def test_fulfilled_plus_remaining_equals_ordered() -> None:
    lines = [_line("c-a", "10"), _line("c-b", "0.75")]
    events = [_event("c-a", "4"), _event("c-b", "0.25"), _event("c-a", "6")]
    for summary in summarize(lines, events):
        assert summary.fulfilled + summary.remaining == summary.ordered


def test_totals() -> None:
    summaries = summarize(
        [_line("c-a", "5"), _line("c-b", "0")],
        [_event("c-a", "3")],
    )
    assert total_ordered(summaries) == Decimal("5")
    assert total_fulfilled(summaries) == Decimal("3")


def test_as_dict_serializes_decimals_as_strings() -> None:
    summary = summarize([_line("c-a", "5")], [_event("c-a", "2")])[0]
    assert summary.as_dict() == {
        "line_key": "c-a",
        "ordered": "5",
        "fulfilled": "2",
        "remaining": "3",
    }


@pytest.mark.parametrize("raw", ["4.0004", "0.0001", "NaN", "Infinity", "1000000000000"])
def test_to_quantity_rejects_unstorable_values(raw: str) -> None:
    with pytest.raises(ValidationException):
        to_quantity(Decimal(raw), "c-a")


def test_to_quantity_accepts_trailing_zeros_and_plain_numbers() -> None:
    assert to_quantity(Decimal("2.5000"), "c-a") == Decimal("2.5")
    assert to_quantity("0.125", "c-a") == Decimal("0.125")
    assert to_quantity(3, "c-a") == Decimal("3")
