"""Tests for QuantityLedger — append validation and reads."""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.exceptions import NotFoundException, ValidationException
from src.models.enums import FulfillmentEventKind, FulfillmentEventType
from src.models.fulfillment_event import FulfillmentEvent
from src.models.line_item import DocumentLineItem
from src.modules.reconciliation.ledger import QuantityLedger


def _mock_db() -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _scalar_result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _scalars_result(values: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _make_line(document_id: uuid.UUID, key: str = "c-TENT", ordered: str = "10") -> DocumentLineItem:
    return DocumentLineItem(
        id=uuid.uuid4(),
        document_id=document_id,
        line_key=key,
        position=0,
        quantity_ordered=Decimal(ordered),
    )


class TestAppend:
    @pytest.mark.asyncio
    async def test_append_stages_event_without_flushing(self) -> None:
        db = _mock_db()
        doc_id = uuid.uuid4()
        line = _make_line(doc_id)
        actor_id = uuid.uuid4()

        ledger = QuantityLedger(db)
        event = await ledger.append(
            line,
            document_id=doc_id,
            line_key="c-TENT",
            event_type=FulfillmentEventType.RECEIPT,
            quantity=Decimal("4"),
            recorded_by=actor_id,
            billing_address="Pune, India",
        )

        db.add.assert_called_once_with(event)
        db.flush.assert_not_awaited()
        assert event.line_item_id == line.id
        assert event.kind == FulfillmentEventKind.FULFILLMENT
        assert event.quantity == Decimal("4")
        assert event.recorded_by == actor_id
        assert event.billing_address == "Pune, India"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("qty", ["0", "-1"])
    async def test_fulfillment_must_be_positive(self, qty: str) -> None:
        db = _mock_db()
        doc_id = uuid.uuid4()

        with pytest.raises(ValidationException, match="positive"):
            await QuantityLedger(db).append(
                _make_line(doc_id),
                document_id=doc_id,
                line_key="c-TENT",
                event_type=FulfillmentEventType.RECEIPT,
                quantity=Decimal(qty),
            )
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_negative_correction_allowed(self) -> None:
        db = _mock_db()
        doc_id = uuid.uuid4()

        event = await QuantityLedger(db).append(
            _make_line(doc_id),
            document_id=doc_id,
            line_key="c-TENT",
            event_type=FulfillmentEventType.RECEIPT,
            quantity=Decimal("-2"),
            kind=FulfillmentEventKind.CORRECTION,
            reason="miscounted",
        )
        assert event.quantity == Decimal("-2")
        assert event.kind == FulfillmentEventKind.CORRECTION

    @pytest.mark.asyncio
    async def test_zero_correction_rejected(self) -> None:
        db = _mock_db()
        doc_id = uuid.uuid4()

        with pytest.raises(ValidationException, match="non-zero"):
            await QuantityLedger(db).append(
                _make_line(doc_id),
                document_id=doc_id,
                line_key="c-TENT",
                event_type=FulfillmentEventType.RECEIPT,
                quantity=Decimal("0"),
                kind=FulfillmentEventKind.CORRECTION,
            )

    @pytest.mark.asyncio
    async def test_line_from_another_document_rejected(self) -> None:
        db = _mock_db()

        with pytest.raises(NotFoundException):
            await QuantityLedger(db).append(
                _make_line(uuid.uuid4()),
                document_id=uuid.uuid4(),
                line_key="c-TENT",
                event_type=FulfillmentEventType.RECEIPT,
                quantity=Decimal("1"),
            )

    @pytest.mark.asyncio
    async def test_looks_up_line_when_not_given(self) -> None:
        db = _mock_db()
        doc_id = uuid.uuid4()
        line = _make_line(doc_id)
        db.execute.return_value = _scalar_result(line)

        event = await QuantityLedger(db).append(
            None,
            document_id=doc_id,
            line_key="c-TENT",
            event_type=FulfillmentEventType.RECEIPT,
            quantity=Decimal("1"),
        )
        assert event.line_item_id == line.id

    @pytest.mark.asyncio
    async def test_unknown_line_rejected(self) -> None:
        db = _mock_db()
        db.execute.return_value = _scalar_result(None)

        with pytest.raises(NotFoundException, match="c-NOPE"):
            await QuantityLedger(db).append(
                None,
                document_id=uuid.uuid4(),
                line_key="c-NOPE",
                event_type=FulfillmentEventType.RECEIPT,
                quantity=Decimal("1"),
            )


class TestReads:
    @pytest.mark.asyncio
    async def test_events_for_checks_line_then_lists(self) -> None:
        db = _mock_db()
        doc_id = uuid.uuid4()
        events = [
            FulfillmentEvent(sequence=1, line_key="c-TENT", quantity=Decimal("4")),
            FulfillmentEvent(sequence=2, line_key="c-TENT", quantity=Decimal("6")),
        ]
        db.execute.side_effect = [_scalar_result(_make_line(doc_id)), _scalars_result(events)]

        result = await QuantityLedger(db).events_for(doc_id, "c-TENT")

        assert [e.sequence for e in result] == [1, 2]
        assert db.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_events_for_unknown_line(self) -> None:
        db = _mock_db()
        db.execute.return_value = _scalar_result(None)

        with pytest.raises(NotFoundException):
            await QuantityLedger(db).events_for(uuid.uuid4(), "c-NOPE")

    @pytest.mark.asyncio
    async def test_events_for_document_filters_by_type(self) -> None:
        db = _mock_db()
        db.execute.return_value = _scalars_result([])

        await QuantityLedger(db).events_for_document(
            uuid.uuid4(), FulfillmentEventType.INVOICE_POST
        )

        statement = db.execute.await_args.args[0]
        params = statement.compile().params
        assert FulfillmentEventType.INVOICE_POST in params.values()

    @pytest.mark.asyncio
    async def test_get_event_not_found(self) -> None:
        db = _mock_db()
        db.execute.return_value = _scalar_result(None)

        with pytest.raises(NotFoundException):
            await QuantityLedger(db).get_event(uuid.uuid4())
