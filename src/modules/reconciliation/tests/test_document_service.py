"""Tests for DocumentService — registration, line keys, and opening drafts."""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.exceptions import (
    ConflictException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from src.models.enums import DocumentFamily, DocumentStatus
from src.models.event_outbox import EventOutbox
from src.models.parent_document import ParentDocument
from src.modules.identity.auth import AuthenticatedUser
from src.modules.reconciliation.constants import (
    EVENT_DOCUMENT_OPENED,
    EVENT_DOCUMENT_REGISTERED,
)
from src.modules.reconciliation.document_service import DocumentService, make_line_key


def _make_user() -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid.uuid4(), email="ops@example.com", role="ADMIN")


def _mock_db() -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    return db


def _count_result(count: int) -> MagicMock:
    result = MagicMock()
    result.scalar.return_value = count
    return result


def _scalar_result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _added(db: AsyncMock, cls) -> list:
    return [c.args[0] for c in db.add.call_args_list if isinstance(c.args[0], cls)]


class TestMakeLineKey:
    def test_product_takes_precedence(self) -> None:
        product_id = uuid.uuid4()
        assert make_line_key(product_id, "TENT-01") == f"p-{product_id}"

    def test_item_code_fallback(self) -> None:
        assert make_line_key(None, " TENT-01 ") == "c-TENT-01"

    def test_neither_rejected(self) -> None:
        with pytest.raises(ValidationException):
            make_line_key(None, "   ")


class TestRegisterDocument:
    @pytest.mark.asyncio
    async def test_sales_order_starts_in_draft(self) -> None:
        db = _mock_db()
        fetched = MagicMock(spec=ParentDocument)
        db.execute.side_effect = [_count_result(0), _scalar_result(fetched)]

        svc = DocumentService(db)
        result = await svc.register_document(
            family=DocumentFamily.SALES_ORDER,
            document_number="SO-1001",
            lines=[
                {"item_code": "ROPE-20", "quantity_ordered": Decimal("5")},
                {"item_code": "SHACKLE", "quantity_ordered": Decimal("0")},
            ],
            actor=_make_user(),
        )

        assert result is fetched
        document = _added(db, ParentDocument)[0]
        assert document.status == DocumentStatus.DRAFT
        assert [li.line_key for li in document.line_items] == ["c-ROPE-20", "c-SHACKLE"]
        assert [li.position for li in document.line_items] == [0, 1]
        assert all(li.document_id == document.id for li in document.line_items)

        outbox = _added(db, EventOutbox)
        assert [e.event_type for e in outbox] == [EVENT_DOCUMENT_REGISTERED]
        assert outbox[0].payload["line_count"] == 2

    @pytest.mark.asyncio
    async def test_rental_order_starts_open(self) -> None:
        db = _mock_db()
        db.execute.side_effect = [_count_result(0), _scalar_result(MagicMock())]

        await DocumentService(db).register_document(
            family=DocumentFamily.RENTAL_ORDER,
            document_number="RO-77",
            lines=[{"product_id": uuid.uuid4(), "quantity_ordered": 10}],
            actor=_make_user(),
        )

        document = _added(db, ParentDocument)[0]
        assert document.status == DocumentStatus.OPEN
        assert document.line_items[0].line_key.startswith("p-")
        assert document.line_items[0].quantity_ordered == Decimal("10")

    @pytest.mark.asyncio
    async def test_duplicate_document_number(self) -> None:
        db = _mock_db()
        db.execute.return_value = _count_result(1)

        with pytest.raises(ConflictException, match="SO-1001"):
            await DocumentService(db).register_document(
                family=DocumentFamily.SALES_ORDER,
                document_number="SO-1001",
                lines=[{"item_code": "ROPE-20", "quantity_ordered": 1}],
                actor=_make_user(),
            )
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_counterparty(self) -> None:
        db = _mock_db()
        db.execute.side_effect = [_count_result(0), _scalar_result(None)]

        with pytest.raises(NotFoundException, match="Counterparty"):
            await DocumentService(db).register_document(
                family=DocumentFamily.SALES_ORDER,
                document_number="SO-1002",
                lines=[{"item_code": "ROPE-20", "quantity_ordered": 1}],
                actor=_make_user(),
                counterparty_id=uuid.uuid4(),
            )

    @pytest.mark.asyncio
    async def test_duplicate_line_key(self) -> None:
        db = _mock_db()
        db.execute.return_value = _count_result(0)

        with pytest.raises(ValidationException, match="Duplicate line"):
            await DocumentService(db).register_document(
                family=DocumentFamily.SALES_ORDER,
                document_number="SO-1003",
                lines=[
                    {"item_code": "ROPE-20", "quantity_ordered": 1},
                    {"item_code": "ROPE-20", "quantity_ordered": 2},
                ],
                actor=_make_user(),
            )

    @pytest.mark.asyncio
    async def test_negative_ordered_quantity(self) -> None:
        db = _mock_db()
        db.execute.return_value = _count_result(0)

        with pytest.raises(ValidationException, match="negative"):
            await DocumentService(db).register_document(
                family=DocumentFamily.RENTAL_ORDER,
                document_number="RO-1",
                lines=[{"item_code": "TENT", "quantity_ordered": -1}],
                actor=_make_user(),
            )

    @pytest.mark.asyncio
    async def test_ordered_quantity_finer_than_storage_rejected(self) -> None:
        db = _mock_db()
        db.execute.return_value = _count_result(0)

        with pytest.raises(ValidationException, match="3 decimal places"):
            await DocumentService(db).register_document(
                family=DocumentFamily.RENTAL_ORDER,
                document_number="RO-3",
                lines=[{"item_code": "TENT", "quantity_ordered": Decimal("2.0005")}],
                actor=_make_user(),
            )
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_item_code_stored_as_keyed(self) -> None:
        db = _mock_db()
        db.execute.side_effect = [_count_result(0), _scalar_result(MagicMock())]

        await DocumentService(db).register_document(
            family=DocumentFamily.RENTAL_ORDER,
            document_number="RO-4",
            lines=[{"item_code": "  TENT-4P  ", "quantity_ordered": Decimal("2.500")}],
            actor=_make_user(),
        )

        line = _added(db, ParentDocument)[0].line_items[0]
        assert line.line_key == "c-TENT-4P"
        assert line.item_code == "TENT-4P"
        assert line.quantity_ordered == Decimal("2.5")

    @pytest.mark.asyncio
    async def test_no_lines(self) -> None:
        with pytest.raises(ValidationException, match="at least one line"):
            await DocumentService(_mock_db()).register_document(
                family=DocumentFamily.RENTAL_ORDER,
                document_number="RO-2",
                lines=[],
                actor=_make_user(),
            )


class TestOpenDocument:
    def _document(self, status: DocumentStatus) -> ParentDocument:
        return ParentDocument(
            id=uuid.uuid4(),
            document_number="SO-1",
            family=DocumentFamily.SALES_ORDER,
            status=status,
        )

    @pytest.mark.asyncio
    async def test_draft_becomes_open(self) -> None:
        document = self._document(DocumentStatus.DRAFT)
        db = _mock_db()
        db.execute.return_value = _scalar_result(document)

        result = await DocumentService(db).open_document(document.id, _make_user())

        assert result.status == DocumentStatus.OPEN
        assert [e.event_type for e in _added(db, EventOutbox)] == [EVENT_DOCUMENT_OPENED]
        statement = db.execute.await_args.args[0]
        assert statement._for_update_arg is not None

    @pytest.mark.asyncio
    async def test_non_draft_rejected(self) -> None:
        document = self._document(DocumentStatus.OPEN)
        db = _mock_db()
        db.execute.return_value = _scalar_result(document)

        with pytest.raises(InvalidStateException, match="Only DRAFT"):
            await DocumentService(db).open_document(document.id, _make_user())

    @pytest.mark.asyncio
    async def test_missing_document(self) -> None:
        db = _mock_db()
        db.execute.return_value = _scalar_result(None)

        with pytest.raises(NotFoundException):
            await DocumentService(db).open_document(uuid.uuid4(), _make_user())
