# tests/services/test_invoice_service.py
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock, ANY

import pytest

from src.config import BillingConfig
from src.database import models
from src.database.models import InvoiceStatus, OrderStatus
from src.repositories.interfaces import IInvoiceRepository, IOrderRepository
from src.services.exceptions import DuplicateRecordError, NotFoundError
from src.services.invoice_service import InvoiceService

NOW = datetime(2024, 1, 15, 12, 0, 0)


def make_order(status=OrderStatus.PAID, **overrides) -> models.Order:
    values = dict(
        id=7,
        order_number="ORD-202401-00007",
        user_id=10,
        status=status,
        total_amount=Decimal("25.00"),
        paid_at=datetime(2024, 1, 14, 9, 0, 0),
    )
    values.update(overrides)
    return models.Order(**values)


# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_order_repo() -> MagicMock:
    return MagicMock(spec=IOrderRepository)


@pytest.fixture
def mock_invoice_repo() -> MagicMock:
    """IInvoiceRepository 모의 객체. create는 전달받은 청구서를 그대로 반환합니다."""
    repo = MagicMock(spec=IInvoiceRepository)
    repo.find_active_by_order_id.return_value = None
    repo.count_by_number_prefix.return_value = 0
    repo.create.side_effect = lambda invoice: invoice
    return repo


@pytest.fixture
def invoice_service(mock_order_repo, mock_invoice_repo) -> InvoiceService:
    return InvoiceService(mock_order_repo, mock_invoice_repo, BillingConfig(), clock=lambda: NOW)


# ===================================================================
#  ensure_invoice 테스트
# ===================================================================
class TestEnsureInvoice:
    def test_creates_paid_invoice_for_paid_order(self, invoice_service, mock_invoice_repo):
        """결제된 주문의 청구서는 PAID 상태이며 세금 10%가 붙습니다."""
        # === Arrange ===
        order = make_order(OrderStatus.PAID)
        mock_invoice_repo.count_by_number_prefix.return_value = 41

        # === Act ===
        invoice = invoice_service.ensure_invoice(order)

        # === Assert ===
        assert invoice.invoice_number == "INV-202401-0042"
        assert invoice.amount == Decimal("25.00")
        assert invoice.tax_amount == Decimal("2.50")
        assert invoice.total == Decimal("27.50")
        assert invoice.total == invoice.amount + invoice.tax_amount
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_at == order.paid_at
        assert invoice.due_date == NOW + timedelta(days=30)
        mock_invoice_repo.count_by_number_prefix.assert_called_once_with("INV-202401-")

    def test_tax_rounds_half_up(self, invoice_service):
        invoice = invoice_service.ensure_invoice(make_order(total_amount=Decimal("9.95")))
        assert invoice.tax_amount == Decimal("1.00")  # 0.995 -> 1.00

    def test_pending_order_gets_pending_invoice(self, invoice_service):
        invoice = invoice_service.ensure_invoice(make_order(OrderStatus.PENDING, paid_at=None))

        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.paid_at is None

    def test_paid_at_falls_back_to_now(self, invoice_service):
        invoice = invoice_service.ensure_invoice(make_order(OrderStatus.COMPLETED, paid_at=None))
        assert invoice.paid_at == NOW

    def test_returns_existing_invoice(self, invoice_service, mock_invoice_repo):
        """이미 청구서가 있으면 새로 만들지 않습니다."""
        existing = models.Invoice(id=3, order_id=7, invoice_number="INV-202401-0001")
        mock_invoice_repo.find_active_by_order_id.return_value = existing

        assert invoice_service.ensure_invoice(make_order()) is existing
        mock_invoice_repo.create.assert_not_called()

    def test_concurrent_creation_returns_winner(self, invoice_service, mock_invoice_repo):
        """유니크 인덱스에서 진 요청은 이긴 요청의 청구서를 반환합니다."""
        # === Arrange ===
        winner = models.Invoice(id=5, order_id=7, invoice_number="INV-202401-0001")
        mock_invoice_repo.find_active_by_order_id.side_effect = [None, winner]
        mock_invoice_repo.create.side_effect = DuplicateRecordError("uq_invoices_active_order")

        # === Act ===
        invoice = invoice_service.ensure_invoice(make_order())

        # === Assert ===
        assert invoice is winner
        mock_invoice_repo.create.assert_called_once_with(ANY)

    def test_number_collision_retries_with_next_number(self, invoice_service, mock_invoice_repo):
        # === Arrange ===
        numbers = []

        def create(invoice):
            numbers.append(invoice.invoice_number)
            if len(numbers) == 1:
                raise DuplicateRecordError("invoice_number")
            return invoice

        mock_invoice_repo.create.side_effect = create

        # === Act ===
        invoice = invoice_service.ensure_invoice(make_order())

        # === Assert ===
        assert numbers == ["INV-202401-0001", "INV-202401-0002"]
        assert invoice.invoice_number == "INV-202401-0002"

    def test_gives_up_after_repeated_collisions(self, invoice_service, mock_invoice_repo):
        mock_invoice_repo.create.side_effect = DuplicateRecordError("invoice_number")

        with pytest.raises(DuplicateRecordError):
            invoice_service.ensure_invoice(make_order())


class TestGenerateInvoice:
    def test_generates_for_existing_order(self, invoice_service, mock_order_repo, mock_invoice_repo):
        mock_order_repo.find_by_id.return_value = make_order()

        invoice = invoice_service.generate_invoice(7)

        assert invoice.order_id == 7
        mock_invoice_repo.create.assert_called_once()

    def test_missing_order(self, invoice_service, mock_order_repo):
        mock_order_repo.find_by_id.return_value = None

        with pytest.raises(NotFoundError):
            invoice_service.generate_invoice(404)
