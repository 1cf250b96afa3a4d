# src/services/invoice_service.py
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from src.config import BillingConfig
from src.database import models
from src.database.models import InvoiceStatus, OrderStatus
from src.repositories.interfaces import IInvoiceRepository, IOrderRepository
from src.services.exceptions import DuplicateRecordError, NotFoundError
from src.utils.dates import month_prefix, utcnow

logger = logging.getLogger(__name__)

# 결제가 확인된 것으로 보는 주문 상태
PAID_ORDER_STATUSES = {
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.PROVISIONING,
    OrderStatus.COMPLETED,
}

MAX_NUMBER_ATTEMPTS = 5
_CENTS = Decimal("0.01")


class InvoiceService:
    def __init__(self, order_repo: IOrderRepository, invoice_repo: IInvoiceRepository,
                 billing: BillingConfig = None, clock: Callable = utcnow):
        self.order_repo = order_repo
        self.invoice_repo = invoice_repo
        self.billing = billing or BillingConfig()
        self.clock = clock

    def _next_invoice_number(self, now, attempt: int) -> str:
        prefix = f"INV-{month_prefix(now)}-"
        sequence = self.invoice_repo.count_by_number_prefix(prefix) + 1 + attempt
        return f"{prefix}{sequence:04d}"

    def _build_invoice(self, order: models.Order, attempt: int) -> models.Invoice:
        now = self.clock()
        amount = Decimal(order.total_amount).quantize(_CENTS)
        tax_amount = (amount * self.billing.tax_rate).quantize(_CENTS, rounding=ROUND_HALF_UP)
        is_paid = order.status in PAID_ORDER_STATUSES

        return models.Invoice(
            user_id=order.user_id,
            order_id=order.id,
            invoice_number=self._next_invoice_number(now, attempt),
            amount=amount,
            tax_amount=tax_amount,
            total=amount + tax_amount,
            status=InvoiceStatus.PAID if is_paid else InvoiceStatus.PENDING,
            due_date=now + timedelta(days=self.billing.invoice_due_days),
            paid_at=(order.paid_at or now) if is_paid else None,
        )

    def ensure_invoice(self, order: models.Order) -> models.Invoice:
        """
        주문의 청구서를 반환합니다. 없으면 새로 생성합니다.

        동시에 두 요청이 청구서를 만들려고 하면 DB의 부분 유니크 인덱스가 하나만 통과시키며,
        진 쪽은 이긴 쪽이 만든 청구서를 다시 읽어 반환합니다.
        청구서 번호가 겹친 경우에는 번호를 다시 계산해 재시도합니다.

        Args:
            order: 청구서를 발행할 주문.

        Returns:
            주문에 연결된, 삭제되지 않은 유일한 청구서.

        Raises:
            DuplicateRecordError: 번호 충돌이 반복되어 청구서를 만들 수 없을 때.
        """
        existing = self.invoice_repo.find_active_by_order_id(order.id)
        if existing:
            return existing

        for attempt in range(MAX_NUMBER_ATTEMPTS):
            invoice = self._build_invoice(order, attempt)
            try:
                created = self.invoice_repo.create(invoice)
                logger.info("Invoice %s created for order %s", created.invoice_number, order.order_number,
                            extra={"order_id": order.id})
                return created
            except DuplicateRecordError:
                existing = self.invoice_repo.find_active_by_order_id(order.id)
                if existing:
                    logger.info("Invoice for order %s was created concurrently; reusing %s",
                                order.order_number, existing.invoice_number, extra={"order_id": order.id})
                    return existing
                logger.warning("Invoice number %s already taken; retrying", invoice.invoice_number)

        raise DuplicateRecordError(f"Could not allocate an invoice number for order {order.id}")

    def generate_invoice(self, order_id: int) -> models.Invoice:
        """
        과거 주문처럼 청구서가 없는 주문에 대해 청구서를 발행합니다.

        Raises:
            NotFoundError: 주문이 존재하지 않을 때.
        """
        order = self.order_repo.find_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found.")
        return self.ensure_invoice(order)
