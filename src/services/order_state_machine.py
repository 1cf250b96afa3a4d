# src/services/order_state_machine.py
"""
주문 상태 머신
==============

주문 상태는 아래 테이블의 간선을 따라서만 이동합니다.
테이블에 없는 전이(예: PENDING -> COMPLETED)는 결제/프로비저닝 보장을 우회하므로 항상 거부합니다.

    PENDING      -> PAID, CANCELLED
    PAID         -> PROCESSING, CANCELLED
    PROCESSING   -> PROVISIONING, CANCELLED
    PROVISIONING -> COMPLETED, CANCELLED
    COMPLETED, CANCELLED : 종료 상태

전이가 저장된 뒤에는 등록된 후처리 훅(예: 청구서 발행)이 순서대로 실행됩니다.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from src.database import models
from src.database.models import OrderStatus, PaymentStatus
from src.repositories.interfaces import IOrderRepository
from src.services.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedAccessError,
)
from src.services.invoice_service import InvoiceService
from src.utils.dates import utcnow

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PROVISIONING, OrderStatus.CANCELLED}),
    OrderStatus.PROVISIONING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# 결제 이후 이행 경로. 시스템 경로(mark_*)는 이 순서대로 한 간선씩 전진합니다.
FULFILLMENT_PATH = [
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.PROVISIONING,
    OrderStatus.COMPLETED,
]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class OrderTransitionHook(ABC):
    """전이가 DB에 저장된 직후 실행되는 후처리."""

    @abstractmethod
    def after_transition(self, order: models.Order, previous: OrderStatus) -> None:
        pass


class InvoiceGenerationHook(OrderTransitionHook):
    """PAID 또는 COMPLETED에 새로 진입할 때 주문의 청구서를 보장합니다."""

    TRIGGER_STATUSES = {OrderStatus.PAID, OrderStatus.COMPLETED}

    def __init__(self, invoice_service: InvoiceService):
        self.invoice_service = invoice_service

    def after_transition(self, order: models.Order, previous: OrderStatus) -> None:
        if order.status in self.TRIGGER_STATUSES and previous not in self.TRIGGER_STATUSES:
            self.invoice_service.ensure_invoice(order)


class OrderStateMachine:
    def __init__(self, order_repo: IOrderRepository, hooks: Optional[List[OrderTransitionHook]] = None,
                 clock: Callable = utcnow):
        self.order_repo = order_repo
        self.hooks = list(hooks or [])
        self.clock = clock

    def _get_order(self, order_id: int) -> models.Order:
        order = self.order_repo.find_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found.")
        return order

    def _apply(self, order: models.Order, target: OrderStatus, admin_notes: Optional[str] = None) -> models.Order:
        previous = order.status
        now = self.clock()

        order.status = target
        if target == OrderStatus.PAID:
            order.paid_at = now
            order.payment_status = PaymentStatus.PROCESSING
        elif target == OrderStatus.COMPLETED:
            order.completed_at = now
            order.payment_status = PaymentStatus.COMPLETED
        if admin_notes is not None:
            order.admin_notes = admin_notes

        order = self.order_repo.update(order)
        logger.info("Order %s: %s -> %s", order.order_number, previous.value, target.value,
                    extra={"order_id": order.id})

        self._run_hooks(order, previous)
        return order

    def _run_hooks(self, order: models.Order, previous: OrderStatus) -> None:
        # 전이는 이미 커밋되었으므로 훅 실패는 기록만 합니다. (청구서는 generate_invoice로 보충 가능)
        for hook in self.hooks:
            try:
                hook.after_transition(order, previous)
            except Exception:
                logger.exception("Post-transition hook %s failed for order %s",
                                 type(hook).__name__, order.order_number, extra={"order_id": order.id})

    def transition(self, order_id: int, target: OrderStatus, admin_notes: Optional[str] = None) -> models.Order:
        """
        주문을 target 상태로 전이합니다.

        Args:
            order_id: 전이할 주문의 ID.
            target: 목표 상태.
            admin_notes: 관리자 메모. 주어지면 함께 저장합니다.

        Returns:
            전이가 반영된 주문.

        Raises:
            NotFoundError: 주문이 존재하지 않을 때.
            InvalidTransitionError: 현재 상태에서 target으로 가는 간선이 없을 때. 상태는 바뀌지 않습니다.
        """
        target = OrderStatus(target)
        order = self._get_order(order_id)
        if not can_transition(order.status, target):
            raise InvalidTransitionError(order.status, target)
        return self._apply(order, target, admin_notes)

    def _advance_to(self, order: models.Order, target: OrderStatus, admin_notes: Optional[str]) -> models.Order:
        if order.status not in FULFILLMENT_PATH:
            raise InvalidStateError(
                f"Order {order.order_number} cannot be fulfilled from status {order.status.value}."
            )
        current_index = FULFILLMENT_PATH.index(order.status)
        target_index = FULFILLMENT_PATH.index(target)
        if current_index > target_index:
            raise InvalidStateError(
                f"Order {order.order_number} is already past {target.value} (status {order.status.value})."
            )

        for step in FULFILLMENT_PATH[current_index + 1:target_index + 1]:
            notes = admin_notes if step == target else None
            order = self._apply(order, step, notes)
        return order

    def mark_provisioning(self, order_id: int) -> models.Order:
        """
        프로비저닝 시작을 기록합니다. PAID/PROCESSING 주문은 간선을 따라 PROVISIONING까지 전진하며,
        이미 PROVISIONING이면 아무 것도 바꾸지 않습니다. (크래시 후 재시도 허용)

        Raises:
            InvalidStateError: 주문이 PAID, PROCESSING, PROVISIONING이 아닐 때.
        """
        order = self._get_order(order_id)
        if order.status == OrderStatus.PROVISIONING:
            return order
        if order.status == OrderStatus.COMPLETED or order.status not in FULFILLMENT_PATH:
            raise InvalidStateError(
                f"Order {order.order_number} cannot start provisioning from status {order.status.value}."
            )
        return self._advance_to(order, OrderStatus.PROVISIONING, None)

    def mark_completed(self, order_id: int, admin_notes: Optional[str] = None) -> models.Order:
        """
        주문을 COMPLETED로 전진시킵니다. 이미 COMPLETED이면 멱등하게 그대로 반환합니다.

        Raises:
            InvalidStateError: 주문이 결제되지 않았거나 취소된 상태일 때.
        """
        order = self._get_order(order_id)
        if order.status == OrderStatus.COMPLETED:
            return order
        return self._advance_to(order, OrderStatus.COMPLETED, admin_notes)

    def cancel_by_customer(self, order_id: int, user_id: int) -> models.Order:
        """
        고객이 직접 주문을 취소합니다. 결제 전(PENDING) 주문만 취소할 수 있습니다.

        Raises:
            UnauthorizedAccessError: 요청자가 주문 소유자가 아닐 때.
            InvalidStateError: 주문이 PENDING이 아닐 때.
        """
        order = self._get_order(order_id)
        if order.user_id != user_id:
            raise UnauthorizedAccessError("Access denied to this order.")
        if order.status != OrderStatus.PENDING:
            raise InvalidStateError("Only pending orders can be cancelled.")
        return self._apply(order, OrderStatus.CANCELLED)
