# src/services/order_service.py
import logging
from typing import Callable, List, Optional, Union

from src.config import BillingConfig
from src.database import models
from src.database.models import OrderStatus, PaymentStatus
from src.repositories.interfaces import IImageRepository, IOrderRepository, ISshKeyRepository
from src.services.access import Actor, ensure_owner_or_admin
from src.services.exceptions import (
    ConfigurationError,
    ConflictError,
    DuplicateRecordError,
    InvalidStateError,
    NotFoundError,
)
from src.services.invoice_service import PAID_ORDER_STATUSES
from src.services.order_state_machine import OrderStateMachine
from src.services.payment_gateway import IPaymentGateway
from src.services.pricing import IPricingCatalog
from src.utils.dates import month_prefix, utcnow

logger = logging.getLogger(__name__)

MAX_NUMBER_ATTEMPTS = 5


class OrderService:
    def __init__(self, order_repo: IOrderRepository, ssh_key_repo: ISshKeyRepository,
                 image_repo: IImageRepository, pricing_catalog: IPricingCatalog,
                 state_machine: OrderStateMachine, payment_gateway: Optional[IPaymentGateway] = None,
                 billing: BillingConfig = None, clock: Callable = utcnow):
        self.order_repo = order_repo
        self.ssh_key_repo = ssh_key_repo
        self.image_repo = image_repo
        self.pricing_catalog = pricing_catalog
        self.state_machine = state_machine
        self.payment_gateway = payment_gateway
        self.billing = billing or BillingConfig()
        self.clock = clock

    # ------------------------------------------------------------------
    # 주문 생성
    # ------------------------------------------------------------------

    def _validate_ssh_keys(self, user_id: int, ssh_key_ids: List[int]) -> List[int]:
        unique_ids = list(dict.fromkeys(ssh_key_ids))
        keys = self.ssh_key_repo.list_by_ids(unique_ids)
        owned = [key for key in keys if key.user_id == user_id]
        if len(owned) != len(unique_ids):
            raise ValueError("One or more SSH keys do not belong to you.")
        return unique_ids

    def _resolve_image(self, image_ref: Union[int, str, None]) -> Optional[int]:
        """
        내부 ID 또는 프로바이더 이미지 ID로 이미지를 찾습니다.
        찾지 못했거나 비활성 이미지이면 이미지 없이 주문을 만들고, 관리자가 프로비저닝 시 지정합니다.
        """
        if image_ref is None or image_ref == "":
            return None

        image = None
        if isinstance(image_ref, int) or str(image_ref).isdigit():
            image = self.image_repo.find_by_id(int(image_ref))
        if not image:
            image = self.image_repo.find_by_provider_image_id(str(image_ref))

        if not image:
            logger.warning("Image %r not found; creating order without image", image_ref)
            return None
        if not image.is_active:
            logger.warning("Image %r is not active; creating order without image", image_ref)
            return None
        return image.id

    def _next_order_number(self, now, attempt: int) -> str:
        prefix = f"ORD-{month_prefix(now)}-"
        sequence = self.order_repo.count_by_number_prefix(prefix) + 1 + attempt
        return f"{prefix}{sequence:05d}"

    def create_order(self, user_id: int, product_id: int, period_months: int, region: Optional[str] = None,
                     region_id: Optional[int] = None, os_id: Optional[int] = None,
                     image_ref: Union[int, str, None] = None, ssh_key_ids: Optional[List[int]] = None,
                     user_data: Optional[str] = None) -> models.Order:
        """
        새 주문을 PENDING 상태로 생성합니다.

        가격은 가격표에서 한 번만 받아 세 요소(base/region/os)와 합계를 함께 고정하며,
        이후 가격표가 바뀌어도 기존 주문 금액은 변하지 않습니다.

        Args:
            user_id: 주문하는 사용자의 ID.
            product_id: 상품 ID.
            period_months: 결제 주기(개월). 1, 3, 6, 12 중 하나.
            region: 리전 코드. 없으면 가격표가 알려준 리전 코드를 사용합니다.
            region_id: 리전 가격 조정을 위한 리전 ID.
            os_id: OS 가격 조정을 위한 OS ID.
            image_ref: 내부 이미지 ID 또는 프로바이더 이미지 ID.
            ssh_key_ids: 설치할 SSH 키 ID 목록. 모두 user_id 소유여야 합니다.
            user_data: cloud-init 등 자유 형식 데이터.

        Returns:
            생성된 주문.

        Raises:
            ValueError: 결제 주기, SSH 키, 리전 값이 잘못되었을 때.
            NotFoundError: 가격표에서 상품을 찾을 수 없을 때.
        """
        if period_months not in self.billing.allowed_periods:
            allowed = ", ".join(str(p) for p in self.billing.allowed_periods)
            raise ValueError(f"Invalid billing period. Must be one of: {allowed}")

        key_ids = self._validate_ssh_keys(user_id, ssh_key_ids) if ssh_key_ids else None
        image_id = self._resolve_image(image_ref)

        quote = self.pricing_catalog.quote(product_id, period_months, region_id=region_id, os_id=os_id)
        region_code = region or quote.region_code
        if not region_code:
            raise ValueError("Region is required.")

        for attempt in range(MAX_NUMBER_ATTEMPTS):
            now = self.clock()
            order = models.Order(
                order_number=self._next_order_number(now, attempt),
                user_id=user_id,
                product_id=product_id,
                status=OrderStatus.PENDING,
                total_amount=quote.total,
                base_price=quote.base_price,
                region_price_adj=quote.region_price_adj,
                os_price_adj=quote.os_price_adj,
                currency=quote.currency,
                period_months=period_months,
                region=region_code,
                image_id=image_id,
                ssh_keys=key_ids,
                user_data=user_data,
                payment_status=PaymentStatus.PENDING,
            )
            try:
                created = self.order_repo.create(order)
            except DuplicateRecordError:
                logger.warning("Order number %s already taken; retrying", order.order_number)
                continue
            logger.info("Order %s created for user %s (total %s %s)", created.order_number, user_id,
                        created.total_amount, created.currency, extra={"order_id": created.id})
            return created

        raise DuplicateRecordError("Could not allocate an order number.")

    # ------------------------------------------------------------------
    # 조회 / 상태 변경
    # ------------------------------------------------------------------

    def get_order(self, order_id: int, actor: Actor) -> models.Order:
        order = self.order_repo.find_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found.")
        ensure_owner_or_admin(order.user_id, actor, "order")
        return order

    def transition_order(self, order_id: int, status: OrderStatus, admin_notes: Optional[str] = None) -> models.Order:
        """관리자 요청에 따른 상태 전이. 허용 여부는 상태 머신이 판단합니다."""
        return self.state_machine.transition(order_id, status, admin_notes)

    def cancel_order(self, order_id: int, user_id: int) -> models.Order:
        return self.state_machine.cancel_by_customer(order_id, user_id)

    def confirm_payment(self, order_id: int, payment_intent_id: str) -> models.Order:
        """
        결제 게이트웨이에서 결제 완료를 확인하고 주문을 PAID로 전이합니다.
        웹훅과 클라이언트 확인이 중복 호출되어도 안전하도록, 이미 결제된 주문은 그대로 반환합니다.

        Raises:
            NotFoundError: 주문이 존재하지 않을 때.
            InvalidStateError: 주문이 취소되었거나 결제가 아직 성공하지 않았을 때.
            ConflictError: 결제 의도가 다른 주문의 것일 때.
            UpstreamProviderError: 게이트웨이 조회에 실패했을 때.
        """
        if self.payment_gateway is None:
            raise ConfigurationError("No payment gateway configured.")

        order = self.order_repo.find_by_id(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found.")
        if order.status in PAID_ORDER_STATUSES:
            logger.info("Order %s already paid (status %s)", order.order_number, order.status.value,
                        extra={"order_id": order.id})
            return order
        if order.status != OrderStatus.PENDING:
            raise InvalidStateError(f"Order {order.order_number} cannot be paid from status {order.status.value}.")
        if order.payment_intent_id and order.payment_intent_id != payment_intent_id:
            raise ConflictError("Payment intent does not match this order.")

        intent = self.payment_gateway.retrieve_payment_intent(payment_intent_id)
        if intent.order_id is not None and str(intent.order_id) != str(order.id):
            raise ConflictError("Payment intent belongs to a different order.")
        if not intent.succeeded:
            raise InvalidStateError(f"Payment not completed (status: {intent.status}).")

        order.payment_intent_id = payment_intent_id
        order.payment_method = "stripe"
        self.order_repo.update(order)

        return self.state_machine.transition(order_id, OrderStatus.PAID)
