# src/services/payment_gateway.py
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import stripe

from src.config import StripeConfig
from src.services.exceptions import ConfigurationError, UpstreamProviderError

logger = logging.getLogger(__name__)


@dataclass
class PaymentIntentInfo:
    intent_id: str
    status: str
    amount: int
    currency: str
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def order_id(self) -> Optional[str]:
        return self.metadata.get("order_id")


class IPaymentGateway(ABC):
    @abstractmethod
    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentInfo:
        """
        결제 게이트웨이에서 결제 의도(PaymentIntent)를 조회합니다.

        Raises:
            UpstreamProviderError: 게이트웨이 호출이 실패했을 때.
        """
        pass


class StripePaymentGateway(IPaymentGateway):
    def __init__(self, config: StripeConfig):
        if not config.is_configured:
            raise ConfigurationError("STRIPE_SECRET_KEY must be set to use the Stripe gateway")
        self.api_key = config.secret_key

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentIntentInfo:
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.warning("Stripe PaymentIntent %s lookup failed: %s", payment_intent_id, e)
            raise UpstreamProviderError(getattr(e, "http_status", None), str(e)) from e

        return PaymentIntentInfo(
            intent_id=intent.id,
            status=intent.status,
            amount=intent.amount,
            currency=intent.currency,
            metadata=dict(intent.metadata or {}),
        )
