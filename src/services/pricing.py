# src/services/pricing.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class PriceBreakdown:
    """주문 생성 시점의 가격. total은 세 요소의 합입니다."""
    base_price: Decimal
    region_price_adj: Decimal = Decimal("0")
    os_price_adj: Decimal = Decimal("0")
    currency: str = "USD"
    region_code: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return self.base_price + self.region_price_adj + self.os_price_adj


class IPricingCatalog(ABC):
    """상품/리전/OS 가격표. 주문 생성 시에만 조회하며 이후 가격을 다시 계산하지 않습니다."""

    @abstractmethod
    def quote(self, product_id: int, period_months: int, region_id: Optional[int] = None,
              os_id: Optional[int] = None) -> PriceBreakdown:
        """
        Raises:
            NotFoundError: 상품 또는 해당 기간의 가격을 찾을 수 없을 때.
        """
        pass
