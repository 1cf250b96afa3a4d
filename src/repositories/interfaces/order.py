from abc import ABC, abstractmethod
from typing import Optional
from src.database import models

class IOrderRepository(ABC):
    @abstractmethod
    def create(self, order_model: models.Order) -> models.Order:
        """
        새로운 주문을 생성합니다.

        Raises:
            DuplicateRecordError: order_number가 이미 존재할 때.
        """
        pass

    @abstractmethod
    def find_by_id(self, order_id: int) -> Optional[models.Order]:
        """DB에서 최신 상태를 다시 읽어 주문을 반환합니다."""
        pass

    @abstractmethod
    def find_by_order_number(self, order_number: str) -> Optional[models.Order]:
        """주문 번호로 주문을 조회합니다."""
        pass

    @abstractmethod
    def count_by_number_prefix(self, prefix: str) -> int:
        """주어진 접두어(예: 'ORD-202401-')로 시작하는 주문 번호의 개수를 셉니다."""
        pass

    @abstractmethod
    def update(self, order_model: models.Order) -> models.Order:
        """변경된 주문 정보를 저장합니다."""
        pass
