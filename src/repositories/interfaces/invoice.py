from abc import ABC, abstractmethod
from typing import Optional
from src.database import models

class IInvoiceRepository(ABC):
    @abstractmethod
    def create(self, invoice_model: models.Invoice) -> models.Invoice:
        """
        새로운 청구서를 생성합니다.

        Raises:
            DuplicateRecordError: 주문에 이미 삭제되지 않은 청구서가 있거나, invoice_number가 중복될 때.
        """
        pass

    @abstractmethod
    def find_active_by_order_id(self, order_id: int) -> Optional[models.Invoice]:
        """주문에 연결된, 삭제되지 않은 청구서를 조회합니다."""
        pass

    @abstractmethod
    def count_by_number_prefix(self, prefix: str) -> int:
        """주어진 접두어(예: 'INV-202401-')로 시작하는 청구서 번호의 개수를 셉니다."""
        pass

    @abstractmethod
    def count_active_by_order_id(self, order_id: int) -> int:
        """주문에 연결된, 삭제되지 않은 청구서의 개수를 셉니다."""
        pass
