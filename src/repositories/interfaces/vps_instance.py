from abc import ABC, abstractmethod
from typing import List, Optional
from src.database import models

class IVpsInstanceRepository(ABC):
    @abstractmethod
    def create(self, vps_model: models.VpsInstance) -> models.VpsInstance:
        """
        새로운 VPS 인스턴스 레코드를 생성합니다.

        Raises:
            DuplicateRecordError: provider_instance_id 또는 order_id가 이미 다른 레코드에 있을 때.
        """
        pass

    @abstractmethod
    def find_by_id(self, vps_id: int) -> Optional[models.VpsInstance]:
        """DB에서 최신 상태를 다시 읽어 인스턴스를 반환합니다."""
        pass

    @abstractmethod
    def find_by_provider_instance_id(self, provider_instance_id: int) -> Optional[models.VpsInstance]:
        """프로바이더 인스턴스 ID로 인스턴스를 조회합니다."""
        pass

    @abstractmethod
    def find_by_order_id(self, order_id: int) -> Optional[models.VpsInstance]:
        """주문에 바인딩된 인스턴스를 조회합니다."""
        pass

    @abstractmethod
    def list_by_user_id(self, user_id: int) -> List[models.VpsInstance]:
        """특정 사용자가 소유한 인스턴스 목록을 조회합니다."""
        pass

    @abstractmethod
    def list_all_provider_instance_ids(self) -> List[int]:
        """로컬에 바인딩된 모든 프로바이더 인스턴스 ID 목록을 조회합니다."""
        pass

    @abstractmethod
    def update(self, vps_model: models.VpsInstance) -> models.VpsInstance:
        """
        변경된 인스턴스 정보를 저장합니다.

        Raises:
            DuplicateRecordError: 유니크 제약 조건을 위반했을 때.
        """
        pass
