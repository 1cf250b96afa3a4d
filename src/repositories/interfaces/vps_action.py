from abc import ABC, abstractmethod
from typing import List
from src.database import models

class IVpsActionRepository(ABC):
    @abstractmethod
    def create(self, action_model: models.VpsAction) -> models.VpsAction:
        """새로운 액션 감사 기록을 추가합니다."""
        pass

    @abstractmethod
    def list_by_vps_id(self, vps_id: int) -> List[models.VpsAction]:
        """특정 인스턴스의 액션 이력을 최신순으로 조회합니다."""
        pass
