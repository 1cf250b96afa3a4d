from abc import ABC, abstractmethod
from typing import List
from src.database import models

class ISshKeyRepository(ABC):
    @abstractmethod
    def create(self, ssh_key_model: models.SshKey) -> models.SshKey:
        """새로운 SSH 키를 등록합니다."""
        pass

    @abstractmethod
    def list_by_ids(self, key_ids: List[int]) -> List[models.SshKey]:
        """주어진 ID 목록에 해당하는 SSH 키들을 조회합니다. 존재하지 않는 ID는 결과에서 빠집니다."""
        pass

    @abstractmethod
    def list_by_user_id(self, user_id: int) -> List[models.SshKey]:
        """특정 사용자가 등록한 모든 SSH 키를 조회합니다."""
        pass
