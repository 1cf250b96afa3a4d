from abc import ABC, abstractmethod
from typing import List, Optional
from src.database import models

class ISnapshotRepository(ABC):
    @abstractmethod
    def create(self, snapshot_model: models.Snapshot) -> models.Snapshot:
        """새로운 스냅샷 레코드를 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, snapshot_id: int) -> Optional[models.Snapshot]:
        """고유 ID로 스냅샷을 조회합니다."""
        pass

    @abstractmethod
    def find_by_name(self, vps_id: int, name: str) -> Optional[models.Snapshot]:
        """인스턴스 내에서 이름으로 스냅샷을 조회합니다."""
        pass

    @abstractmethod
    def list_by_vps_id(self, vps_id: int) -> List[models.Snapshot]:
        """특정 인스턴스의 스냅샷 목록을 최신순으로 조회합니다."""
        pass

    @abstractmethod
    def update(self, snapshot_model: models.Snapshot) -> models.Snapshot:
        """변경된 스냅샷 정보를 저장합니다."""
        pass

    @abstractmethod
    def delete(self, snapshot: models.Snapshot) -> bool:
        """스냅샷 레코드를 삭제합니다."""
        pass
