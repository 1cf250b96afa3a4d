from abc import ABC, abstractmethod
from typing import Optional
from src.database import models

class IImageRepository(ABC):
    @abstractmethod
    def create(self, image_model: models.Image) -> models.Image:
        """새로운 이미지 레코드를 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, image_id: int) -> Optional[models.Image]:
        """내부 ID로 이미지를 조회합니다."""
        pass

    @abstractmethod
    def find_by_provider_image_id(self, provider_image_id: str) -> Optional[models.Image]:
        """프로바이더 이미지 ID로 이미지를 조회합니다."""
        pass
