from typing import Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IImageRepository
from ._commit import save

class SqlalchemyImageRepository(IImageRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, image_model: models.Image) -> models.Image:
        return save(self.db, image_model, add=True)

    def find_by_id(self, image_id: int) -> Optional[models.Image]:
        return self.db.query(models.Image).filter(models.Image.id == image_id).first()

    def find_by_provider_image_id(self, provider_image_id: str) -> Optional[models.Image]:
        return self.db.query(models.Image).filter(models.Image.provider_image_id == provider_image_id).first()
