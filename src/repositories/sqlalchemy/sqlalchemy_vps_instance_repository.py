from typing import List, Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IVpsInstanceRepository
from ._commit import save

class SqlalchemyVpsInstanceRepository(IVpsInstanceRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, vps_model: models.VpsInstance) -> models.VpsInstance:
        return save(self.db, vps_model, add=True)

    def find_by_id(self, vps_id: int) -> Optional[models.VpsInstance]:
        return self.db.query(models.VpsInstance).populate_existing().filter(models.VpsInstance.id == vps_id).first()

    def find_by_provider_instance_id(self, provider_instance_id: int) -> Optional[models.VpsInstance]:
        return self.db.query(models.VpsInstance).populate_existing().filter(
            models.VpsInstance.provider_instance_id == provider_instance_id
        ).first()

    def find_by_order_id(self, order_id: int) -> Optional[models.VpsInstance]:
        return self.db.query(models.VpsInstance).populate_existing().filter(
            models.VpsInstance.order_id == order_id
        ).first()

    def list_by_user_id(self, user_id: int) -> List[models.VpsInstance]:
        return self.db.query(models.VpsInstance).filter(models.VpsInstance.user_id == user_id).order_by(models.VpsInstance.created_at.desc()).all()

    def list_all_provider_instance_ids(self) -> List[int]:
        rows = self.db.query(models.VpsInstance.provider_instance_id).filter(
            models.VpsInstance.provider_instance_id.isnot(None)
        ).all()
        return [row[0] for row in rows]

    def update(self, vps_model: models.VpsInstance) -> models.VpsInstance:
        return save(self.db, vps_model)
