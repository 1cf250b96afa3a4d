from typing import List
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IVpsActionRepository
from ._commit import save

class SqlalchemyVpsActionRepository(IVpsActionRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, action_model: models.VpsAction) -> models.VpsAction:
        return save(self.db, action_model, add=True)

    def list_by_vps_id(self, vps_id: int) -> List[models.VpsAction]:
        return self.db.query(models.VpsAction).filter(
            models.VpsAction.vps_instance_id == vps_id
        ).order_by(models.VpsAction.requested_at.desc(), models.VpsAction.id.desc()).all()
