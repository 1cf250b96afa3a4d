from typing import List, Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import ISnapshotRepository
from ._commit import save

class SqlalchemySnapshotRepository(ISnapshotRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, snapshot_model: models.Snapshot) -> models.Snapshot:
        return save(self.db, snapshot_model, add=True)

    def find_by_id(self, snapshot_id: int) -> Optional[models.Snapshot]:
        return self.db.query(models.Snapshot).filter(models.Snapshot.id == snapshot_id).first()

    def find_by_name(self, vps_id: int, name: str) -> Optional[models.Snapshot]:
        return self.db.query(models.Snapshot).filter(
            models.Snapshot.vps_instance_id == vps_id,
            models.Snapshot.name == name
        ).first()

    def list_by_vps_id(self, vps_id: int) -> List[models.Snapshot]:
        return self.db.query(models.Snapshot).filter(
            models.Snapshot.vps_instance_id == vps_id
        ).order_by(models.Snapshot.created_at.desc()).all()

    def update(self, snapshot_model: models.Snapshot) -> models.Snapshot:
        return save(self.db, snapshot_model)

    def delete(self, snapshot: models.Snapshot) -> bool:
        if snapshot:
            self.db.delete(snapshot)
            self.db.commit()
            return True
        return False
