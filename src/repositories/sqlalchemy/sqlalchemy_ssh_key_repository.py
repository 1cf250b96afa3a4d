from typing import List
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import ISshKeyRepository
from ._commit import save

class SqlalchemySshKeyRepository(ISshKeyRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, ssh_key_model: models.SshKey) -> models.SshKey:
        return save(self.db, ssh_key_model, add=True)

    def list_by_ids(self, key_ids: List[int]) -> List[models.SshKey]:
        if not key_ids:
            return []
        return self.db.query(models.SshKey).filter(models.SshKey.id.in_(key_ids)).all()

    def list_by_user_id(self, user_id: int) -> List[models.SshKey]:
        return self.db.query(models.SshKey).filter(models.SshKey.user_id == user_id).order_by(models.SshKey.created_at.desc()).all()
