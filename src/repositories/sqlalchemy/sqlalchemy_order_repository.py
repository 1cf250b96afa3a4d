from typing import Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IOrderRepository
from ._commit import save

class SqlalchemyOrderRepository(IOrderRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, order_model: models.Order) -> models.Order:
        return save(self.db, order_model, add=True)

    def find_by_id(self, order_id: int) -> Optional[models.Order]:
        # populate_existing: 세션에 캐시된 객체가 있어도 DB 값으로 덮어씁니다.
        return self.db.query(models.Order).populate_existing().filter(models.Order.id == order_id).first()

    def find_by_order_number(self, order_number: str) -> Optional[models.Order]:
        return self.db.query(models.Order).filter(models.Order.order_number == order_number).first()

    def count_by_number_prefix(self, prefix: str) -> int:
        return self.db.query(models.Order).filter(models.Order.order_number.like(f"{prefix}%")).count()

    def update(self, order_model: models.Order) -> models.Order:
        return save(self.db, order_model)
