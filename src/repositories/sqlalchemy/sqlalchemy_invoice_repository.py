from typing import Optional
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IInvoiceRepository
from ._commit import save

class SqlalchemyInvoiceRepository(IInvoiceRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, invoice_model: models.Invoice) -> models.Invoice:
        return save(self.db, invoice_model, add=True)

    def find_active_by_order_id(self, order_id: int) -> Optional[models.Invoice]:
        return self.db.query(models.Invoice).filter(
            models.Invoice.order_id == order_id,
            models.Invoice.deleted_at.is_(None)
        ).first()

    def count_by_number_prefix(self, prefix: str) -> int:
        return self.db.query(models.Invoice).filter(models.Invoice.invoice_number.like(f"{prefix}%")).count()

    def count_active_by_order_id(self, order_id: int) -> int:
        return self.db.query(models.Invoice).filter(
            models.Invoice.order_id == order_id,
            models.Invoice.deleted_at.is_(None)
        ).count()
