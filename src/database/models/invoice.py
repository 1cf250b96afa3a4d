from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Enum, ForeignKey, Index, func, text
)
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import InvoiceStatus

class Invoice(Base):
    """
    주문과 1:1로 묶이는 청구서입니다.
    total = amount + tax_amount 이며, 삭제되지 않은 청구서는 주문당 하나만 존재할 수 있습니다.
    (부분 유니크 인덱스 uq_invoices_active_order)
    """
    __tablename__ = "invoices"
    __table_args__ = (
        Index(
            "uq_invoices_active_order",
            "order_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    invoice_number = Column(String, unique=True, nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(InvoiceStatus, native_enum=False), nullable=False, default=InvoiceStatus.PENDING)
    due_date = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    order = relationship("Order", back_populates="invoices")
