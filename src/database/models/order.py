from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Numeric, JSON, Enum, ForeignKey, func
)
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import OrderStatus, PaymentStatus

class Order(Base):
    """
    고객의 구매 의도를 나타내는 주문입니다.
    상태(status)는 주문 상태 머신이 정의한 간선을 따라서만 이동하며,
    total_amount는 생성 시점의 세 가지 가격 요소의 합으로 고정되어 이후 변경되지 않습니다.
    """
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    status = Column(Enum(OrderStatus, native_enum=False), nullable=False, default=OrderStatus.PENDING)

    total_amount = Column(Numeric(10, 2), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False)
    region_price_adj = Column(Numeric(10, 2), nullable=False, default=0)
    os_price_adj = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    period_months = Column(Integer, nullable=False)
    region = Column(String, nullable=False)
    image_id = Column(Integer, ForeignKey("images.id"), nullable=True)
    ssh_keys = Column(JSON, nullable=True)
    user_data = Column(Text, nullable=True)

    payment_method = Column(String, nullable=True)
    payment_status = Column(Enum(PaymentStatus, native_enum=False), nullable=False, default=PaymentStatus.PENDING)
    payment_intent_id = Column(String, nullable=True, index=True)
    admin_notes = Column(Text, nullable=True)

    paid_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="orders")
    image = relationship("Image")
    vps_instance = relationship("VpsInstance", back_populates="order", uselist=False)
    invoices = relationship("Invoice", back_populates="order")
