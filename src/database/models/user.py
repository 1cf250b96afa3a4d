from sqlalchemy import Column, Integer, String, DateTime, Enum, func
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import UserRole

class User(Base):
    """
    서버를 구매하고 VPS 인스턴스를 소유하는 고객 또는 관리자를 나타냅니다.
    role이 ADMIN인 사용자는 다른 사용자의 주문과 인스턴스도 관리할 수 있습니다.
    """
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    first_name = Column(String)
    role = Column(Enum(UserRole, native_enum=False), nullable=False, default=UserRole.USER)
    created_at = Column(DateTime, server_default=func.now())

    orders = relationship("Order", back_populates="user")
    vps_instances = relationship("VpsInstance", back_populates="user")
    ssh_keys = relationship("SshKey", back_populates="user", cascade="all, delete-orphan")
