from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, DateTime, Enum, ForeignKey, func
)
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import VpsStatus, SuspensionReason

class VpsInstance(Base):
    """
    프로바이더에 실제로 존재하는 가상 서버를 로컬에 바인딩한 레코드입니다.
    provider_instance_id는 전체 인스턴스에서 유일하며, 이 유니크 제약이
    중복 프로비저닝을 막는 실제 동시성 제어 수단입니다.
    종료(TERMINATED)는 상태일 뿐이며 행을 삭제하지 않습니다. (액션 이력 보존)
    """
    __tablename__ = "vps_instances"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True, unique=True)
    provider_instance_id = Column(BigInteger, nullable=True, unique=True, index=True)
    status = Column(Enum(VpsStatus, native_enum=False), nullable=False, default=VpsStatus.PROVISIONING)
    ip_address = Column(String, nullable=True)
    root_password_encrypted = Column(Text, nullable=True)
    name = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    region = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    suspended_at = Column(DateTime, nullable=True)
    suspension_reason = Column(Enum(SuspensionReason, native_enum=False), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="vps_instances")
    order = relationship("Order", back_populates="vps_instance")
    actions = relationship("VpsAction", back_populates="vps_instance", order_by="VpsAction.requested_at")
    snapshots = relationship("Snapshot", back_populates="vps_instance")
