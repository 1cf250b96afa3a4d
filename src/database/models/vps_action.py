from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import relationship
from ..database import Base
from .enums import VpsActionType, ActionStatus

class VpsAction(Base):
    """
    VPS에 대해 실행된 모든 라이프사이클 명령의 감사(audit) 기록입니다.
    추가만 가능하며, 완료 정보(completed_at)는 한 번 기록된 뒤 변경되지 않습니다.
    """
    __tablename__ = "vps_actions"
    id = Column(Integer, primary_key=True, index=True)
    vps_instance_id = Column(Integer, ForeignKey("vps_instances.id"), nullable=False, index=True)
    action_type = Column(Enum(VpsActionType, native_enum=False), nullable=False)
    status = Column(Enum(ActionStatus, native_enum=False), nullable=False, default=ActionStatus.PENDING)
    provider_request_id = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    requested_at = Column(DateTime, server_default=func.now())
    completed_at = Column(DateTime, nullable=True)

    vps_instance = relationship("VpsInstance", back_populates="actions")
