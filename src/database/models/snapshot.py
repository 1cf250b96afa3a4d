from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from ..database import Base

class Snapshot(Base):
    """
    VPS 인스턴스의 특정 시점 백업을 가리키는 레코드입니다.
    프로바이더가 더 이상 보고하지 않는 스냅샷은 동기화 시 삭제됩니다.
    """
    __tablename__ = "snapshots"
    __table_args__ = (
        UniqueConstraint("vps_instance_id", "provider_snapshot_id", name="uq_snapshots_vps_provider"),
    )
    id = Column(Integer, primary_key=True, index=True)
    vps_instance_id = Column(Integer, ForeignKey("vps_instances.id"), nullable=False, index=True)
    provider_snapshot_id = Column(String, nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    size_mb = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    vps_instance = relationship("VpsInstance", back_populates="snapshots")
