from sqlalchemy import Boolean, Column, Integer, String, DateTime, func
from ..database import Base

class Image(Base):
    """
    프로바이더에서 제공하는 OS 이미지를 로컬에 등록한 레코드입니다.
    주문 생성 시 사용자가 보낸 이미지 식별자는 내부 id 또는 provider_image_id로 해석됩니다.
    """
    __tablename__ = "images"
    id = Column(Integer, primary_key=True, index=True)
    provider_image_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
