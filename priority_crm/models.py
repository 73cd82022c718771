# priority_crm/models.py
from sqlalchemy import Column, DateTime, LargeBinary, String
from sqlalchemy.sql import func

from .database import Base


class StorageRecord(Base):
    """키 하나에 직렬화된 값 하나를 저장하는 키-값 테이블."""
    __tablename__ = "storage"

    key = Column(String, primary_key=True, index=True)
    value = Column(LargeBinary, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
