"""
사용자(User) 모델 - 의뢰인/변호사 계정 (신원 정보는 읽기 전용으로만 사용)
"""

from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from database import Base, UTCDateTime, utc_now


class User(Base):
    """사용자 계정"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    profile_image = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(UTCDateTime, default=utc_now, nullable=False)

    # 관계
    lawyer_profile = relationship("Lawyer", back_populates="user", uselist=False)
    consultations = relationship("Consultation", back_populates="client")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
