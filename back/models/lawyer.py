"""
변호사(Lawyer) 디렉터리 모델
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from database import Base, UTCDateTime, utc_now


class Lawyer(Base):
    """변호사 프로필 (상담료, 통화)"""
    __tablename__ = "lawyers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    consultation_fee = Column(Numeric(10, 2), nullable=False, default=0)  # 주 통화 단위 (예: 루피)
    currency = Column(String(3), nullable=False, default="INR")

    created_at = Column(UTCDateTime, default=utc_now, nullable=False)

    # 관계
    user = relationship("User", back_populates="lawyer_profile")
    consultations = relationship("Consultation", back_populates="lawyer")

    def __repr__(self):
        return f"<Lawyer(id={self.id}, user_id={self.user_id}, fee={self.consultation_fee})>"
