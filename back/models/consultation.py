"""
상담(Consultation) 모델
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    Text,
    Boolean,
    Numeric,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from database import Base, UTCDateTime, utc_now


class ConsultationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    # 예전 데이터에만 존재. 읽을 때 accepted 로 보여주고 새로 쓰지 않는다.
    RESCHEDULED = "rescheduled"


TERMINAL_STATUSES = frozenset(
    {ConsultationStatus.COMPLETED, ConsultationStatus.REJECTED, ConsultationStatus.CANCELLED}
)
OPEN_STATUSES = frozenset({ConsultationStatus.PENDING, ConsultationStatus.ACCEPTED})


class ConsultationType(str, enum.Enum):
    VIDEO = "video"
    PHONE = "phone"
    IN_PERSON = "in-person"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


def effective_status(value: str) -> ConsultationStatus:
    """저장된 상태 문자열을 현재 상태 enum 으로 변환 (rescheduled -> accepted)"""
    status = ConsultationStatus(value)
    if status is ConsultationStatus.RESCHEDULED:
        return ConsultationStatus.ACCEPTED
    return status


class Consultation(Base):
    """의뢰인-변호사 상담 예약"""
    __tablename__ = "consultations"

    id = Column(Integer, primary_key=True, index=True)
    lawyer_id = Column(Integer, ForeignKey("lawyers.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # 일정: scheduled_date_time 이 기준값, date/time 은 표시용 사본
    scheduled_date_time = Column(UTCDateTime, nullable=False, index=True)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)  # HH:MM

    type = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ConsultationStatus.PENDING.value, index=True)
    message = Column(Text, nullable=True)
    unread_by_client = Column(Boolean, nullable=False, default=False)

    # 결제
    paid = Column(Boolean, nullable=False, default=False)
    payment_order_id = Column(String(100), nullable=True)
    payment_id = Column(String(100), nullable=True)
    payment_signature = Column(String(256), nullable=True)
    payment_amount = Column(Numeric(10, 2), nullable=True)
    payment_currency = Column(String(3), nullable=True, default="INR")
    payment_status = Column(String(20), nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, default=utc_now, nullable=False)
    updated_at = Column(UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False)

    # 낙관적 잠금: UPDATE/DELETE 는 WHERE version = ? 로 실행된다
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # 관계
    lawyer = relationship("Lawyer", back_populates="consultations")
    client = relationship("User", back_populates="consultations")
    reschedule_requests = relationship(
        "RescheduleRequest",
        back_populates="consultation",
        cascade="all, delete-orphan",
        order_by="RescheduleRequest.created_at",
    )

    @property
    def display_status(self) -> str:
        return effective_status(self.status).value

    @property
    def has_payment_details(self) -> bool:
        return self.payment_order_id is not None

    def __repr__(self):
        return f"<Consultation(id={self.id}, lawyer_id={self.lawyer_id}, client_id={self.client_id}, status={self.status})>"


class RescheduleRequest(Base):
    """일정 변경 이력 (상담당 최대 1건)"""
    __tablename__ = "consultation_reschedule_requests"
    __table_args__ = (
        UniqueConstraint("consultation_id", name="uq_reschedule_once_per_consultation"),
    )

    id = Column(Integer, primary_key=True, index=True)
    consultation_id = Column(Integer, ForeignKey("consultations.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(5), nullable=False)
    message = Column(Text, nullable=False, default="")
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime, default=utc_now, nullable=False)

    consultation = relationship("Consultation", back_populates="reschedule_requests")

    def __repr__(self):
        return f"<RescheduleRequest(consultation_id={self.consultation_id}, date={self.date}, time={self.time})>"
