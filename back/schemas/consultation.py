"""
상담(Consultation) 스키마
"""

from pydantic import BaseModel, Field
import datetime
from decimal import Decimal
from typing import Optional


class ConsultationCreate(BaseModel):
    """상담 요청 스키마 (필수값 검사는 서비스에서 수행)"""
    date: Optional[str] = Field(None, description="상담 날짜 (YYYY-MM-DD, 의뢰인 현지 기준)")
    time: Optional[str] = Field(None, description="상담 시간 (HH:MM, 24시간제)")
    type: Optional[str] = Field(None, description="video | phone | in-person")
    notes: Optional[str] = Field(None, description="상담 사유")
    timezone_offset: Optional[int] = Field(0, description="UTC 기준 오프셋(분), 예: IST 는 330")


class StatusUpdate(BaseModel):
    """상태 변경 스키마"""
    status: str = Field(..., description="accepted | rejected | pending | completed")


class RescheduleCreate(BaseModel):
    """일정 변경 스키마"""
    date: Optional[str] = Field(None, description="새 날짜 (YYYY-MM-DD)")
    time: Optional[str] = Field(None, description="새 시간 (HH:MM)")
    message: Optional[str] = Field(None, description="변경 사유")
    timezone_offset: Optional[int] = Field(0, description="UTC 기준 오프셋(분)")


class RescheduleRequestResponse(BaseModel):
    date: datetime.date
    time: str
    message: str = ""
    requested_by: int
    created_at: datetime.datetime

    class Config:
        from_attributes = True


class ConsultationResponse(BaseModel):
    """상담 응답 스키마 (status 는 rescheduled -> accepted 로 매핑된 값)"""
    id: int
    lawyer_id: int
    client_id: int
    scheduled_date_time: datetime.datetime
    date: datetime.date
    time: str
    type: str
    notes: Optional[str] = None
    status: str
    paid: bool = False
    message: Optional[str] = None
    unread_by_client: bool = False
    reschedule_requests: list[RescheduleRequestResponse] = []
    created_at: datetime.datetime
    updated_at: Optional[datetime.datetime] = None


class ClientSummary(BaseModel):
    id: Optional[int] = None
    name: str = "Unknown"
    email: str = ""
    profile_image: Optional[str] = None


class LawyerSummary(BaseModel):
    id: int
    name: str
    profile_image: Optional[str] = None
    consultation_fee: Decimal = Decimal("0")


class LawyerConsultationItem(ConsultationResponse):
    """변호사 목록 아이템 (의뢰인 정보 포함)"""
    client: ClientSummary


class ClientConsultationItem(ConsultationResponse):
    """의뢰인 목록 아이템 (변호사 정보, 상담료 포함)"""
    lawyer: LawyerSummary


class LawyerConsultationListResponse(BaseModel):
    total: int
    consultations: list[LawyerConsultationItem]


class ClientConsultationListResponse(BaseModel):
    total: int
    consultations: list[ClientConsultationItem]


class StatusResponse(BaseModel):
    status: str
    message: str


class CancelResponse(BaseModel):
    status: Optional[str] = None
    removed: bool = False
    message: str


class RescheduleResponse(BaseModel):
    status: str
    date: datetime.date
    time: str
    scheduled_date_time: datetime.datetime
    message: str


class UnreadCountResponse(BaseModel):
    count: int


class MarkReadResponse(BaseModel):
    updated: int
    message: str = "Marked as read"
