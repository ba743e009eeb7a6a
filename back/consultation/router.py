"""
상담 예약/상태 관리 API 라우터
"""

from fastapi import APIRouter, Depends, status
from auth.dependencies import get_current_active_user
from config.dependencies import get_consultation_service
from consultation.service import ConsultationService
from models.consultation import Consultation
from models.user import User
from schemas.consultation import (
    CancelResponse,
    ClientConsultationItem,
    ClientConsultationListResponse,
    ClientSummary,
    ConsultationCreate,
    ConsultationResponse,
    LawyerConsultationItem,
    LawyerConsultationListResponse,
    LawyerSummary,
    MarkReadResponse,
    RescheduleCreate,
    RescheduleRequestResponse,
    RescheduleResponse,
    StatusResponse,
    StatusUpdate,
    UnreadCountResponse,
)
from logs.logging_util import LoggerSingleton
import logging

logger = LoggerSingleton.get_logger(logger_name="consultation.router", level=logging.INFO)

router = APIRouter(prefix="/consultations", tags=["Consultations"])
lawyer_router = APIRouter(prefix="/lawyers", tags=["Consultations"])
user_router = APIRouter(prefix="/users", tags=["Consultations"])


def _base_fields(c: Consultation) -> dict:
    return dict(
        id=c.id,
        lawyer_id=c.lawyer_id,
        client_id=c.client_id,
        scheduled_date_time=c.scheduled_date_time,
        date=c.date,
        time=c.time,
        type=c.type,
        notes=c.notes,
        status=c.display_status,
        paid=bool(c.paid),
        message=c.message,
        unread_by_client=bool(c.unread_by_client),
        reschedule_requests=[RescheduleRequestResponse.model_validate(r) for r in c.reschedule_requests],
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _to_response(c: Consultation) -> ConsultationResponse:
    return ConsultationResponse(**_base_fields(c))


def _to_lawyer_item(c: Consultation) -> LawyerConsultationItem:
    client = c.client
    summary = (
        ClientSummary(id=client.id, name=client.name, email=client.email, profile_image=client.profile_image)
        if client
        else ClientSummary()
    )
    return LawyerConsultationItem(**_base_fields(c), client=summary)


def _to_client_item(c: Consultation) -> ClientConsultationItem:
    lawyer = c.lawyer
    return ClientConsultationItem(
        **_base_fields(c),
        lawyer=LawyerSummary(
            id=lawyer.id,
            name=lawyer.user.name,
            profile_image=lawyer.user.profile_image,
            consultation_fee=lawyer.consultation_fee or 0,
        ),
    )


@lawyer_router.post("/{lawyer_id}/consultations", response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
def schedule_consultation(
    lawyer_id: int,
    data: ConsultationCreate,
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """상담 요청 (의뢰인)"""
    consultation = service.schedule(
        current_user,
        lawyer_id,
        date=data.date,
        time=data.time,
        type=data.type,
        notes=data.notes,
        timezone_offset=data.timezone_offset,
    )
    return _to_response(consultation)


@lawyer_router.get("/{lawyer_id}/consultations", response_model=LawyerConsultationListResponse)
def get_lawyer_consultations(
    lawyer_id: int,
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """변호사 본인의 상담 목록"""
    logger.info(f"Fetching lawyer consultations: lawyer_id={lawyer_id}, user_id={current_user.id}")
    consultations = service.list_lawyer_consultations(lawyer_id, current_user)
    return LawyerConsultationListResponse(
        total=len(consultations),
        consultations=[_to_lawyer_item(c) for c in consultations],
    )


@user_router.get("/consultations", response_model=ClientConsultationListResponse)
def get_client_consultations(
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """의뢰인 본인의 상담 목록"""
    logger.info(f"Fetching client consultations: client_id={current_user.id}")
    consultations = service.list_client_consultations(current_user)
    return ClientConsultationListResponse(
        total=len(consultations),
        consultations=[_to_client_item(c) for c in consultations],
    )


@user_router.get("/consultations/unread-count", response_model=UnreadCountResponse)
def get_client_unread_count(
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    return UnreadCountResponse(count=service.get_unread_count(current_user))


@user_router.post("/consultations/mark-read", response_model=MarkReadResponse)
def mark_client_consultations_read(
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    return MarkReadResponse(updated=service.mark_client_consultations_read(current_user))


@router.get("/{consultation_id}", response_model=ConsultationResponse)
def get_consultation(
    consultation_id: int,
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """상담 상세 조회 (당사자만)"""
    return _to_response(service.get_consultation(consultation_id, current_user))


@router.put("/{consultation_id}", response_model=StatusResponse)
def update_consultation_status(
    consultation_id: int,
    data: StatusUpdate,
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """상담 수락/거절 (변호사)"""
    logger.info(f"Updating consultation status: id={consultation_id}, status={data.status}, user_id={current_user.id}")
    consultation = service.update_status(consultation_id, data.status, current_user)
    return StatusResponse(status=consultation.display_status, message="Consultation status updated successfully")


@router.put("/{consultation_id}/cancel", response_model=CancelResponse)
def cancel_consultation(
    consultation_id: int,
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """상담 취소 (변호사 또는 의뢰인)"""
    logger.info(f"Cancelling consultation: id={consultation_id}, user_id={current_user.id}")
    consultation = service.cancel(consultation_id, current_user)
    if consultation is None:
        return CancelResponse(removed=True, message="Consultation cancelled and removed.")
    return CancelResponse(status=consultation.display_status, message="Consultation cancelled successfully")


@router.put("/{consultation_id}/reschedule", response_model=RescheduleResponse)
def reschedule_consultation(
    consultation_id: int,
    data: RescheduleCreate,
    current_user: User = Depends(get_current_active_user),
    service: ConsultationService = Depends(get_consultation_service),
):
    """일정 변경 (결제된 상담, 1회)"""
    logger.info(f"Rescheduling consultation: id={consultation_id}, date={data.date}, time={data.time}, user_id={current_user.id}")
    consultation = service.reschedule(
        consultation_id,
        current_user,
        date=data.date,
        time=data.time,
        message=data.message,
        timezone_offset=data.timezone_offset,
    )
    by_lawyer = consultation.display_status == "accepted"
    return RescheduleResponse(
        status=consultation.display_status,
        date=consultation.date,
        time=consultation.time,
        scheduled_date_time=consultation.scheduled_date_time,
        message=(
            "Reschedule sent. Client will see the new date/time."
            if by_lawyer
            else "Reschedule requested. Lawyer will need to accept the new time."
        ),
    )
