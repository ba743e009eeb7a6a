"""Consultation service - 상담 라이프사이클 비즈니스 로직

상태 흐름:
    pending -> accepted | rejected
    accepted -> completed (예정 시각 경과 시 sweep) | rejected
    pending/accepted -> cancelled (또는 미결제 의뢰인 취소 시 삭제)
    결제된 상담은 한 번만 일정 변경 가능 (변호사: accepted 유지, 의뢰인: pending 으로 복귀)
"""

import enum
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from config.exception import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from consultation.events import ConsultationEvent, ConsultationEventPublisher
from consultation.repository import ConsultationRepository
from consultation.time_util import parse_date, to_utc_instant
from database import utc_now
from logs.logging_util import LoggerSingleton
from models.consultation import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    Consultation,
    ConsultationStatus,
    ConsultationType,
    RescheduleRequest,
    effective_status,
)
from models.user import User

logger = LoggerSingleton.get_logger(logger_name="consultation", level=logging.INFO)

MAX_RESCHEDULES = 1

# UpdateStatus 로 받을 수 있는 값
UPDATABLE_STATUSES = frozenset(
    {
        ConsultationStatus.PENDING,
        ConsultationStatus.ACCEPTED,
        ConsultationStatus.REJECTED,
        ConsultationStatus.COMPLETED,
    }
)

class Actor(str, enum.Enum):
    LAWYER = "lawyer"
    CLIENT = "client"
    SYSTEM = "system"

# (현재 상태, 목표 상태, 행위자) - 여기에 없는 전이는 거부
# SYSTEM 전이는 repository.complete_due 의 조건부 UPDATE 가 수행한다
ALLOWED_TRANSITIONS = frozenset(
    {
        (ConsultationStatus.PENDING, ConsultationStatus.ACCEPTED, Actor.LAWYER),
        (ConsultationStatus.PENDING, ConsultationStatus.REJECTED, Actor.LAWYER),
        (ConsultationStatus.ACCEPTED, ConsultationStatus.REJECTED, Actor.LAWYER),
        (ConsultationStatus.ACCEPTED, ConsultationStatus.COMPLETED, Actor.LAWYER),
        (ConsultationStatus.ACCEPTED, ConsultationStatus.COMPLETED, Actor.SYSTEM),
    }
)

def can_transition(current: ConsultationStatus, target: ConsultationStatus, actor: Actor) -> bool:
    return (effective_status(current), target, actor) in ALLOWED_TRANSITIONS


def get_consultation_or_404(db: Session, consultation_id: int, *, for_update: bool = False) -> Consultation:
    consultation = ConsultationRepository.get_consultation(db, consultation_id, for_update=for_update)
    if not consultation:
        logger.info(f"Consultation not found: id={consultation_id}")
        raise NotFound("Consultation not found")
    return consultation


def resolve_actor(consultation: Consultation, user: User, *, action: str) -> Actor:
    """요청자가 상담의 의뢰인인지 변호사인지 판정. 둘 다 아니면 Forbidden"""
    # 미결제 취소 분기는 의뢰인 여부를 먼저 보므로 CLIENT 를 우선 판정
    if consultation.client_id == user.id:
        return Actor.CLIENT
    if consultation.lawyer.user_id == user.id:
        return Actor.LAWYER
    logger.warning(f"Forbidden consultation access: id={consultation.id}, user_id={user.id}, action={action}")
    raise Forbidden(f"Not authorized to {action} this consultation")


def commit_or_conflict(db: Session) -> None:
    """버전 불일치(다른 요청이 먼저 변경)면 롤백 후 Conflict"""
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as e:
        db.rollback()
        logger.warning(f"Concurrent consultation update rejected: {e}")
        raise Conflict()

class ConsultationService:
    """상담 라이프사이클 서비스"""

    def __init__(
        self,
        db: Session,
        publisher: Optional[ConsultationEventPublisher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.repo = ConsultationRepository()
        self.publisher = publisher or ConsultationEventPublisher()
        self.clock = clock

    # ------------------------------------------------------------------ 조회

    def get_consultation(self, consultation_id: int, user: User) -> Consultation:
        """당사자(변호사 또는 의뢰인)만 조회 가능"""
        consultation = get_consultation_or_404(self.db, consultation_id)
        resolve_actor(consultation, user, action="view")
        return consultation

    def list_lawyer_consultations(self, lawyer_id: int, user: User) -> list[Consultation]:
        lawyer = self.repo.get_lawyer(self.db, lawyer_id)
        if not lawyer:
            raise NotFound("Lawyer profile not found")
        if lawyer.user_id != user.id:
            logger.warning(f"Lawyer list forbidden: lawyer_id={lawyer_id}, user_id={user.id}")
            raise Forbidden("Not authorized to view these consultations")

        self.complete_due_consultations()
        return self.repo.list_for_lawyer(self.db, lawyer_id)

    def list_client_consultations(self, user: User) -> list[Consultation]:
        self.complete_due_consultations()
        return self.repo.list_for_client(self.db, user.id)

    def get_unread_count(self, user: User) -> int:
        return self.repo.count_unread_for_client(self.db, user.id)

    def mark_client_consultations_read(self, user: User) -> int:
        updated = self.repo.mark_read_for_client(self.db, user.id)
        logger.info(f"Marked consultations read: client_id={user.id}, updated={updated}")
        return updated

    # ------------------------------------------------------------------ 생성

    def schedule(
        self,
        client: User,
        lawyer_id: int,
        *,
        date: Optional[str],
        time: Optional[str],
        type: Optional[str],
        notes: Optional[str] = None,
        timezone_offset: Optional[int] = 0,
    ) -> Consultation:
        """의뢰인이 변호사에게 상담 요청 (pending 으로 생성)"""
        logger.info(f"Scheduling consultation: lawyer_id={lawyer_id}, client_id={client.id}, date={date}, time={time}")

        if not date or not time or not type:
            raise ValidationFailed("Date, time, and consultation type are required")
        try:
            consultation_type = ConsultationType(type)
        except ValueError:
            raise ValidationFailed(f"Invalid consultation type '{type}'")

        lawyer = self.repo.get_lawyer(self.db, lawyer_id)
        if not lawyer:
            raise NotFound("Lawyer not found")

        scheduled_at = self._future_instant(
            date, time, timezone_offset,
            past_message="Consultation must be scheduled for a future date and time",
        )

        consultation = Consultation(
            lawyer_id=lawyer.id,
            client_id=client.id,
            scheduled_date_time=scheduled_at,
            date=parse_date(date),
            time=time,
            type=consultation_type.value,
            notes=notes,
            status=ConsultationStatus.PENDING.value,
            paid=False,
            unread_by_client=False,
        )
        self.db.add(consultation)
        commit_or_conflict(self.db)
        self.db.refresh(consultation)

        logger.info(f"Consultation created: id={consultation.id}, scheduled_date_time={scheduled_at.isoformat()}")
        self._publish("scheduled", consultation, previous_status=None, actor_id=client.id)
        return consultation

    # ------------------------------------------------------------------ 상태 변경

    def update_status(self, consultation_id: int, status: str, user: User) -> Consultation:
        """변호사의 수락/거절 (명시적 전이 표로 검사)"""
        try:
            target = ConsultationStatus(status)
        except ValueError:
            target = None
        if target not in UPDATABLE_STATUSES:
            raise ValidationFailed("Invalid status")

        consultation = get_consultation_or_404(self.db, consultation_id, for_update=True)
        if resolve_actor(consultation, user, action="update") is not Actor.LAWYER:
            raise Forbidden("Not authorized to update this consultation")

        current = effective_status(consultation.status)
        self._ensure_not_terminal(current)
        if not can_transition(current, target, Actor.LAWYER):
            raise InvalidState(
                f"Cannot change consultation status from {current.value} to {target.value}",
                details={"from": current.value, "to": target.value},
            )

        consultation.status = target.value
        if target is ConsultationStatus.ACCEPTED:
            consultation.unread_by_client = True
        commit_or_conflict(self.db)

        logger.info(f"Consultation status updated: id={consultation_id}, {current.value} -> {target.value}")
        self._publish("status_changed", consultation, previous_status=current.value, actor_id=user.id)
        return consultation

    def cancel(self, consultation_id: int, user: User) -> Optional[Consultation]:
        """취소. 미결제 상담을 의뢰인이 취소하면 레코드를 삭제하고 None 을 반환"""
        consultation = get_consultation_or_404(self.db, consultation_id, for_update=True)
        actor = resolve_actor(consultation, user, action="cancel")

        current = effective_status(consultation.status)
        if current not in OPEN_STATUSES:
            raise InvalidState("Consultation cannot be cancelled in its current status")

        if actor is Actor.CLIENT and not consultation.paid:
            event = self._event("removed", consultation, status=None, previous_status=current.value, actor_id=user.id)
            self.db.delete(consultation)
            commit_or_conflict(self.db)
            logger.info(f"Unpaid consultation removed by client: id={consultation_id}")
            self.publisher.publish(event)
            return None

        consultation.status = ConsultationStatus.CANCELLED.value
        if actor is Actor.LAWYER:
            consultation.unread_by_client = True
        commit_or_conflict(self.db)

        logger.info(f"Consultation cancelled: id={consultation_id}, by={actor.value}, paid={consultation.paid}")
        self._publish("cancelled", consultation, previous_status=current.value, actor_id=user.id)
        return consultation

    def reschedule(
        self,
        consultation_id: int,
        user: User,
        *,
        date: Optional[str],
        time: Optional[str],
        message: Optional[str] = None,
        timezone_offset: Optional[int] = 0,
    ) -> Consultation:
        """결제된 상담의 일정 변경 (상담당 1회)"""
        if not date or not time:
            raise ValidationFailed("Date and time are required for rescheduling")

        consultation = get_consultation_or_404(self.db, consultation_id, for_update=True)
        actor = resolve_actor(consultation, user, action="reschedule")

        if not consultation.paid:
            raise InvalidState("Only paid consultations can be rescheduled")
        current = effective_status(consultation.status)
        if current not in OPEN_STATUSES:
            raise InvalidState("Consultation cannot be rescheduled in its current status")
        if len(consultation.reschedule_requests) >= MAX_RESCHEDULES:
            raise InvalidState("Only one reschedule is allowed per consultation")

        scheduled_at = self._future_instant(
            date, time, timezone_offset,
            past_message="Consultation must be rescheduled for a future date and time",
        )
        new_date = parse_date(date)

        consultation.reschedule_requests.append(
            RescheduleRequest(
                date=new_date,
                time=time,
                message=message or "",
                requested_by=user.id,
                created_at=self.clock(),
            )
        )
        consultation.scheduled_date_time = scheduled_at
        consultation.date = new_date
        consultation.time = time
        consultation.message = message or f"Reschedule requested by {actor.value}."

        if actor is Actor.LAWYER:
            consultation.status = ConsultationStatus.ACCEPTED.value
            consultation.unread_by_client = True
        else:
            consultation.status = ConsultationStatus.PENDING.value
        commit_or_conflict(self.db)

        logger.info(
            f"Consultation rescheduled: id={consultation_id}, by={actor.value}, "
            f"scheduled_date_time={scheduled_at.isoformat()}, status={consultation.status}"
        )
        self._publish("rescheduled", consultation, previous_status=current.value, actor_id=user.id)
        return consultation

    def complete_due_consultations(self) -> int:
        """예정 시각이 지난 accepted 상담을 completed 로 전환"""
        completed = self.repo.complete_due(self.db, self.clock())
        if completed:
            logger.info(f"Completed {completed} past consultations")
        return completed

    # ------------------------------------------------------------------ 내부 헬퍼

    @staticmethod
    def _ensure_not_terminal(current: ConsultationStatus) -> None:
        if current in TERMINAL_STATUSES:
            raise InvalidState(f"Consultation is already {current.value}")

    def _future_instant(self, date: str, time: str, timezone_offset: Optional[int], *, past_message: str) -> datetime:
        try:
            instant = to_utc_instant(date, time, timezone_offset)
        except ValueError as e:
            raise ValidationFailed(str(e))
        if instant <= self.clock():
            raise ValidationFailed(past_message)
        return instant

    @staticmethod
    def _event(kind: str, consultation: Consultation, *, status: Optional[str], previous_status: Optional[str], actor_id: int) -> ConsultationEvent:
        return ConsultationEvent(
            kind=kind,
            consultation_id=consultation.id,
            lawyer_id=consultation.lawyer_id,
            client_id=consultation.client_id,
            status=status,
            previous_status=previous_status,
            actor_id=actor_id,
        )

    def _publish(self, kind: str, consultation: Consultation, *, previous_status: Optional[str], actor_id: int) -> None:
        self.publisher.publish(
            self._event(
                kind,
                consultation,
                status=consultation.status,
                previous_status=previous_status,
                actor_id=actor_id,
            )
        )
