"""Consultation repository - 상담 관련 DB 조회/갱신"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload, selectinload

from database import utc_now
from models.consultation import Consultation, ConsultationStatus
from models.lawyer import Lawyer


class ConsultationRepository:
    """상담 DB 작업 모음"""

    @staticmethod
    def get_lawyer(db: Session, lawyer_id: int) -> Optional[Lawyer]:
        return (
            db.query(Lawyer)
            .options(joinedload(Lawyer.user))
            .filter(Lawyer.id == lawyer_id)
            .first()
        )

    @staticmethod
    def get_consultation(db: Session, consultation_id: int, *, for_update: bool = False) -> Optional[Consultation]:
        """상담 단건 조회. for_update=True 면 행 잠금 (지원하는 DB 에서만)"""
        query = (
            db.query(Consultation)
            .options(joinedload(Consultation.lawyer), selectinload(Consultation.reschedule_requests))
            .filter(Consultation.id == consultation_id)
        )
        if for_update:
            query = query.with_for_update(of=Consultation)
        return query.first()

    @staticmethod
    def list_for_lawyer(db: Session, lawyer_id: int) -> list[Consultation]:
        return (
            db.query(Consultation)
            .options(joinedload(Consultation.client), selectinload(Consultation.reschedule_requests))
            .filter(Consultation.lawyer_id == lawyer_id)
            .order_by(Consultation.created_at.desc(), Consultation.id.desc())
            .all()
        )

    @staticmethod
    def list_for_client(db: Session, client_id: int) -> list[Consultation]:
        return (
            db.query(Consultation)
            .options(
                joinedload(Consultation.lawyer).joinedload(Lawyer.user),
                selectinload(Consultation.reschedule_requests),
            )
            .filter(Consultation.client_id == client_id)
            .order_by(Consultation.created_at.desc(), Consultation.id.desc())
            .all()
        )

    @staticmethod
    def count_unread_for_client(db: Session, client_id: int) -> int:
        return (
            db.query(func.count(Consultation.id))
            .filter(Consultation.client_id == client_id, Consultation.unread_by_client.is_(True))
            .scalar()
        )

    @staticmethod
    def mark_read_for_client(db: Session, client_id: int) -> int:
        result = db.execute(
            update(Consultation)
            .where(Consultation.client_id == client_id, Consultation.unread_by_client.is_(True))
            .values(unread_by_client=False)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount

    @staticmethod
    def complete_due(db: Session, now: Optional[datetime] = None) -> int:
        """accepted 이고 예정 시각이 지난 상담을 completed 로 일괄 전환 (조건부 UPDATE 한 번)"""
        now = now or utc_now()
        result = db.execute(
            update(Consultation)
            .where(
                Consultation.status == ConsultationStatus.ACCEPTED.value,
                Consultation.scheduled_date_time <= now,
            )
            .values(
                status=ConsultationStatus.COMPLETED.value,
                updated_at=now,
                version=Consultation.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount
