"""
로컬 개발용 시드 데이터

변호사 1명, 의뢰인 1명, 7일 뒤 10:00(UTC) 결제 완료된 accepted 상담 1건을 만들고
두 계정의 Bearer 토큰을 출력한다. 이미 있으면 재사용한다.

사용법 (back/ 에서):
    python -m scripts.seed_demo
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from auth.security import create_access_token
from database import SessionLocal, init_db, utc_now
from logs.logging_util import LoggerSingleton
from models.consultation import Consultation, ConsultationStatus, ConsultationType, PaymentStatus
from models.lawyer import Lawyer
from models.user import User

logger = LoggerSingleton.get_logger(logger_name="seed_demo", level=logging.INFO)

LAWYER_EMAIL = "lawyer.demo@example.com"
CLIENT_EMAIL = "client.demo@example.com"


def _get_or_create_user(db: Session, *, name: str, email: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(name=name, email=email)
        db.add(user)
        db.flush()
    return user


def seed(db: Session) -> tuple[User, Lawyer, Consultation]:
    lawyer_user = _get_or_create_user(db, name="Demo Lawyer", email=LAWYER_EMAIL)
    client = _get_or_create_user(db, name="Demo Client", email=CLIENT_EMAIL)

    lawyer = db.query(Lawyer).filter(Lawyer.user_id == lawyer_user.id).first()
    if lawyer is None:
        lawyer = Lawyer(user_id=lawyer_user.id, consultation_fee=Decimal("1500.00"), currency="INR")
        db.add(lawyer)
        db.flush()

    day = (utc_now() + timedelta(days=7)).date()
    scheduled_at = datetime(day.year, day.month, day.day, 10, 0, tzinfo=timezone.utc)

    consultation = (
        db.query(Consultation)
        .filter(Consultation.lawyer_id == lawyer.id, Consultation.client_id == client.id)
        .first()
    )
    if consultation is None:
        consultation = Consultation(
            lawyer_id=lawyer.id,
            client_id=client.id,
            type=ConsultationType.VIDEO.value,
            notes="Demo consultation",
        )
        db.add(consultation)

    consultation.scheduled_date_time = scheduled_at
    consultation.date = day
    consultation.time = "10:00"
    consultation.status = ConsultationStatus.ACCEPTED.value
    consultation.paid = True
    consultation.payment_amount = lawyer.consultation_fee
    consultation.payment_currency = lawyer.currency
    consultation.payment_status = PaymentStatus.SUCCESS.value
    consultation.paid_at = utc_now()
    db.commit()
    return client, lawyer, consultation


def main() -> int:
    init_db()
    db = SessionLocal()
    try:
        client, lawyer, consultation = seed(db)
        logger.info(
            f"Seeded consultation {consultation.id}: client={client.id} -> lawyer={lawyer.id} "
            f"at {consultation.scheduled_date_time.isoformat()} (accepted, paid)"
        )
        print(f"LAWYER_ID={lawyer.id}")
        print(f"CONSULTATION_ID={consultation.id}")
        print(f"CLIENT_TOKEN={create_access_token({'sub': str(client.id)})}")
        print(f"LAWYER_TOKEN={create_access_token({'sub': str(lawyer.user_id)})}")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
