# tests/test_concurrency.py
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, func
from sqlalchemy.orm import sessionmaker

from config.exception import AppException
from consultation.service import ConsultationService, commit_or_conflict
from database import Base
from models.consultation import Consultation, RescheduleRequest
from models.lawyer import Lawyer
from models.user import User

from conftest import NOW, raises_code


@pytest.fixture
def two_sessions(tmp_path):
    """같은 파일 DB 에 각자 커넥션을 가진 세션 두 개"""
    engine = create_engine(f"sqlite:///{tmp_path / 'consultations.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    first, second = factory(), factory()
    try:
        yield factory, first, second
    finally:
        first.close()
        second.close()
        engine.dispose()


def _seed(factory, *, scheduled_at):
    """(consultation_id, client_id, lawyer_user_id)"""
    with factory() as session:
        client = User(name="Aryan Client", email="client@example.com")
        lawyer_user = User(name="Lovely Lawyer", email="lawyer@example.com")
        session.add_all([client, lawyer_user])
        session.flush()
        lawyer = Lawyer(user_id=lawyer_user.id, consultation_fee=Decimal("1500.00"))
        session.add(lawyer)
        session.flush()
        consultation = Consultation(
            lawyer_id=lawyer.id,
            client_id=client.id,
            scheduled_date_time=scheduled_at,
            date=scheduled_at.date(),
            time=scheduled_at.strftime("%H:%M"),
            type="video",
            status="accepted",
            paid=True,
        )
        session.add(consultation)
        session.commit()
        return consultation.id, client.id, lawyer_user.id


def test_simultaneous_reschedules_leave_one_request(two_sessions):
    factory, first, second = two_sessions
    consultation_id, client_id, lawyer_user_id = _seed(factory, scheduled_at=NOW + timedelta(days=1))
    client_service = ConsultationService(first, clock=lambda: NOW)
    lawyer_service = ConsultationService(second, clock=lambda: NOW)

    # both sides have read the row and seen no reschedule yet
    assert client_service.get_consultation(consultation_id, first.get(User, client_id)).reschedule_requests == []
    assert lawyer_service.get_consultation(consultation_id, second.get(User, lawyer_user_id)).reschedule_requests == []

    client_service.reschedule(
        consultation_id, first.get(User, client_id), date="2025-01-20", time="15:00", message="Running late"
    )
    with raises_code("CONFLICT"):
        lawyer_service.reschedule(consultation_id, second.get(User, lawyer_user_id), date="2025-01-21", time="09:00")

    with factory() as check:
        assert check.query(func.count(RescheduleRequest.id)).scalar() == 1
        stored = check.get(Consultation, consultation_id)
        assert stored.status == "pending"
        assert stored.message == "Running late"


def test_sweep_wins_over_stale_cancel(two_sessions):
    factory, first, second = two_sessions
    consultation_id, client_id, _ = _seed(factory, scheduled_at=NOW - timedelta(hours=1))
    client = first.get(User, client_id)
    client_service = ConsultationService(first, clock=lambda: NOW)

    assert client_service.get_consultation(consultation_id, client).status == "accepted"
    assert ConsultationService(second, clock=lambda: NOW).complete_due_consultations() == 1

    with raises_code("CONFLICT"):
        client_service.cancel(consultation_id, client)

    with factory() as check:
        assert check.get(Consultation, consultation_id).status == "completed"


def test_duplicate_reschedule_row_is_a_conflict(db, make_consultation, client_user):
    consultation = make_consultation(status="accepted", paid=True)
    db.add(RescheduleRequest(consultation_id=consultation.id, date=NOW.date(), time="10:00", requested_by=client_user.id))
    commit_or_conflict(db)

    db.add(RescheduleRequest(consultation_id=consultation.id, date=NOW.date(), time="11:00", requested_by=client_user.id))
    with pytest.raises(AppException) as info:
        commit_or_conflict(db)

    assert info.value.code == "CONFLICT"
    assert info.value.status_code == 409
    assert db.query(RescheduleRequest).filter_by(consultation_id=consultation.id).count() == 1
