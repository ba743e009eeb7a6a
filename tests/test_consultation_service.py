# tests/test_consultation_service.py
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from consultation.service import Actor, ConsultationService, can_transition
from consultation.sweep import run_sweep_once, sweep_forever
from database import utc_now
from models.consultation import Consultation, ConsultationStatus

from conftest import NOW, raises_code


# ---------------------------------------------------------------- schedule

def test_schedule_normalizes_client_wall_clock_to_utc(service, client_user, lawyer, events):
    consultation = service.schedule(
        client_user, lawyer.id, date="2025-06-01", time="10:00", type="video", notes="Property dispute", timezone_offset=330
    )

    assert consultation.scheduled_date_time == datetime(2025, 6, 1, 4, 30, tzinfo=timezone.utc)
    assert consultation.status == "pending"
    assert consultation.paid is False
    assert consultation.reschedule_requests == []
    assert consultation.time == "10:00"
    assert [e.kind for e in events] == ["scheduled"]
    assert events[0].client_id == client_user.id


@pytest.mark.parametrize(
    "kwargs",
    [
        {"date": None, "time": "10:00", "type": "video"},
        {"date": "2025-06-01", "time": "", "type": "video"},
        {"date": "2025-06-01", "time": "10:00", "type": None},
        {"date": "2025-06-01", "time": "10:00", "type": "carrier-pigeon"},
        {"date": "2025-06-01", "time": "25:00", "type": "phone"},
    ],
)
def test_schedule_rejects_invalid_input(service, client_user, lawyer, kwargs):
    with raises_code("VALIDATION_ERROR"):
        service.schedule(client_user, lawyer.id, **kwargs)


def test_schedule_unknown_lawyer(service, client_user):
    with raises_code("NOT_FOUND"):
        service.schedule(client_user, 9999, date="2025-06-01", time="10:00", type="phone")


def test_schedule_in_the_past_or_now_is_rejected(service, client_user, lawyer, db):
    with raises_code("VALIDATION_ERROR"):
        service.schedule(client_user, lawyer.id, date="2025-01-09", time="10:00", type="video")
    with raises_code("VALIDATION_ERROR"):
        service.schedule(client_user, lawyer.id, date="2025-01-10", time="12:00", type="video")
    assert db.query(Consultation).count() == 0


# ---------------------------------------------------------------- status

def test_lawyer_accepts_pending_consultation(service, make_consultation, lawyer_user, events):
    consultation = make_consultation()

    updated = service.update_status(consultation.id, "accepted", lawyer_user)

    assert updated.status == "accepted"
    assert updated.unread_by_client is True
    assert events[-1].kind == "status_changed"
    assert (events[-1].previous_status, events[-1].status) == ("pending", "accepted")


def test_lawyer_rejects_accepted_consultation(service, make_consultation, lawyer_user):
    consultation = make_consultation(status="accepted")

    assert service.update_status(consultation.id, "rejected", lawyer_user).status == "rejected"


def test_client_cannot_update_status(service, make_consultation, client_user):
    consultation = make_consultation()

    with raises_code("FORBIDDEN"):
        service.update_status(consultation.id, "accepted", client_user)


def test_unknown_status_value(service, make_consultation, lawyer_user):
    consultation = make_consultation()

    with raises_code("VALIDATION_ERROR"):
        service.update_status(consultation.id, "archived", lawyer_user)
    with raises_code("VALIDATION_ERROR"):
        service.update_status(consultation.id, "cancelled", lawyer_user)


def test_transition_not_in_table_is_invalid_state(service, make_consultation, lawyer_user):
    consultation = make_consultation()

    with raises_code("INVALID_STATE"):
        service.update_status(consultation.id, "completed", lawyer_user)
    with raises_code("INVALID_STATE"):
        service.update_status(consultation.id, "pending", lawyer_user)


def test_transition_table():
    assert can_transition(ConsultationStatus.PENDING, ConsultationStatus.ACCEPTED, Actor.LAWYER)
    assert can_transition(ConsultationStatus.RESCHEDULED, ConsultationStatus.REJECTED, Actor.LAWYER)
    assert can_transition(ConsultationStatus.ACCEPTED, ConsultationStatus.COMPLETED, Actor.SYSTEM)
    assert not can_transition(ConsultationStatus.PENDING, ConsultationStatus.ACCEPTED, Actor.CLIENT)
    assert not can_transition(ConsultationStatus.COMPLETED, ConsultationStatus.PENDING, Actor.LAWYER)
    assert not can_transition(ConsultationStatus.PENDING, ConsultationStatus.COMPLETED, Actor.SYSTEM)


def test_legacy_rescheduled_status_reads_as_accepted(service, make_consultation, lawyer_user):
    consultation = make_consultation(status="rescheduled")

    assert service.get_consultation(consultation.id, lawyer_user).display_status == "accepted"
    assert service.update_status(consultation.id, "rejected", lawyer_user).status == "rejected"


def test_concurrent_modification_is_a_conflict(db, service, make_consultation, lawyer_user):
    consultation = make_consultation()
    # another writer bumps the version after this session loaded the row
    db.execute(text("UPDATE consultations SET version = version + 1 WHERE id = :id"), {"id": consultation.id})

    with raises_code("CONFLICT"):
        service.update_status(consultation.id, "accepted", lawyer_user)

    assert db.get(Consultation, consultation.id).status == "pending"


# ---------------------------------------------------------------- terminal finality

@pytest.mark.parametrize("terminal", ["completed", "rejected", "cancelled"])
def test_terminal_consultations_cannot_change(service, make_consultation, lawyer_user, client_user, terminal):
    consultation = make_consultation(status=terminal, paid=True)

    with raises_code("INVALID_STATE"):
        service.update_status(consultation.id, "accepted", lawyer_user)
    with raises_code("INVALID_STATE"):
        service.update_status(consultation.id, "rejected", lawyer_user)
    with raises_code("INVALID_STATE"):
        service.cancel(consultation.id, client_user)
    with raises_code("INVALID_STATE"):
        service.reschedule(consultation.id, lawyer_user, date="2025-02-01", time="10:00")


# ---------------------------------------------------------------- cancel

def test_client_cancelling_unpaid_consultation_removes_it(service, make_consultation, client_user, events):
    consultation = make_consultation()
    consultation_id = consultation.id

    assert service.cancel(consultation_id, client_user) is None

    with raises_code("NOT_FOUND"):
        service.get_consultation(consultation_id, client_user)
    assert events[-1].kind == "removed"
    assert events[-1].consultation_id == consultation_id


def test_lawyer_cancelling_unpaid_consultation_keeps_record(service, make_consultation, lawyer_user):
    consultation = make_consultation(status="accepted")

    cancelled = service.cancel(consultation.id, lawyer_user)

    assert cancelled.status == "cancelled"
    assert cancelled.unread_by_client is True


def test_client_cancelling_paid_consultation_keeps_record(service, make_consultation, client_user):
    consultation = make_consultation(status="accepted", paid=True)

    cancelled = service.cancel(consultation.id, client_user)

    assert cancelled.status == "cancelled"
    assert cancelled.unread_by_client is False


def test_outsider_cannot_cancel(service, make_consultation, outsider):
    consultation = make_consultation()

    with raises_code("FORBIDDEN"):
        service.cancel(consultation.id, outsider)


# ---------------------------------------------------------------- reschedule

def test_client_reschedule_returns_consultation_to_pending(service, make_consultation, client_user, events):
    consultation = make_consultation(status="accepted", paid=True)

    updated = service.reschedule(
        consultation.id, client_user, date="2025-01-20", time="15:00", message="Running late", timezone_offset=330
    )

    assert updated.status == "pending"
    assert updated.message == "Running late"
    assert len(updated.reschedule_requests) == 1
    assert updated.reschedule_requests[0].requested_by == client_user.id
    assert updated.scheduled_date_time == datetime(2025, 1, 20, 9, 30, tzinfo=timezone.utc)
    assert (updated.date.isoformat(), updated.time) == ("2025-01-20", "15:00")
    assert events[-1].kind == "rescheduled"


def test_second_reschedule_is_rejected(service, make_consultation, client_user, lawyer_user):
    consultation = make_consultation(status="accepted", paid=True)
    service.reschedule(consultation.id, client_user, date="2025-01-20", time="15:00", message="Running late")

    with raises_code("INVALID_STATE") as info:
        service.reschedule(consultation.id, lawyer_user, date="2025-01-21", time="15:00")
    assert info.value.message == "Only one reschedule is allowed per consultation"

    assert len(service.get_consultation(consultation.id, client_user).reschedule_requests) == 1


def test_lawyer_reschedule_stays_accepted_and_notifies_client(service, make_consultation, lawyer_user):
    consultation = make_consultation(status="accepted", paid=True)

    updated = service.reschedule(consultation.id, lawyer_user, date="2025-01-20", time="09:00")

    assert updated.status == "accepted"
    assert updated.unread_by_client is True
    assert updated.message == "Reschedule requested by lawyer."


def test_unpaid_consultation_cannot_be_rescheduled(service, make_consultation, client_user):
    consultation = make_consultation(status="accepted")

    with raises_code("INVALID_STATE"):
        service.reschedule(consultation.id, client_user, date="2025-01-20", time="09:00")


def test_reschedule_requires_future_date_and_time(service, make_consultation, client_user):
    consultation = make_consultation(status="accepted", paid=True)

    with raises_code("VALIDATION_ERROR"):
        service.reschedule(consultation.id, client_user, date=None, time="09:00")
    with raises_code("VALIDATION_ERROR"):
        service.reschedule(consultation.id, client_user, date="2025-01-01", time="09:00")
    assert service.get_consultation(consultation.id, client_user).reschedule_requests == []


# ---------------------------------------------------------------- sweep & lists

def test_sweep_completes_due_accepted_consultations_once(db, service, make_consultation):
    due = make_consultation(status="accepted", scheduled_at=NOW - timedelta(hours=1))
    pending_past = make_consultation(status="pending", scheduled_at=NOW - timedelta(hours=1))
    upcoming = make_consultation(status="accepted", scheduled_at=NOW + timedelta(hours=1))

    assert service.complete_due_consultations() == 1
    assert service.complete_due_consultations() == 0

    statuses = {c.id: c.status for c in db.query(Consultation).all()}
    assert statuses == {due.id: "completed", pending_past.id: "pending", upcoming.id: "accepted"}


def test_lists_run_sweep_and_order_newest_first(service, make_consultation, client_user, lawyer, lawyer_user):
    older = make_consultation(status="accepted", scheduled_at=NOW - timedelta(days=1))
    newer = make_consultation()

    client_list = service.list_client_consultations(client_user)
    lawyer_list = service.list_lawyer_consultations(lawyer.id, lawyer_user)

    assert [c.id for c in client_list] == [newer.id, older.id]
    assert [c.id for c in lawyer_list] == [newer.id, older.id]
    assert client_list[1].status == "completed"


def test_lawyer_list_is_owner_only(service, lawyer, client_user):
    with raises_code("FORBIDDEN"):
        service.list_lawyer_consultations(lawyer.id, client_user)
    with raises_code("NOT_FOUND"):
        service.list_lawyer_consultations(9999, client_user)


def test_unread_count_and_mark_read(service, make_consultation, client_user, lawyer_user):
    first = make_consultation()
    make_consultation()
    service.update_status(first.id, "accepted", lawyer_user)

    assert service.get_unread_count(client_user) == 1
    assert service.mark_client_consultations_read(client_user) == 1
    assert service.get_unread_count(client_user) == 0


# ---------------------------------------------------------------- events

def test_failing_subscriber_does_not_break_the_operation(db, publisher, client_user, lawyer, events):
    def broken(event):
        raise RuntimeError("socket closed")

    publisher.subscribe(broken)
    service = ConsultationService(db, publisher, clock=lambda: NOW)

    consultation = service.schedule(client_user, lawyer.id, date="2025-02-01", time="10:00", type="phone")

    assert consultation.id is not None
    assert [e.kind for e in events] == ["scheduled"]


def test_run_sweep_once_closes_its_session(db, make_consultation):
    due = make_consultation(status="accepted", scheduled_at=utc_now() - timedelta(minutes=5))

    assert run_sweep_once(lambda: db) == 1
    assert db.get(Consultation, due.id).status == "completed"


@pytest.mark.asyncio
async def test_sweep_forever_runs_until_cancelled(db):
    calls = []

    def session_factory():
        calls.append(1)
        return db

    task = asyncio.create_task(sweep_forever(session_factory, 3600))
    await asyncio.sleep(0.2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert calls == [1]
