# tests/test_scripts.py
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import MetaData, create_engine, insert, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from database import Base
from models.consultation import Consultation
from scripts.migrate_consultations import backfill_scheduled_date_time, legacy_instant, migrate
from scripts.seed_demo import seed


def test_legacy_instant_treats_wall_clock_as_utc():
    assert legacy_instant(date(2024, 3, 5), "14:45") == datetime(2024, 3, 5, 14, 45, tzinfo=timezone.utc)
    assert legacy_instant(date(2024, 3, 5), None) == datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc)
    assert legacy_instant(date(2024, 3, 5), "bad") == datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc)


def test_migration_rewrites_legacy_rescheduled_status(db, make_consultation):
    legacy = make_consultation(status="rescheduled", paid=True)
    current = make_consultation(status="pending")

    assert migrate(db, dry_run=True)["rewritten"] == 1
    assert db.get(Consultation, legacy.id).status == "rescheduled"

    summary = migrate(db)

    assert summary == {"backfilled": 0, "errors": 0, "rewritten": 1}
    assert db.get(Consultation, legacy.id).status == "accepted"
    assert db.get(Consultation, current.id).status == "pending"


def test_seed_is_repeatable(db):
    client, lawyer, consultation = seed(db)
    again = seed(db)

    assert again[2].id == consultation.id
    assert db.query(Consultation).count() == 1
    assert consultation.status == "accepted"
    assert consultation.paid is True
    assert consultation.time == "10:00"


@pytest.fixture
def legacy_db():
    """scheduled_date_time / version 이 nullable 이던 시절의 스키마"""
    metadata = MetaData()
    for table in Base.metadata.sorted_tables:
        table.to_metadata(metadata)
    consultations = metadata.tables["consultations"]
    consultations.c.scheduled_date_time.nullable = True
    consultations.c.version.nullable = True

    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    metadata.create_all(engine)
    session = Session(bind=engine)
    try:
        yield session, consultations
    finally:
        session.close()
        engine.dispose()


def _insert_legacy(session, table, **values):
    row = dict(
        lawyer_id=1,
        client_id=2,
        scheduled_date_time=None,
        date=date(2024, 3, 5),
        time="14:45",
        type="video",
        status="accepted",
        paid=False,
        unread_by_client=False,
        version=None,
    )
    row.update(values)
    return session.execute(insert(table).values(**row)).inserted_primary_key[0]


def test_backfill_fills_missing_scheduled_date_time_on_legacy_table(legacy_db):
    session, table = legacy_db
    missing = _insert_legacy(session, table)
    scheduled = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)
    present = _insert_legacy(session, table, scheduled_date_time=scheduled, version=3)
    session.commit()

    assert backfill_scheduled_date_time(session, dry_run=True) == (1, 0)
    session.rollback()
    assert session.execute(select(table.c.scheduled_date_time).where(table.c.id == missing)).scalar() is None

    assert migrate(session) == {"backfilled": 1, "errors": 0, "rewritten": 0}

    rows = {
        row.id: (row.scheduled_date_time, row.version)
        for row in session.execute(select(table.c.id, table.c.scheduled_date_time, table.c.version))
    }
    assert rows[missing] == (datetime(2024, 3, 5, 14, 45, tzinfo=timezone.utc), 1)
    assert rows[present] == (scheduled, 3)
