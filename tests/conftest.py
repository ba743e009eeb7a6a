# tests/conftest.py
import os

# database / auth 모듈이 import 시점에 환경변수를 읽으므로 가장 먼저 설정
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["CONSULTATION_SWEEP_INTERVAL_SECONDS"] = "0"

import itertools
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app import app
from auth.security import create_access_token
from config.exception import AppException
from config.dependencies import get_event_publisher, get_payment_gateway
from consultation.events import ConsultationEventPublisher
from consultation.service import ConsultationService
from database import Base, SessionLocal, engine, get_db, init_db
from models.consultation import Consultation
from models.lawyer import Lawyer
from models.user import User
from payment.gateway import PaymentGateway, PaymentGatewayUnavailable
from payment.service import PaymentService

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)
GATEWAY_SECRET = "test_secret"


class FakeGateway(PaymentGateway):
    """HTTP 호출 없이 주문을 발급하는 게이트웨이"""

    def __init__(self, fail: bool = False):
        self.key_id = "rzp_test_key"
        self.key_secret = GATEWAY_SECRET
        self.fail = fail
        self.orders = []

    async def create_order(self, *, amount, currency, receipt, notes):
        if self.fail:
            raise PaymentGatewayUnavailable("gateway down")
        order = {
            "id": f"order_{len(self.orders) + 1}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        self.orders.append(order)
        return order


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(name=None, **kwargs):
        n = next(counter)
        user = User(name=name or f"User {n}", email=f"user{n}@example.com", **kwargs)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def client_user(make_user):
    return make_user(name="Aryan Client")


@pytest.fixture
def lawyer_user(make_user):
    return make_user(name="Lovely Lawyer", profile_image="https://img.example.com/lovely.png")


@pytest.fixture
def outsider(make_user):
    return make_user(name="Someone Else")


@pytest.fixture
def lawyer(db, lawyer_user):
    profile = Lawyer(user_id=lawyer_user.id, consultation_fee=Decimal("1500.00"), currency="INR")
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


@pytest.fixture
def make_consultation(db, lawyer, client_user):
    def _make(*, status="pending", paid=False, scheduled_at=None, **kwargs):
        scheduled_at = scheduled_at or NOW + timedelta(days=1)
        consultation = Consultation(
            lawyer_id=lawyer.id,
            client_id=client_user.id,
            scheduled_date_time=scheduled_at,
            date=scheduled_at.date(),
            time=scheduled_at.strftime("%H:%M"),
            type="video",
            status=status,
            paid=paid,
            **kwargs,
        )
        db.add(consultation)
        db.commit()
        db.refresh(consultation)
        return consultation

    return _make


@pytest.fixture
def events():
    return []


@pytest.fixture
def publisher(events):
    publisher = ConsultationEventPublisher()
    publisher.subscribe(events.append)
    return publisher


@pytest.fixture
def service(db, publisher):
    return ConsultationService(db, publisher, clock=lambda: NOW)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def payment_service(db, gateway, publisher):
    return PaymentService(db, gateway, publisher, clock=lambda: NOW)


@pytest.fixture
def api(db, gateway, publisher):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@contextmanager
def raises_code(code):
    """AppException 의 code 까지 확인"""
    with pytest.raises(AppException) as info:
        yield info
    assert info.value.code == code, info.value.message
