"""Payment service - 상담료 결제 주문 생성/검증"""

import logging
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from config.exception import (
    Forbidden,
    InvalidState,
    PaymentGatewayError,
    PaymentVerificationFailed,
    ValidationFailed,
)
from consultation.events import ConsultationEvent, ConsultationEventPublisher
from consultation.service import (
    Actor,
    commit_or_conflict,
    get_consultation_or_404,
    resolve_actor,
)
from database import utc_now
from logs.logging_util import LoggerSingleton
from models.consultation import Consultation, ConsultationStatus, PaymentStatus, effective_status
from models.user import User
from payment.gateway import PaymentGateway, PaymentGatewayUnavailable

logger = LoggerSingleton.get_logger(logger_name="payment", level=logging.INFO)


def to_minor_units(amount: Decimal) -> int:
    """주 통화 단위 -> 게이트웨이 최소 단위 (INR 1 = 100 paise)"""
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


class PaymentService:
    """결제 연동 서비스"""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        publisher: Optional[ConsultationEventPublisher] = None,
        clock: Callable = utc_now,
    ):
        self.db = db
        self.gateway = gateway
        self.publisher = publisher or ConsultationEventPublisher()
        self.clock = clock

    async def create_order(self, consultation_id: int, user: User) -> tuple[Consultation, dict[str, Any]]:
        """accepted 이고 미결제인 상담에 대해 게이트웨이 주문 생성"""
        logger.info(f"Creating payment order: consultation_id={consultation_id}, user_id={user.id}")

        consultation = get_consultation_or_404(self.db, consultation_id)
        if resolve_actor(consultation, user, action="pay for") is not Actor.CLIENT:
            raise Forbidden("Not authorized to pay for this consultation")
        self._ensure_payable(consultation)

        lawyer = consultation.lawyer
        fee = Decimal(lawyer.consultation_fee or 0)
        if fee <= 0:
            raise ValidationFailed("Consultation fee must be greater than zero")

        try:
            order = await self.gateway.create_order(
                amount=to_minor_units(fee),
                currency=lawyer.currency,
                receipt=f"consultation_{consultation.id}",
                notes={
                    "consultationId": str(consultation.id),
                    "clientId": str(user.id),
                    "clientName": user.name,
                    "clientEmail": user.email,
                },
            )
        except PaymentGatewayUnavailable as e:
            logger.error(f"Payment order creation failed: consultation_id={consultation_id}, error={e}")
            raise PaymentGatewayError()

        consultation.payment_order_id = order["id"]
        consultation.payment_id = None
        consultation.payment_signature = None
        consultation.payment_amount = fee
        consultation.payment_currency = lawyer.currency
        consultation.payment_status = PaymentStatus.PENDING.value
        consultation.paid_at = None
        commit_or_conflict(self.db)

        logger.info(f"Payment order stored: consultation_id={consultation_id}, order_id={order['id']}")
        return consultation, order

    def verify(
        self,
        consultation_id: int,
        user: User,
        *,
        order_id: Optional[str],
        payment_id: Optional[str],
        signature: Optional[str],
    ) -> Consultation:
        """게이트웨이 서명 검증 후 결제 완료 처리. 실패하면 failed 를 기록하고 예외"""
        if not order_id or not payment_id or not signature:
            raise ValidationFailed("Missing required payment verification parameters")

        consultation = get_consultation_or_404(self.db, consultation_id, for_update=True)
        if resolve_actor(consultation, user, action="verify payment for") is not Actor.CLIENT:
            raise Forbidden("Not authorized to verify payment for this consultation")
        self._ensure_payable(consultation)
        if not consultation.payment_order_id:
            raise InvalidState("No payment order has been created for this consultation")

        try:
            signature_ok = self.gateway.verify_signature(order_id, payment_id, signature)
        except PaymentGatewayUnavailable as e:
            logger.error(f"Payment verification unavailable: consultation_id={consultation_id}, error={e}")
            raise PaymentGatewayError("Payment gateway is not configured")
        if not signature_ok or order_id != consultation.payment_order_id:
            consultation.payment_status = PaymentStatus.FAILED.value
            commit_or_conflict(self.db)
            logger.warning(f"Payment verification failed: consultation_id={consultation_id}, order_id={order_id}")
            raise PaymentVerificationFailed()

        consultation.paid = True
        consultation.payment_id = payment_id
        consultation.payment_signature = signature
        consultation.payment_status = PaymentStatus.SUCCESS.value
        consultation.paid_at = self.clock()
        commit_or_conflict(self.db)

        logger.info(f"Payment verified: consultation_id={consultation_id}, payment_id={payment_id}")
        self.publisher.publish(
            ConsultationEvent(
                kind="paid",
                consultation_id=consultation.id,
                lawyer_id=consultation.lawyer_id,
                client_id=consultation.client_id,
                status=consultation.status,
                previous_status=consultation.status,
                actor_id=user.id,
            )
        )
        return consultation

    def get_details(self, consultation_id: int, user: User) -> Consultation:
        """의뢰인 또는 변호사만 결제 정보 조회"""
        consultation = get_consultation_or_404(self.db, consultation_id)
        resolve_actor(consultation, user, action="view payment details for")
        return consultation

    @staticmethod
    def _ensure_payable(consultation: Consultation) -> None:
        if consultation.paid:
            raise InvalidState("This consultation has already been paid")
        if effective_status(consultation.status) is not ConsultationStatus.ACCEPTED:
            raise InvalidState("Payment can only be made for accepted consultations")
