"""
상담료 결제 API 라우터
"""

from fastapi import APIRouter, Depends
from auth.dependencies import get_current_active_user
from config.dependencies import get_payment_service
from models.user import User
from payment.service import PaymentService
from schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentDetails,
    PaymentDetailsResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-order", response_model=CreateOrderResponse)
async def create_payment_order(
    data: CreateOrderRequest,
    current_user: User = Depends(get_current_active_user),
    service: PaymentService = Depends(get_payment_service),
):
    """결제 주문 생성 (의뢰인, accepted 상담만)"""
    consultation, order = await service.create_order(data.consultation_id, current_user)
    return CreateOrderResponse(
        order_id=order["id"],
        amount=consultation.payment_amount,
        currency=consultation.payment_currency,
        consultation_id=consultation.id,
        key=service.gateway.key_id,
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    data: VerifyPaymentRequest,
    current_user: User = Depends(get_current_active_user),
    service: PaymentService = Depends(get_payment_service),
):
    """결제 서명 검증 (의뢰인)"""
    consultation = service.verify(
        data.consultation_id,
        current_user,
        order_id=data.order_id,
        payment_id=data.payment_id,
        signature=data.signature,
    )
    return VerifyPaymentResponse(
        consultation_id=consultation.id,
        paid=consultation.paid,
        payment_id=consultation.payment_id,
    )


@router.get("/consultation/{consultation_id}", response_model=PaymentDetailsResponse)
def get_payment_details(
    consultation_id: int,
    current_user: User = Depends(get_current_active_user),
    service: PaymentService = Depends(get_payment_service),
):
    """결제 정보 조회 (의뢰인 또는 변호사)"""
    consultation = service.get_details(consultation_id, current_user)
    details = None
    if consultation.has_payment_details:
        details = PaymentDetails(
            order_id=consultation.payment_order_id,
            payment_id=consultation.payment_id,
            signature=consultation.payment_signature,
            amount=consultation.payment_amount,
            currency=consultation.payment_currency or "INR",
            status=consultation.payment_status,
            paid_at=consultation.paid_at,
        )
    return PaymentDetailsResponse(paid=bool(consultation.paid), payment_details=details)
