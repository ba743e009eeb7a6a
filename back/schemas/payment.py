"""
결제(Payment) 스키마
"""

from pydantic import BaseModel, Field
import datetime
from decimal import Decimal
from typing import Optional


class CreateOrderRequest(BaseModel):
    consultation_id: int = Field(..., description="상담 ID")


class CreateOrderResponse(BaseModel):
    order_id: str
    amount: Decimal
    currency: str
    consultation_id: int
    key: Optional[str] = Field(None, description="클라이언트 체크아웃에 쓰는 게이트웨이 공개 키")


class VerifyPaymentRequest(BaseModel):
    consultation_id: int
    order_id: Optional[str] = Field(None, description="게이트웨이 주문 ID")
    payment_id: Optional[str] = Field(None, description="게이트웨이 결제 ID")
    signature: Optional[str] = Field(None, description="HMAC-SHA256 서명 (hex)")


class VerifyPaymentResponse(BaseModel):
    consultation_id: int
    paid: bool
    payment_id: str
    message: str = "Payment verified successfully"


class PaymentDetails(BaseModel):
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "INR"
    status: Optional[str] = None
    paid_at: Optional[datetime.datetime] = None


class PaymentDetailsResponse(BaseModel):
    paid: bool
    payment_details: Optional[PaymentDetails] = None
