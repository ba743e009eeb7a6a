"""
결제 게이트웨이 (Razorpay 호환 REST API)

- 주문 생성: POST {base}/orders, 금액은 최소 단위(paise)
- 결제 확인 서명: HMAC-SHA256(key_secret, "{order_id}|{payment_id}") hex
"""

import hashlib
import hmac
import logging
from typing import Any, Optional

import httpx

from logs.logging_util import LoggerSingleton

logger = LoggerSingleton.get_logger(logger_name="payment.gateway", level=logging.INFO)

DEFAULT_API_BASE = "https://api.razorpay.com/v1"


class PaymentGatewayUnavailable(Exception):
    """게이트웨이 설정 누락 또는 호출 실패"""


def compute_payment_signature(secret: str, order_id: str, payment_id: str) -> str:
    payload = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class PaymentGateway:
    """게이트웨이 인터페이스. 테스트에서는 가짜 구현으로 대체한다."""

    key_id: Optional[str] = None
    key_secret: Optional[str] = None

    async def create_order(self, *, amount: int, currency: str, receipt: str, notes: dict[str, str]) -> dict[str, Any]:
        raise NotImplementedError

    def expected_signature(self, order_id: str, payment_id: str) -> str:
        if not self.key_secret:
            raise PaymentGatewayUnavailable("Payment gateway secret is not configured")
        return compute_payment_signature(self.key_secret, order_id, payment_id)

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        return constant_time_compare(self.expected_signature(order_id, payment_id), signature)

    async def aclose(self) -> None:
        return None


class RazorpayGateway(PaymentGateway):
    def __init__(
        self,
        key_id: Optional[str],
        key_secret: Optional[str],
        *,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.client = httpx.AsyncClient(
            base_url=base_url,
            auth=(key_id or "", key_secret or ""),
            timeout=timeout,
            transport=transport,
        )
        if not (key_id and key_secret):
            logger.warning("RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET not set; payment endpoints will fail until configured")

    def is_available(self) -> bool:
        return bool(self.key_id and self.key_secret)

    async def create_order(self, *, amount: int, currency: str, receipt: str, notes: dict[str, str]) -> dict[str, Any]:
        if not self.is_available():
            raise PaymentGatewayUnavailable("Payment gateway is not configured")

        try:
            response = await self.client.post(
                "/orders",
                json={"amount": amount, "currency": currency, "receipt": receipt, "notes": notes},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Gateway rejected order: status={e.response.status_code}, body={e.response.text}")
            raise PaymentGatewayUnavailable(f"Gateway returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Gateway request failed: {e}")
            raise PaymentGatewayUnavailable(str(e)) from e

        order = response.json()
        logger.info(f"Gateway order created: order_id={order.get('id')}, amount={amount}, currency={currency}")
        return order

    async def aclose(self) -> None:
        await self.client.aclose()
