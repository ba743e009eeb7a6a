#####################################################
#                                                   #
#               클라이언트 의존성 정의                 #
#                                                   #
#####################################################

import os
from dotenv import load_dotenv
from consultation.events import ConsultationEventPublisher, log_event
from payment.gateway import DEFAULT_API_BASE, PaymentGateway, RazorpayGateway

load_dotenv()

# 모든 클라이언트 인스턴스를 담을 컨테이너 클래스
class ClientContainer:
    def __init__(self):
        self.payment_gateway: PaymentGateway | None = None
        self.event_publisher: ConsultationEventPublisher | None = None

    async def aclose(self) -> None:
        if self.payment_gateway is not None:
            await self.payment_gateway.aclose()

# 클라이언트들을 초기화하는 함수
def initialize_clients() -> ClientContainer:
    container = ClientContainer()

    # 결제 게이트웨이 (키가 없으면 주문 생성 시 502)
    container.payment_gateway = RazorpayGateway(
        key_id=os.getenv("RAZORPAY_KEY_ID"),
        key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
        base_url=os.getenv("RAZORPAY_API_BASE", DEFAULT_API_BASE),
        timeout=float(os.getenv("PAYMENT_GATEWAY_TIMEOUT_SECONDS", "10")),
    )

    # 상태 변경 이벤트 발행기. 알림 전송 계층은 여기에 구독자를 추가한다
    container.event_publisher = ConsultationEventPublisher()
    container.event_publisher.subscribe(log_event)

    return container
