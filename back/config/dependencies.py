#####################################################
#                                                   #
#                의존성 주입 함수 정의                 #
#                                                   #
#####################################################

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from database import get_db
from consultation.events import ConsultationEventPublisher
from consultation.service import ConsultationService
from payment.gateway import PaymentGateway
from payment.service import PaymentService

##### 클라이언트 의존성 주입 함수 정의 #####
# app.py lifespan 에서 초기화된 클라이언트를 반환
# Depends를 위한 헬퍼 함수

# payment gateway
def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.client_container.payment_gateway

# consultation events
def get_event_publisher(request: Request) -> ConsultationEventPublisher:
    return request.app.state.client_container.event_publisher

##### 서비스 의존성 #####

def get_consultation_service(
    db: Session = Depends(get_db),
    publisher: ConsultationEventPublisher = Depends(get_event_publisher),
) -> ConsultationService:
    return ConsultationService(db, publisher)

def get_payment_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    publisher: ConsultationEventPublisher = Depends(get_event_publisher),
) -> PaymentService:
    return PaymentService(db, gateway, publisher)
