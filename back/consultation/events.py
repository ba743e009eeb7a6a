"""
상담 상태 변경 이벤트 발행기

라이프사이클 서비스는 커밋이 끝난 뒤 publish() 를 호출하고,
알림/소켓 등 전송 계층은 subscribe() 로 핸들러를 등록한다.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
import logging

from database import utc_now
from logs.logging_util import LoggerSingleton

logger = LoggerSingleton.get_logger(logger_name="consultation.events", level=logging.INFO)


@dataclass(frozen=True)
class ConsultationEvent:
    kind: str  # scheduled, status_changed, cancelled, removed, rescheduled, paid
    consultation_id: int
    lawyer_id: int
    client_id: int
    status: Optional[str]
    previous_status: Optional[str] = None
    actor_id: Optional[int] = None
    occurred_at: datetime = field(default_factory=utc_now)


EventHandler = Callable[[ConsultationEvent], None]


class ConsultationEventPublisher:
    def __init__(self):
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, event: ConsultationEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                # 알림 실패가 이미 커밋된 상태 변경을 되돌리지는 않는다
                logger.exception(
                    f"Event handler failed: kind={event.kind}, consultation_id={event.consultation_id}"
                )


def log_event(event: ConsultationEvent) -> None:
    """기본 구독자: 이벤트를 로그로 남긴다"""
    logger.info(
        f"Consultation event: kind={event.kind}, id={event.consultation_id}, "
        f"status={event.previous_status}->{event.status}, actor_id={event.actor_id}"
    )
