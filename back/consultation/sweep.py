"""
상담 자동 완료 sweep

목록 조회 직전에 호출되는 것과 별개로, lifespan 에서 주기 실행할 수 있다.
CONSULTATION_SWEEP_INTERVAL_SECONDS 가 0 이면 주기 실행을 끈다.
"""

from asyncio import to_thread
import asyncio
import logging
import os
from typing import Callable

from sqlalchemy.orm import Session

from consultation.repository import ConsultationRepository
from logs.logging_util import LoggerSingleton

logger = LoggerSingleton.get_logger(logger_name="sweep", level=logging.INFO)


def get_sweep_interval() -> int:
    return int(os.getenv("CONSULTATION_SWEEP_INTERVAL_SECONDS", "300"))


def run_sweep_once(session_factory: Callable[[], Session]) -> int:
    db = session_factory()
    try:
        return ConsultationRepository.complete_due(db)
    finally:
        db.close()


async def sweep_forever(session_factory: Callable[[], Session], interval_seconds: int) -> None:
    """취소될 때까지 interval 마다 sweep 실행"""
    logger.info(f"Consultation sweep started: interval={interval_seconds}s")
    while True:
        try:
            completed = await to_thread(run_sweep_once, session_factory)
            if completed:
                logger.info(f"Sweep completed {completed} consultations")
        except asyncio.CancelledError:
            raise
        except Exception:
            # 다음 주기에 다시 시도
            logger.exception("Consultation sweep failed")
        await asyncio.sleep(interval_seconds)
