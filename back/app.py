#####################################################
#                                                   #
#                앱 상태 정의 및 관리                  #
#                                                   #
#####################################################

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from logs.logging_util import LoggerSingleton
from contextlib import asynccontextmanager
from asyncio import to_thread
from config.clients import initialize_clients
from config.exception import register_exception_handlers
from consultation.router import router as consultation_router, lawyer_router, user_router
from consultation.sweep import get_sweep_interval, sweep_forever
from payment.router import router as payment_router
from database import SessionLocal, init_db
import asyncio
import logging

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        r"""
 ##       #####    ####     ####    ##                ####     ####    ##  ##    ####
 ##       ##      ##       ##  ##   ##               ##  ##   ##  ##   ### ##   ##
 ##       ####    ## ###   ######   ##               ##       ##  ##   ######    ####
 ##       ##      ##  ##   ##  ##   ##               ##       ##  ##   ## ###       ##
 ##       ##      ##  ##   ##  ##   ##               ##  ##   ##  ##   ##  ##       ##
 ######   #####    ####    ##  ##   ######            ####     ####    ##  ##   #####
"""
    )

    await to_thread(init_db)
    logger.info(
        f"\n{'=' * 80}\n"
        f"| {' ' * 29} 🛢️ DATABASE INITIATED 🛢️ {' ' * 29} |\n"
        f"{'=' * 80}\n"
    )

    # 앱 상태에 클라이언트 컨테이너를 저장할 객체 초기화
    client_container = initialize_clients()
    app.state.client_container = client_container

    # 예정 시각이 지난 accepted 상담 자동 완료
    sweep_task = None
    interval = get_sweep_interval()
    if interval > 0:
        sweep_task = asyncio.create_task(sweep_forever(SessionLocal, interval))
    else:
        logger.info("Consultation sweep disabled")

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    await client_container.aclose()
    logger.info(
        r"""
 ##       #####    ####     ####    ##                #####   ##  ##   #####
 ##       ##      ##       ##  ##   ##                ##      ### ##   ##  ##
 ##       ####    ## ###   ######   ##                ####    ######   ##  ##
 ##       ##      ##  ##   ##  ##   ##                ##      ## ###   ##  ##
 ##       ##      ##  ##   ##  ##   ##                ##      ##  ##   ##  ##
 ######   #####    ####    ##  ##   ######            #####   ##  ##   #####
                           🛑 ENGINE SHUTDOWN 🛑
    """
    )

# FastAPI 앱 인스턴스 생성
app = FastAPI(lifespan=lifespan)

# 공통 예외 응답 형식 등록
register_exception_handlers(app)

# Prometheus FastAPI 미들웨어 설정
Instrumentator().instrument(app).expose(app)

# 라우터 등록
routers = [lawyer_router, user_router, consultation_router, payment_router]

for router in routers:
    app.include_router(router)

# 라우터에 client_container 전달은 app.state를 통해 처리합니다.

# 로거 설정
logger = LoggerSingleton.get_logger(logger_name="app", level=logging.INFO)
