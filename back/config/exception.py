from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from typing import Any, Dict, Optional
import traceback
import logging


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class AppException(Exception):
    """애플리케이션 전역에서 사용하는 커스텀 예외.

    - code: 서비스 내 식별 가능한 에러 코드 (예: INVALID_STATE, PAYMENT_VERIFICATION_FAILED)
    - status_code: HTTP 상태 코드
    - message: 사용자에게 전달할 메시지
    - details: 디버깅/추가 정보 (옵션)
    - log_level: 기록 레벨 (logging.INFO, WARNING, ERROR 등)
    """

    def __init__(
        self,
        *,
        code: str,
        status_code: int,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        log_level: int = logging.ERROR,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.message = message
        self.details = details or {}
        self.log_level = log_level

    def to_response(self) -> JSONResponse:
        payload = ErrorResponse(code=self.code, message=self.message, details=self.details)
        return JSONResponse(status_code=self.status_code, content=payload.model_dump())


def register_exception_handlers(app) -> None:
    """FastAPI 앱에 전역 예외 핸들러를 등록합니다."""
    logger = logging.getLogger("exception")

    @app.exception_handler(AppException)
    async def handle_app_exception(request: Request, exc: AppException):
        logger.log(exc.log_level, f"AppException: {exc.code} - {exc.message} | path={request.url.path}")
        return exc.to_response()

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.warning("ValidationError on %s: %s", request.url.path, exc.errors())
        payload = ErrorResponse(
            code="REQUEST_VALIDATION_ERROR",
            message="Request body is invalid",
            details={"errors": jsonable_errors(exc.errors())},
        )
        return JSONResponse(status_code=422, content=payload.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        tb = traceback.format_exc()
        logger.exception("Unhandled exception on %s: %s\n%s", request.url.path, str(exc), tb)
        payload = ErrorResponse(
            code="INTERNAL_SERVER_ERROR",
            message="Server error",
            details=None,
        )
        return JSONResponse(status_code=500, content=payload.model_dump())


def jsonable_errors(errors) -> list[dict]:
    # pydantic v2 에러의 ctx 에는 예외 객체가 들어갈 수 있어 문자열로 변환
    cleaned = []
    for error in errors:
        item = dict(error)
        if "ctx" in item:
            item["ctx"] = {key: str(value) for key, value in item["ctx"].items()}
        cleaned.append(item)
    return cleaned


# 편의 유틸리티: 자주 쓰는 예외 생성기
def ValidationFailed(message: str, *, code: str = "VALIDATION_ERROR", details: Optional[Dict[str, Any]] = None) -> AppException:
    return AppException(code=code, status_code=400, message=message, details=details, log_level=logging.WARNING)


def Forbidden(message: str = "Not authorized", *, code: str = "FORBIDDEN", details: Optional[Dict[str, Any]] = None) -> AppException:
    return AppException(code=code, status_code=403, message=message, details=details, log_level=logging.WARNING)


def NotFound(message: str = "Resource not found", *, code: str = "NOT_FOUND", details: Optional[Dict[str, Any]] = None) -> AppException:
    return AppException(code=code, status_code=404, message=message, details=details, log_level=logging.INFO)


def InvalidState(message: str, *, code: str = "INVALID_STATE", details: Optional[Dict[str, Any]] = None) -> AppException:
    return AppException(code=code, status_code=400, message=message, details=details, log_level=logging.WARNING)


def Conflict(message: str = "Consultation was modified by another request, please retry", *, code: str = "CONFLICT", details: Optional[Dict[str, Any]] = None) -> AppException:
    return AppException(code=code, status_code=409, message=message, details=details, log_level=logging.WARNING)


def PaymentVerificationFailed(message: str = "Payment verification failed - invalid signature", *, code: str = "PAYMENT_VERIFICATION_FAILED", details: Optional[Dict[str, Any]] = None) -> AppException:
    return AppException(code=code, status_code=400, message=message, details=details, log_level=logging.WARNING)


def PaymentGatewayError(message: str = "Failed to create payment order", *, code: str = "PAYMENT_GATEWAY_ERROR", details: Optional[Dict[str, Any]] = None) -> AppException:
    return AppException(code=code, status_code=502, message=message, details=details, log_level=logging.ERROR)
