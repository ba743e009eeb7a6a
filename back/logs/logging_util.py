"""
로깅 유틸리티 - 싱글톤 로거 관리
"""
import logging
import os
import sys


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level_from_env(default: int) -> int:
    """LOG_LEVEL 환경변수(DEBUG, INFO ...)가 있으면 우선 적용"""
    name = os.getenv("LOG_LEVEL")
    if not name:
        return default
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


class LoggerSingleton:
    """
    싱글톤 패턴의 로거 팩토리
    """
    _loggers: dict[str, logging.Logger] = {}

    @classmethod
    def get_logger(cls, logger_name: str = "app", level: int = logging.INFO) -> logging.Logger:
        """
        지정된 이름의 로거를 반환합니다. 이미 생성된 경우 기존 로거를 반환합니다.

        Args:
            logger_name: 로거 이름 (예: consultation, payment, sweep)
            level: 기본 로그 레벨. LOG_LEVEL 환경변수가 설정되어 있으면 그 값을 사용

        Returns:
            logging.Logger: 설정된 로거 인스턴스
        """
        if logger_name in cls._loggers:
            return cls._loggers[logger_name]

        effective_level = _level_from_env(level)
        logger = logging.getLogger(logger_name)
        logger.setLevel(effective_level)

        # 핸들러가 없는 경우에만 추가 (uvicorn reload 시 중복 방지)
        if not logger.handlers:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(effective_level)
            console_handler.setFormatter(
                logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            logger.addHandler(console_handler)

        cls._loggers[logger_name] = logger
        return logger
