"""
상담 일정 시각 변환 유틸리티

호출자가 보낸 "벽시계" 날짜/시간(YYYY-MM-DD, HH:MM)과 타임존 오프셋(분)을
절대 UTC 시각으로 바꾼다. 오프셋은 `-getTimezoneOffset()` 값, 즉 UTC+5:30 이면 +330.

    utc = datetime(Y, M, D, H, Min, tzinfo=UTC) - offset 분

타임존 DB 조회나 DST 추론은 하지 않는다. 오프셋은 해당 시각에만 유효한 값이다.
"""

from datetime import date, datetime, timedelta, timezone
import re

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")

# UTC-12:00 ~ UTC+14:00
MIN_OFFSET_MINUTES = -720
MAX_OFFSET_MINUTES = 840


def parse_date(date_str: str) -> date:
    if not isinstance(date_str, str) or not _DATE_RE.match(date_str):
        raise ValueError(f"Invalid date '{date_str}', expected YYYY-MM-DD")
    return date.fromisoformat(date_str)


def parse_time(time_str: str) -> tuple[int, int]:
    if not isinstance(time_str, str) or not _TIME_RE.match(time_str):
        raise ValueError(f"Invalid time '{time_str}', expected HH:MM")
    hours, minutes = (int(part) for part in time_str.split(":"))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time '{time_str}', expected HH:MM")
    return hours, minutes


def to_utc_instant(date_str: str, time_str: str, timezone_offset: int | None = 0) -> datetime:
    """벽시계 날짜/시간 + 오프셋(분) -> tz-aware UTC datetime"""
    day = parse_date(date_str)
    hours, minutes = parse_time(time_str)
    offset = timezone_offset or 0
    if not MIN_OFFSET_MINUTES <= offset <= MAX_OFFSET_MINUTES:
        raise ValueError(
            f"Invalid timezone offset {offset}, expected {MIN_OFFSET_MINUTES}..{MAX_OFFSET_MINUTES} minutes"
        )

    wall_clock = datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)
    return wall_clock - timedelta(minutes=offset)


def to_wall_clock(instant: datetime, timezone_offset: int | None = 0) -> tuple[str, str]:
    """to_utc_instant 의 역변환: UTC 시각 -> (YYYY-MM-DD, HH:MM)"""
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    local = instant.astimezone(timezone.utc) + timedelta(minutes=timezone_offset or 0)
    return local.strftime("%Y-%m-%d"), local.strftime("%H:%M")
