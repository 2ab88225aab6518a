"""
타임존 유틸리티

내부 저장: UTC 원칙 준수를 위한 헬퍼 함수.
시계(Clock)는 주입 가능한 callable로 표현하여 테스트에서 고정 시각 사용.
"""

from datetime import datetime, timezone
from typing import Callable

# 현재 시각 공급자 (테스트에서 교체)
Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형. 기본 Clock으로 사용.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """datetime을 UTC로 정규화

    Args:
        dt: datetime 객체 (naive면 UTC로 간주)

    Returns:
        UTC 타임존의 datetime
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_utc(dt: datetime) -> str:
    """DB 저장용 ISO 8601 문자열

    마이크로초까지 항상 포함하여 문자열 비교 = 시간 비교가 되도록 함.

    Example:
        >>> to_iso_utc(datetime(2026, 2, 20, 16, 0, tzinfo=timezone.utc))
        '2026-02-20T16:00:00.000000+00:00'
    """
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_iso_utc(value: str) -> datetime:
    """DB에 저장된 ISO 8601 문자열을 UTC datetime으로 변환"""
    return ensure_utc(datetime.fromisoformat(value))
