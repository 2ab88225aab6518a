"""
유틸리티 패키지

타임존 처리, 주입 가능한 시계 등 공통 유틸리티
"""

from core.utils.timezone import (
    Clock,
    now_utc,
    ensure_utc,
    to_iso_utc,
    from_iso_utc,
)

__all__ = [
    "Clock",
    "now_utc",
    "ensure_utc",
    "to_iso_utc",
    "from_iso_utc",
]
