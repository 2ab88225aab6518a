"""
타입 정의 모듈

Enum 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum


class TransactionType(str, Enum):
    """거래 유형

    DEPOSIT: 외부 입금 (to만 존재)
    WITHDRAWAL: 외부 출금 (from만 존재)
    TRANSFER: 계정 간 이체 (from, to 모두 존재)
    """

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"


class FlagReason(str, Enum):
    """Fraud 플래그 사유 (저장되는 문자열 그대로)"""

    VELOCITY = "Multiple transfers in a short period"
    LARGE_WITHDRAWAL = "Large withdrawal"
    ABOVE_AVERAGE = "Transaction amount significantly higher than average"
