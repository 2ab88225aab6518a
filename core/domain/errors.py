"""
Ledger 예외 정의

검증/비즈니스 규칙 실패는 모두 LedgerError 하위 타입으로 구분.
호출자는 타입으로 원인을 판별하고, 메시지는 로그/응답 표시용.
"""

from decimal import Decimal


class LedgerError(Exception):
    """Ledger 예외 기본 클래스"""

    pass


class InvalidAmount(LedgerError):
    """금액이 없거나 0 이하, 숫자가 아님, 정밀도 초과"""

    def __init__(self, value: object, reason: str = "Valid amount is required"):
        self.value = value
        self.reason = reason
        super().__init__(f"{reason}: {value!r}")


class WalletNotFound(LedgerError):
    """계정에 지갑이 없음"""

    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"Wallet not found: {owner_id}")


class InsufficientFunds(LedgerError):
    """잔액 부족"""

    def __init__(self, owner_id: str, balance: Decimal, amount: Decimal):
        self.owner_id = owner_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient funds: owner={owner_id} balance={balance} amount={amount}"
        )


class RecipientNotFound(LedgerError):
    """이체 수신자 조회 실패 (없거나 soft-delete)"""

    def __init__(self, lookup_key: str):
        self.lookup_key = lookup_key
        super().__init__(f"Recipient not found: {lookup_key}")


class SelfTransferNotAllowed(LedgerError):
    """자기 자신에게 이체"""

    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"Cannot transfer to your own account: {owner_id}")


class CurrencyMismatch(LedgerError):
    """지갑 통화와 요청 통화 불일치 (환전 미지원)"""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}")


class PersistenceFailure(LedgerError):
    """원자적 변경을 영속화하지 못함 (롤백 완료 후 발생)"""

    pass


class TransactionNotFound(LedgerError):
    """거래 ID 조회 실패"""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class FlagAlreadySet(LedgerError):
    """플래그는 거래당 한 번만 기록 가능"""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction already flagged: {transaction_id}")


class BalanceConflict(LedgerError):
    """조건부 업데이트 실패 (기대 잔액과 저장 잔액 불일치)"""

    def __init__(self, owner_id: str, expected: Decimal, actual: Decimal | None = None):
        self.owner_id = owner_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Balance conflict: owner={owner_id} expected={expected} actual={actual}"
        )


class NegativeBalance(LedgerError):
    """업데이트 결과 잔액이 음수"""

    def __init__(self, owner_id: str, balance: Decimal):
        self.owner_id = owner_id
        self.balance = balance
        super().__init__(f"Balance would become negative: owner={owner_id} balance={balance}")


class StorageError(LedgerError):
    """저장소 계층 장애 (DB 오류 등)"""

    pass


class BalanceOverflow(StorageError):
    """잔액 계산 결과가 Decimal 정밀도 범위를 벗어남"""

    def __init__(self, owner_id: str, balance: Decimal, delta: Decimal):
        self.owner_id = owner_id
        self.balance = balance
        self.delta = delta
        super().__init__(
            f"Balance out of range: owner={owner_id} balance={balance} delta={delta}"
        )
