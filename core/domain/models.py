"""
Ledger 도메인 모델

Account / Wallet / Transaction 값 객체와 불변 조건.
저장 기술과 무관하게 생성 시점에 불변 조건을 검증 (smart constructor).
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, DecimalException, InvalidOperation

from core.constants import Money
from core.domain.errors import BalanceOverflow, InvalidAmount, NegativeBalance
from core.types import TransactionType
from core.utils.timezone import ensure_utc


def parse_amount(value: object) -> Decimal:
    """요청 금액을 Decimal로 변환 및 검증

    Decimal, int, str, float(str 경유) 허용.
    None/bool/비숫자/NaN/Infinity/0 이하/소수점 2자리 초과는 거부.

    Args:
        value: 요청 금액

    Returns:
        0.01 단위로 정규화된 Decimal

    Raises:
        InvalidAmount: 유효하지 않은 금액
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmount(value)

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise InvalidAmount(value, "Amount is not a number") from e
    else:
        raise InvalidAmount(value, "Unsupported amount type")

    if not amount.is_finite():
        raise InvalidAmount(value, "Amount must be finite")
    if amount <= 0:
        raise InvalidAmount(value, "Amount must be greater than zero")

    try:
        quantized = amount.quantize(Money.QUANT)
    except InvalidOperation as e:
        raise InvalidAmount(value, "Amount is too large") from e

    if quantized != amount:
        raise InvalidAmount(
            value, f"Amount supports at most {Money.AMOUNT_DECIMALS} decimal places"
        )
    return quantized


def to_money(value: object) -> Decimal:
    """저장된 잔액/금액 값을 0.01 단위 Decimal로 변환 (검증 없음)"""
    return Decimal(str(value)).quantize(Money.QUANT)


def shift_balance(owner_id: str, balance: Decimal, delta: Decimal) -> Decimal:
    """잔액에 변경량을 적용한 새 잔액 (0.01 단위)

    Raises:
        BalanceOverflow: 결과가 Decimal 정밀도 범위를 벗어난 경우
        NegativeBalance: 결과가 음수인 경우
    """
    try:
        new_balance = to_money(balance + delta)
    except DecimalException as e:
        raise BalanceOverflow(owner_id, balance, delta) from e
    if new_balance < 0:
        raise NegativeBalance(owner_id, new_balance)
    return new_balance


def validate_parties(
    tx_type: TransactionType,
    from_owner_id: str | None,
    to_owner_id: str | None,
) -> None:
    """거래 유형별 당사자 조합 검증

    - DEPOSIT: to만 존재
    - WITHDRAWAL: from만 존재
    - TRANSFER: 둘 다 존재하고 서로 다름

    Raises:
        ValueError: 조합이 잘못된 경우
    """
    if tx_type == TransactionType.DEPOSIT:
        if from_owner_id is not None or not to_owner_id:
            raise ValueError("DEPOSIT requires to_owner_id only")
    elif tx_type == TransactionType.WITHDRAWAL:
        if to_owner_id is not None or not from_owner_id:
            raise ValueError("WITHDRAWAL requires from_owner_id only")
    elif tx_type == TransactionType.TRANSFER:
        if not from_owner_id or not to_owner_id:
            raise ValueError("TRANSFER requires both from_owner_id and to_owner_id")
        if from_owner_id == to_owner_id:
            raise ValueError("TRANSFER parties must be distinct")


@dataclass(frozen=True)
class Account:
    """계정 (외부에서 생명주기 관리, Ledger는 조회만)"""

    account_id: str
    email: str
    is_deleted: bool = False


@dataclass(frozen=True)
class Wallet:
    """지갑 스냅샷 (계정당 1개)

    잔액은 항상 0 이상.
    """

    owner_id: str
    balance: Decimal
    currency: str
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.balance < 0:
            raise ValueError(f"Wallet balance must be >= 0: {self.balance}")


@dataclass(frozen=True)
class NewTransaction:
    """저장 전 거래 (id/created_at은 Ledger가 부여)

    직접 생성 대신 deposit/withdrawal/transfer 생성자 사용.
    """

    type: TransactionType
    amount: Decimal
    currency: str
    from_owner_id: str | None = None
    to_owner_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TransactionType(self.type))
        if self.amount <= 0:
            raise InvalidAmount(self.amount)
        validate_parties(self.type, self.from_owner_id, self.to_owner_id)

    @classmethod
    def deposit(cls, owner_id: str, amount: Decimal, currency: str) -> "NewTransaction":
        return cls(
            type=TransactionType.DEPOSIT,
            amount=amount,
            currency=currency,
            to_owner_id=owner_id,
        )

    @classmethod
    def withdrawal(cls, owner_id: str, amount: Decimal, currency: str) -> "NewTransaction":
        return cls(
            type=TransactionType.WITHDRAWAL,
            amount=amount,
            currency=currency,
            from_owner_id=owner_id,
        )

    @classmethod
    def transfer(
        cls,
        from_owner_id: str,
        to_owner_id: str,
        amount: Decimal,
        currency: str,
    ) -> "NewTransaction":
        return cls(
            type=TransactionType.TRANSFER,
            amount=amount,
            currency=currency,
            from_owner_id=from_owner_id,
            to_owner_id=to_owner_id,
        )

    def to_transaction(self, transaction_id: str, created_at: datetime) -> "Transaction":
        """Ledger append 시 id/created_at을 부여하여 확정"""
        return Transaction(
            id=transaction_id,
            type=self.type,
            amount=self.amount,
            currency=self.currency,
            created_at=created_at,
            from_owner_id=self.from_owner_id,
            to_owner_id=self.to_owner_id,
        )


@dataclass(frozen=True)
class Transaction:
    """확정된 거래 (불변)

    금융 필드는 append 이후 변경 불가.
    is_flagged/flag_reason만 사후 fraud 판정으로 한 번 설정됨.
    is_deleted는 외부 관리 soft-delete 플래그 (이력 조회에서 제외).
    """

    id: str
    type: TransactionType
    amount: Decimal
    currency: str
    created_at: datetime
    from_owner_id: str | None = None
    to_owner_id: str | None = None
    is_flagged: bool = False
    flag_reason: str | None = None
    is_deleted: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TransactionType(self.type))
        object.__setattr__(self, "created_at", ensure_utc(self.created_at))
        if self.amount <= 0:
            raise InvalidAmount(self.amount)
        validate_parties(self.type, self.from_owner_id, self.to_owner_id)
        if self.is_flagged != (self.flag_reason is not None):
            raise ValueError("is_flagged and flag_reason must be set together")

    def involves(self, owner_id: str) -> bool:
        """owner_id가 출금 또는 입금 당사자인지"""
        return owner_id in (self.from_owner_id, self.to_owner_id)

    def with_flag(self, reason: str) -> "Transaction":
        """플래그가 설정된 사본 반환"""
        return replace(self, is_flagged=True, flag_reason=reason)


@dataclass(frozen=True)
class OperationResult:
    """입금/출금/이체 결과

    new_balance: 행위자 지갑의 커밋 후 잔액 (이체는 송금자)
    """

    transaction: Transaction
    new_balance: Decimal


@dataclass(frozen=True)
class BalanceView:
    """잔액 조회 결과"""

    balance: Decimal
    currency: str
