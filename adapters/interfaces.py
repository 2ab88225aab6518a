"""
어댑터 인터페이스 정의

Protocol 기반으로 정의하여 의존성 주입 및 저장소 교체 가능.
SQLite 구현체와 메모리 구현체 모두 이 Protocol을 준수해야 함.
금액은 반드시 Decimal 타입 사용.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from core.domain.models import Account, NewTransaction, Transaction, Wallet
from core.types import TransactionType


@runtime_checkable
class IWalletStore(Protocol):
    """지갑 잔액 저장소 인터페이스

    잔액 변경은 조건부 업데이트(apply_delta)로만 가능.
    """

    async def get_wallet(self, owner_id: str) -> Wallet | None:
        """지갑 스냅샷 조회 (없으면 None)"""
        ...

    async def get_balance(self, owner_id: str) -> Decimal:
        """잔액 조회

        Raises:
            WalletNotFound: 지갑이 없는 경우
        """
        ...

    async def apply_delta(
        self,
        owner_id: str,
        delta: Decimal,
        expected_balance: Decimal,
    ) -> Decimal:
        """조건부 잔액 변경

        저장된 잔액이 expected_balance와 같을 때만 delta를 반영.

        Returns:
            변경 후 잔액

        Raises:
            BalanceConflict: 저장 잔액이 기대값과 다른 경우
            WalletNotFound: 지갑이 없는 경우
            NegativeBalance: 결과 잔액이 음수인 경우
        """
        ...


@runtime_checkable
class ITransactionLedger(Protocol):
    """Append-only 거래 원장 인터페이스

    append 이후 금융 필드는 변경 불가. 플래그만 한 번 설정 가능.
    """

    async def append(self, new_transaction: NewTransaction) -> Transaction:
        """거래 추가 (id/created_at 부여)

        Raises:
            StorageError: 저장소 장애
        """
        ...

    async def get(self, transaction_id: str) -> Transaction | None:
        """ID로 거래 조회"""
        ...

    async def find_by_actor_and_type(
        self,
        owner_id: str,
        tx_type: TransactionType,
        since: datetime,
        until: datetime | None = None,
    ) -> list[Transaction]:
        """owner_id가 출금측(from)인 특정 유형 거래 조회 (since <= created_at <= until)"""
        ...

    async def find_by_actor(
        self,
        owner_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> list[Transaction]:
        """owner_id가 from 또는 to인 거래 조회 (since <= created_at <= until)"""
        ...

    async def set_flag(self, transaction_id: str, reason: str) -> Transaction:
        """Fraud 플래그 설정 (거래당 1회)

        Raises:
            TransactionNotFound: 거래가 없는 경우
            FlagAlreadySet: 이미 플래그가 설정된 경우
        """
        ...

    async def list_history(
        self,
        owner_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Transaction]:
        """거래 이력 (soft-delete 제외, 최신순)"""
        ...

    async def list_flagged(self, limit: int | None = None) -> list[Transaction]:
        """플래그된 거래 목록 (soft-delete 제외, 최신순)"""
        ...


@runtime_checkable
class IAccountDirectory(Protocol):
    """계정 조회 인터페이스 (수신자 조회용)"""

    async def get_account(self, account_id: str) -> Account | None:
        """ID로 계정 조회"""
        ...

    async def find_active_by_email(self, email: str) -> Account | None:
        """이메일로 활성 계정 조회 (없거나 soft-delete면 None)"""
        ...


@runtime_checkable
class IUnitOfWork(Protocol):
    """작업 단위 인터페이스

    wallets/ledger 변경을 하나의 원자 단위로 묶음.
    commit() 없이 종료되면 rollback.

    사용 예시:
    ```python
    async with uow_factory() as uow:
        await uow.wallets.apply_delta(owner_id, delta, balance)
        await uow.ledger.append(new_tx)
        await uow.commit()
    ```
    """

    wallets: IWalletStore
    ledger: ITransactionLedger

    async def begin(self) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...

    async def __aenter__(self) -> "IUnitOfWork":
        ...

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        ...


__all__ = [
    "IWalletStore",
    "ITransactionLedger",
    "IAccountDirectory",
    "IUnitOfWork",
]
