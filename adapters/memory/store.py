"""
메모리 Ledger 저장소

테스트 및 임베딩용 in-process 저장소.
IWalletStore / ITransactionLedger / IAccountDirectory / IUnitOfWork Protocol 준수.

MemoryState 락은 SQLiteAdapter의 트랜잭션 락과 같은 규칙을 따름:
- 작업 단위(begin ~ commit/rollback) 동안 락 보유
- 락을 보유한 Task 외의 조회/쓰기는 커밋/롤백까지 대기 (미커밋 데이터 노출 방지)
롤백은 되돌리기(undo) 기록을 역순 실행.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncIterator, Callable
from uuid import uuid4

from core.constants import Money
from core.domain.errors import (
    BalanceConflict,
    FlagAlreadySet,
    StorageError,
    TransactionNotFound,
    WalletNotFound,
)
from core.domain.models import (
    Account,
    NewTransaction,
    Transaction,
    Wallet,
    shift_balance,
    to_money,
)
from core.types import TransactionType
from core.utils.timezone import Clock, ensure_utc, now_utc

logger = logging.getLogger(__name__)

UndoLog = list[Callable[[], None]]


@dataclass
class MemoryState:
    """메모리 상태 (모든 저장소가 공유)

    같은 MemoryState를 쓰는 엔진끼리는 지갑 락을 공유하지 않아도
    상태 락으로 작업 단위가 직렬화됨.
    """

    # 계정 (account_id -> Account)
    accounts: dict[str, Account] = field(default_factory=dict)

    # 지갑 (owner_id -> Wallet)
    wallets: dict[str, Wallet] = field(default_factory=dict)

    # 거래 (append 순서 유지)
    transactions: list[Transaction] = field(default_factory=list)

    # 시뮬레이션 옵션
    latency_sec: float = 0.0  # 각 연산 전 대기 (0이어도 이벤트 루프에 양보)
    should_fail_next_append: bool = False
    should_fail_next_apply: bool = False
    should_fail_next_set_flag: bool = False

    _lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False, compare=False
    )
    _owner: "asyncio.Task[Any] | None" = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def in_transaction(self) -> bool:
        """현재 Task가 작업 단위를 보유 중인지"""
        return self._owner is not None and self._owner is asyncio.current_task()

    async def acquire(self) -> None:
        """작업 단위 시작 (상태 락 획득)"""
        if self.in_transaction:
            raise RuntimeError("Unit of work already open in this task")
        await self._lock.acquire()
        self._owner = asyncio.current_task()

    def release(self) -> None:
        """작업 단위 종료 (상태 락 해제)"""
        self._owner = None
        self._lock.release()

    @asynccontextmanager
    async def guard(self) -> AsyncIterator[None]:
        """작업 단위 보유 Task는 그대로, 그 외는 락 획득 후 실행"""
        if self.in_transaction:
            await asyncio.sleep(self.latency_sec)
            yield
        else:
            async with self._lock:
                await asyncio.sleep(self.latency_sec)
                yield


class InMemoryWalletStore:
    """메모리 지갑 저장소

    Args:
        state: 공유 MemoryState
        clock: updated_at 기록용 시계
        undo_log: 작업 단위 되돌리기 기록 (None이면 즉시 확정)
    """

    def __init__(
        self,
        state: MemoryState,
        clock: Clock = now_utc,
        undo_log: UndoLog | None = None,
    ):
        self.state = state
        self.clock = clock
        self._undo = undo_log

    async def get_wallet(self, owner_id: str) -> Wallet | None:
        async with self.state.guard():
            return self.state.wallets.get(owner_id)

    async def get_balance(self, owner_id: str) -> Decimal:
        wallet = await self.get_wallet(owner_id)
        if wallet is None:
            raise WalletNotFound(owner_id)
        return wallet.balance

    async def apply_delta(
        self,
        owner_id: str,
        delta: Decimal,
        expected_balance: Decimal,
    ) -> Decimal:
        async with self.state.guard():
            if self.state.should_fail_next_apply:
                self.state.should_fail_next_apply = False
                raise StorageError("Simulated wallet update failure")

            current = self.state.wallets.get(owner_id)
            if current is None:
                raise WalletNotFound(owner_id)

            expected = to_money(expected_balance)
            if current.balance != expected:
                raise BalanceConflict(owner_id, expected, current.balance)

            new_balance = shift_balance(owner_id, expected, delta)
            self.state.wallets[owner_id] = replace(
                current, balance=new_balance, updated_at=self.clock()
            )
            if self._undo is not None:
                self._undo.append(lambda: self.state.wallets.__setitem__(owner_id, current))

            return new_balance


class InMemoryTransactionLedger:
    """메모리 거래 원장

    Args:
        state: 공유 MemoryState
        clock: created_at 부여용 시계
        undo_log: 작업 단위 되돌리기 기록 (None이면 즉시 확정)
    """

    def __init__(
        self,
        state: MemoryState,
        clock: Clock = now_utc,
        undo_log: UndoLog | None = None,
    ):
        self.state = state
        self.clock = clock
        self._undo = undo_log

    async def append(self, new_transaction: NewTransaction) -> Transaction:
        async with self.state.guard():
            if self.state.should_fail_next_append:
                self.state.should_fail_next_append = False
                raise StorageError("Simulated transaction append failure")

            tx = new_transaction.to_transaction(str(uuid4()), self.clock())
            self.state.transactions.append(tx)
            if self._undo is not None:
                self._undo.append(lambda: self.state.transactions.remove(tx))
            return tx

    async def get(self, transaction_id: str) -> Transaction | None:
        async with self.state.guard():
            return self._find(transaction_id)

    async def find_by_actor_and_type(
        self,
        owner_id: str,
        tx_type: TransactionType,
        since: datetime,
        until: datetime | None = None,
    ) -> list[Transaction]:
        tx_type = TransactionType(tx_type)
        async with self.state.guard():
            return [
                tx for tx in self._in_window(since, until)
                if tx.from_owner_id == owner_id and tx.type == tx_type
            ]

    async def find_by_actor(
        self,
        owner_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> list[Transaction]:
        async with self.state.guard():
            return [tx for tx in self._in_window(since, until) if tx.involves(owner_id)]

    async def set_flag(self, transaction_id: str, reason: str) -> Transaction:
        async with self.state.guard():
            if self.state.should_fail_next_set_flag:
                self.state.should_fail_next_set_flag = False
                raise StorageError("Simulated flag update failure")

            for i, tx in enumerate(self.state.transactions):
                if tx.id == transaction_id:
                    if tx.is_flagged:
                        raise FlagAlreadySet(transaction_id)
                    flagged = tx.with_flag(reason)
                    self.state.transactions[i] = flagged
                    return flagged
            raise TransactionNotFound(transaction_id)

    async def list_history(
        self,
        owner_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Transaction]:
        async with self.state.guard():
            rows = [
                tx for tx in self._newest_first()
                if tx.involves(owner_id) and not tx.is_deleted
            ]
        return rows[offset:] if limit is None else rows[offset:offset + limit]

    async def list_flagged(self, limit: int | None = None) -> list[Transaction]:
        async with self.state.guard():
            rows = [tx for tx in self._newest_first() if tx.is_flagged and not tx.is_deleted]
        return rows if limit is None else rows[:limit]

    def _find(self, transaction_id: str) -> Transaction | None:
        for tx in self.state.transactions:
            if tx.id == transaction_id:
                return tx
        return None

    def _in_window(self, since: datetime, until: datetime | None) -> list[Transaction]:
        since = ensure_utc(since)
        until = ensure_utc(until) if until is not None else None
        return [
            tx for tx in self.state.transactions
            if tx.created_at >= since and (until is None or tx.created_at <= until)
        ]

    def _newest_first(self) -> list[Transaction]:
        # 같은 시각이면 나중에 append된 거래가 먼저 (SQLite seq DESC와 동일)
        indexed = list(enumerate(self.state.transactions))
        indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [tx for _, tx in indexed]


class InMemoryAccountDirectory:
    """메모리 계정 디렉토리

    Args:
        state: 공유 MemoryState
        clock: 지갑 생성 시각용 시계
    """

    def __init__(self, state: MemoryState, clock: Clock = now_utc):
        self.state = state
        self.clock = clock

    async def get_account(self, account_id: str) -> Account | None:
        async with self.state.guard():
            return self.state.accounts.get(account_id)

    async def find_active_by_email(self, email: str) -> Account | None:
        key = email.strip().lower()
        async with self.state.guard():
            for account in self.state.accounts.values():
                if account.email == key and not account.is_deleted:
                    return account
        return None

    async def register(
        self,
        email: str,
        currency: str,
        opening_balance: Decimal = Money.ZERO,
        account_id: str | None = None,
    ) -> tuple[Account, Wallet]:
        """계정과 지갑 생성"""
        account = Account(
            account_id=account_id or uuid4().hex,
            email=email.strip().lower(),
        )
        async with self.state.guard():
            if account.account_id in self.state.accounts:
                raise StorageError(f"Duplicate account_id: {account.account_id}")
            if any(a.email == account.email for a in self.state.accounts.values()):
                raise StorageError(f"Duplicate email: {account.email}")

            wallet = Wallet(
                owner_id=account.account_id,
                balance=to_money(opening_balance),
                currency=currency,
                updated_at=self.clock(),
            )
            self.state.accounts[account.account_id] = account
            self.state.wallets[account.account_id] = wallet
        return account, wallet

    async def soft_delete(self, account_id: str) -> bool:
        async with self.state.guard():
            account = self.state.accounts.get(account_id)
            if account is None or account.is_deleted:
                return False
            self.state.accounts[account_id] = replace(account, is_deleted=True)
            return True


class InMemoryUnitOfWork:
    """메모리 작업 단위

    begin에서 상태 락을 획득하고 commit/rollback에서 해제.
    변경마다 되돌리기 함수를 기록하고, rollback 시 역순 실행.

    Args:
        state: 공유 MemoryState
        clock: 저장소에 전달할 시계
    """

    def __init__(self, state: MemoryState, clock: Clock = now_utc):
        self.state = state
        self._undo: UndoLog = []
        self.wallets = InMemoryWalletStore(state, clock, self._undo)
        self.ledger = InMemoryTransactionLedger(state, clock, self._undo)
        self._active = False

    async def begin(self) -> None:
        if self._active:
            raise RuntimeError("Unit of work already active")
        await self.state.acquire()
        self._undo.clear()
        self._active = True

    async def commit(self) -> None:
        if not self._active:
            raise RuntimeError("Unit of work is not active")
        self._undo.clear()
        self._active = False
        self.state.release()

    async def rollback(self) -> None:
        if not self._active:
            return
        try:
            while self._undo:
                undo = self._undo.pop()
                undo()
        finally:
            self._active = False
            self.state.release()
        logger.debug("메모리 작업 단위 롤백")

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        await self.begin()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._active:
            await self.rollback()
