"""
Ledger Engine

입금/출금/이체를 원자적 작업 단위로 실행하고, 커밋 후 Fraud 판정.

처리 순서:
1. 검증 (금액 → 수신자 → 자기이체 → 지갑 → 잔액)
2. 지갑 락 획득 (owner_id 오름차순)
3. 작업 단위: 잔액 조건부 업데이트 + 거래 append → commit
4. 락 해제 후 Fraud 판정, 매칭 시 set_flag (실패해도 거래는 유효)
"""

import logging
from decimal import Decimal
from typing import Awaitable, Callable, TypeVar

from adapters.interfaces import (
    IAccountDirectory,
    ITransactionLedger,
    IUnitOfWork,
    IWalletStore,
)
from core.config.loader import EngineConfig
from core.domain.errors import (
    BalanceConflict,
    CurrencyMismatch,
    FlagAlreadySet,
    InsufficientFunds,
    LedgerError,
    PersistenceFailure,
    RecipientNotFound,
    SelfTransferNotAllowed,
    StorageError,
    TransactionNotFound,
    WalletNotFound,
)
from core.domain.models import (
    BalanceView,
    NewTransaction,
    OperationResult,
    Transaction,
    Wallet,
    parse_amount,
)
from core.ledger.fraud import FraudDetector
from core.ledger.locks import WalletLocks
from core.utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")

UnitOfWorkFactory = Callable[[], IUnitOfWork]


class LedgerEngine:
    """Ledger Engine

    잔액 변경은 작업 단위 안에서만 수행되며, 거래 기록과 함께 커밋/롤백.
    Fraud 플래그는 커밋 이후 별도 기록 (권고성 정보).

    Args:
        uow_factory: 작업 단위 생성 함수
        wallets: 조회용 지갑 저장소 (작업 단위 밖)
        ledger: 조회/플래그용 원장 (작업 단위 밖)
        accounts: 수신자 조회용 계정 디렉토리
        config: 엔진 설정
        fraud_detector: Fraud 판정기 (None이면 기본 규칙)
        clock: 판정 기준 시각 공급자
        locks: 지갑 락 레지스트리 (같은 저장소를 쓰는 엔진끼리 공유)

    사용 예시:
    ```python
    engine = build_sqlite_engine(db)

    result = await engine.deposit(user_id, Decimal("100"))
    result = await engine.transfer(user_id, "friend@example.com", Decimal("50"))
    print(result.transaction.is_flagged, result.new_balance)
    ```
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        wallets: IWalletStore,
        ledger: ITransactionLedger,
        accounts: IAccountDirectory,
        config: EngineConfig | None = None,
        fraud_detector: FraudDetector | None = None,
        clock: Clock = now_utc,
        locks: WalletLocks | None = None,
    ):
        self.uow_factory = uow_factory
        self.wallets = wallets
        self.ledger = ledger
        self.accounts = accounts
        self.config = config or EngineConfig()
        self.fraud_detector = fraud_detector or FraudDetector(ledger)
        self.clock = clock
        self.locks = locks or WalletLocks()

    # -------------------------------------------------------------------------
    # 변경 연산
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        owner_id: str,
        amount: object,
        currency: str | None = None,
    ) -> OperationResult:
        """입금

        Args:
            owner_id: 입금 받을 계정 (검증된 행위자)
            amount: 금액 (> 0)
            currency: 통화 (None이면 지갑 통화, 다르면 CurrencyMismatch)

        Returns:
            OperationResult (거래, 입금 후 잔액)
        """
        value = self._parse_amount("deposit", amount)
        wallet = await self._require_wallet("deposit", owner_id)
        if currency is not None and currency.strip().upper() != wallet.currency:
            raise self._rejected("deposit", CurrencyMismatch(wallet.currency, currency))

        async def work(uow: IUnitOfWork) -> tuple[Transaction, Decimal]:
            balance = await uow.wallets.get_balance(owner_id)
            new_balance = await uow.wallets.apply_delta(owner_id, value, balance)
            tx = await uow.ledger.append(
                NewTransaction.deposit(owner_id, value, wallet.currency)
            )
            return tx, new_balance

        async with self.locks.acquire(owner_id):
            tx, new_balance = await self._run_atomic("deposit", work)

        logger.info(
            f"입금 완료: {owner_id} +{value} {wallet.currency} (잔액 {new_balance})",
            extra={"transaction_id": tx.id},
        )
        tx = await self._screen(owner_id, tx)
        return OperationResult(transaction=tx, new_balance=new_balance)

    async def withdraw(self, owner_id: str, amount: object) -> OperationResult:
        """출금

        Args:
            owner_id: 출금 계정 (검증된 행위자)
            amount: 금액 (> 0, 잔액 이하)

        Returns:
            OperationResult (거래, 출금 후 잔액)
        """
        value = self._parse_amount("withdraw", amount)
        wallet = await self._require_wallet("withdraw", owner_id)

        async def work(uow: IUnitOfWork) -> tuple[Transaction, Decimal]:
            balance = await uow.wallets.get_balance(owner_id)
            if balance < value:
                raise self._rejected(
                    "withdraw", InsufficientFunds(owner_id, balance, value)
                )
            new_balance = await uow.wallets.apply_delta(owner_id, -value, balance)
            tx = await uow.ledger.append(
                NewTransaction.withdrawal(owner_id, value, wallet.currency)
            )
            return tx, new_balance

        async with self.locks.acquire(owner_id):
            tx, new_balance = await self._run_atomic("withdraw", work)

        logger.info(
            f"출금 완료: {owner_id} -{value} {wallet.currency} (잔액 {new_balance})",
            extra={"transaction_id": tx.id},
        )
        tx = await self._screen(owner_id, tx)
        return OperationResult(transaction=tx, new_balance=new_balance)

    async def transfer(
        self,
        from_owner_id: str,
        to_email: str,
        amount: object,
    ) -> OperationResult:
        """이체

        검증 순서 고정: 금액 → 수신자 존재 → 자기이체 → 지갑/통화 → 잔액

        Args:
            from_owner_id: 송금 계정 (검증된 행위자)
            to_email: 수신자 조회 키
            amount: 금액 (> 0, 송금자 잔액 이하)

        Returns:
            OperationResult (거래, 송금자 잔액)
        """
        value = self._parse_amount("transfer", amount)

        recipient = None
        if to_email and to_email.strip():
            recipient = await self.accounts.find_active_by_email(to_email)
        if recipient is None:
            raise self._rejected("transfer", RecipientNotFound(to_email))

        to_owner_id = recipient.account_id
        if to_owner_id == from_owner_id:
            raise self._rejected("transfer", SelfTransferNotAllowed(from_owner_id))

        sender_wallet = await self._require_wallet("transfer", from_owner_id)
        recipient_wallet = await self._require_wallet("transfer", to_owner_id)
        if sender_wallet.currency != recipient_wallet.currency:
            raise self._rejected(
                "transfer",
                CurrencyMismatch(sender_wallet.currency, recipient_wallet.currency),
            )
        currency = sender_wallet.currency

        async def work(uow: IUnitOfWork) -> tuple[Transaction, Decimal]:
            sender_balance = await uow.wallets.get_balance(from_owner_id)
            if sender_balance < value:
                raise self._rejected(
                    "transfer", InsufficientFunds(from_owner_id, sender_balance, value)
                )
            recipient_balance = await uow.wallets.get_balance(to_owner_id)

            new_sender_balance = await uow.wallets.apply_delta(
                from_owner_id, -value, sender_balance
            )
            await uow.wallets.apply_delta(to_owner_id, value, recipient_balance)
            tx = await uow.ledger.append(
                NewTransaction.transfer(from_owner_id, to_owner_id, value, currency)
            )
            return tx, new_sender_balance

        async with self.locks.acquire(from_owner_id, to_owner_id):
            tx, new_balance = await self._run_atomic("transfer", work)

        logger.info(
            f"이체 완료: {from_owner_id} → {to_owner_id} {value} {currency} "
            f"(송금자 잔액 {new_balance})",
            extra={"transaction_id": tx.id},
        )
        tx = await self._screen(from_owner_id, tx)
        return OperationResult(transaction=tx, new_balance=new_balance)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get_balance(self, owner_id: str) -> BalanceView:
        """잔액 조회

        Raises:
            WalletNotFound: 지갑이 없는 경우
        """
        wallet = await self.wallets.get_wallet(owner_id)
        if wallet is None:
            raise WalletNotFound(owner_id)
        return BalanceView(balance=wallet.balance, currency=wallet.currency)

    async def get_transaction_history(
        self,
        owner_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Transaction]:
        """거래 이력 (최신순, soft-delete 제외)"""
        return await self.ledger.list_history(owner_id, limit=limit, offset=offset)

    async def get_flagged_transactions(self, limit: int | None = None) -> list[Transaction]:
        """플래그된 거래 목록 (최신순, soft-delete 제외)"""
        return await self.ledger.list_flagged(limit=limit)

    # -------------------------------------------------------------------------
    # 내부
    # -------------------------------------------------------------------------

    def _rejected(self, operation: str, error: LedgerError) -> LedgerError:
        """거부 로그 후 예외 반환 (호출측에서 raise)"""
        logger.info(f"{operation} 거부: {type(error).__name__} - {error}")
        return error

    def _parse_amount(self, operation: str, amount: object) -> Decimal:
        try:
            return parse_amount(amount)
        except LedgerError as e:
            raise self._rejected(operation, e) from None

    async def _require_wallet(self, operation: str, owner_id: str) -> Wallet:
        wallet = await self.wallets.get_wallet(owner_id)
        if wallet is None:
            raise self._rejected(operation, WalletNotFound(owner_id))
        return wallet

    async def _run_atomic(
        self,
        operation: str,
        work: Callable[[IUnitOfWork], Awaitable[T]],
    ) -> T:
        """작업 단위 실행

        - 비즈니스 예외: 롤백 후 그대로 전파
        - BalanceConflict: 롤백 후 재시도 (max_conflict_retries회)
        - StorageError: 롤백 후 PersistenceFailure
        """
        attempts = self.config.max_conflict_retries + 1
        last_conflict: BalanceConflict | None = None

        for attempt in range(1, attempts + 1):
            try:
                async with self.uow_factory() as uow:
                    result = await work(uow)
                    await uow.commit()
                return result
            except BalanceConflict as e:
                last_conflict = e
                logger.warning(
                    f"{operation} 잔액 충돌, 재시도 {attempt}/{attempts}",
                    extra={"owner_id": e.owner_id},
                )
            except StorageError as e:
                logger.error(
                    f"{operation} 커밋 실패 - 롤백됨",
                    extra={"error": str(e)},
                )
                raise PersistenceFailure(f"{operation} could not be committed: {e}") from e

        raise PersistenceFailure(
            f"{operation} aborted after {attempts} balance conflicts"
        ) from last_conflict

    async def _screen(self, actor_id: str, tx: Transaction) -> Transaction:
        """커밋 후 Fraud 판정 및 플래그 기록

        판정/기록 실패는 경고만 남기고 플래그 없는 거래 반환.
        """
        try:
            reason = await self.fraud_detector.classify(actor_id, tx, self.clock())
        except StorageError as e:
            logger.warning(
                "Fraud 판정 실패 (거래는 커밋됨)",
                extra={"transaction_id": tx.id, "error": str(e)},
            )
            return tx

        if reason is None:
            return tx

        try:
            flagged = await self.ledger.set_flag(tx.id, reason)
        except (StorageError, TransactionNotFound, FlagAlreadySet) as e:
            logger.warning(
                f"Fraud 플래그 기록 실패 (거래는 커밋됨): {reason}",
                extra={"transaction_id": tx.id, "error": str(e)},
            )
            return tx

        logger.warning(
            f"거래 플래그: {reason}",
            extra={"transaction_id": tx.id, "actor_id": actor_id},
        )
        return flagged
