"""
SQLite 지갑 저장소

wallets 테이블 조회 및 조건부 잔액 업데이트.
"""

import logging
from decimal import Decimal

from adapters.db.errors import storage_errors
from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Money
from core.domain.errors import BalanceConflict, NegativeBalance, WalletNotFound
from core.domain.models import Wallet, shift_balance, to_money
from core.utils.timezone import Clock, from_iso_utc, now_utc, to_iso_utc

logger = logging.getLogger(__name__)


class SqliteWalletStore:
    """SQLite 지갑 저장소

    IWalletStore Protocol 구현.
    잔액은 0.01 단위 문자열로 저장되므로 조건부 UPDATE는 문자열 비교로 수행.
    작업 단위 밖에서 호출되면 메서드마다 자체 트랜잭션으로 커밋.

    Args:
        db: SQLiteAdapter 인스턴스
        clock: updated_at 기록용 시계
    """

    def __init__(self, db: SQLiteAdapter, clock: Clock = now_utc):
        self.db = db
        self.clock = clock

    async def get_wallet(self, owner_id: str) -> Wallet | None:
        with storage_errors("wallet.get"):
            row = await self.db.fetchone(
                """
                SELECT owner_id, balance, currency, updated_at
                FROM wallets
                WHERE owner_id = ?
                """,
                (owner_id,),
            )

        if row is None:
            return None

        return Wallet(
            owner_id=row[0],
            balance=to_money(row[1]),
            currency=row[2],
            updated_at=from_iso_utc(row[3]) if row[3] else None,
        )

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
        """조건부 잔액 변경 (compare-and-swap)

        Args:
            owner_id: 지갑 소유자
            delta: 변경량 (입금 +, 출금 -)
            expected_balance: 읽었던 잔액

        Returns:
            변경 후 잔액
        """
        expected = to_money(expected_balance)
        new_balance = shift_balance(owner_id, expected, delta)

        with storage_errors("wallet.apply_delta"):
            async with self.db.atomic():
                cursor = await self.db.execute(
                    """
                    UPDATE wallets
                    SET balance = ?, updated_at = ?
                    WHERE owner_id = ? AND balance = ?
                    """,
                    (str(new_balance), to_iso_utc(self.clock()), owner_id, str(expected)),
                )
                updated = cursor.rowcount

        if updated == 1:
            return new_balance

        # 갱신 실패: 지갑 없음 또는 다른 쓰기로 잔액 변경됨
        wallet = await self.get_wallet(owner_id)
        if wallet is None:
            raise WalletNotFound(owner_id)

        logger.warning(
            "잔액 조건부 업데이트 충돌",
            extra={
                "owner_id": owner_id,
                "expected": str(expected),
                "actual": str(wallet.balance),
            },
        )
        raise BalanceConflict(owner_id, expected, wallet.balance)

    async def create_wallet(
        self,
        owner_id: str,
        currency: str,
        balance: Decimal = Money.ZERO,
    ) -> Wallet:
        """지갑 생성 (계정 생성 시 외부에서 호출)"""
        opening = to_money(balance)
        if opening < 0:
            raise NegativeBalance(owner_id, opening)

        updated_at = self.clock()
        with storage_errors("wallet.create"):
            async with self.db.atomic():
                await self.db.execute(
                    """
                    INSERT INTO wallets (owner_id, balance, currency, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (owner_id, str(opening), currency, to_iso_utc(updated_at)),
                )
        return Wallet(
            owner_id=owner_id,
            balance=opening,
            currency=currency,
            updated_at=updated_at,
        )
