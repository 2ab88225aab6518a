"""
SQLite 계정 디렉토리

수신자 조회(이메일 → 계정)와 계정/지갑 등록.
계정 생명주기는 Ledger 외부 책임이며, register는 부트스트랩/테스트용.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import uuid4

from adapters.db.errors import storage_errors
from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.db.wallet_store import SqliteWalletStore
from core.constants import Money
from core.domain.models import Account, Wallet
from core.utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """이메일 비교용 정규화 (공백 제거, 소문자)"""
    return email.strip().lower()


class SqliteAccountDirectory:
    """SQLite 계정 디렉토리

    IAccountDirectory Protocol 구현.

    Args:
        db: SQLiteAdapter 인스턴스
        clock: 지갑 생성 시각용 시계
    """

    def __init__(self, db: SQLiteAdapter, clock: Clock = now_utc):
        self.db = db
        self.clock = clock

    async def get_account(self, account_id: str) -> Account | None:
        with storage_errors("account.get"):
            row = await self.db.fetchone(
                "SELECT account_id, email, is_deleted FROM accounts WHERE account_id = ?",
                (account_id,),
            )
        return self._row_to_account(row) if row else None

    async def find_active_by_email(self, email: str) -> Account | None:
        with storage_errors("account.find_by_email"):
            row = await self.db.fetchone(
                """
                SELECT account_id, email, is_deleted FROM accounts
                WHERE email = ? AND is_deleted = 0
                """,
                (normalize_email(email),),
            )
        return self._row_to_account(row) if row else None

    async def register(
        self,
        email: str,
        currency: str,
        opening_balance: Decimal = Money.ZERO,
        account_id: str | None = None,
    ) -> tuple[Account, Wallet]:
        """계정과 지갑을 하나의 트랜잭션으로 생성

        Args:
            email: 수신자 조회 키
            currency: 지갑 통화
            opening_balance: 초기 잔액 (기본 0)
            account_id: 계정 ID (None이면 uuid4 hex)

        Returns:
            (Account, Wallet) 튜플
        """
        account = Account(
            account_id=account_id or uuid4().hex,
            email=normalize_email(email),
        )
        wallets = SqliteWalletStore(self.db, self.clock)

        with storage_errors("account.register"):
            async with self.db.atomic():
                await self.db.execute(
                    "INSERT INTO accounts (account_id, email) VALUES (?, ?)",
                    (account.account_id, account.email),
                )
                wallet = await wallets.create_wallet(
                    account.account_id, currency, opening_balance
                )

        logger.info(
            "계정 등록 완료",
            extra={"account_id": account.account_id, "currency": currency},
        )
        return account, wallet

    async def soft_delete(self, account_id: str) -> bool:
        """계정 soft-delete (이후 수신자 조회에서 제외)

        Returns:
            변경 여부
        """
        with storage_errors("account.soft_delete"):
            async with self.db.atomic():
                cursor = await self.db.execute(
                    "UPDATE accounts SET is_deleted = 1 WHERE account_id = ? AND is_deleted = 0",
                    (account_id,),
                )
                changed = cursor.rowcount == 1
        return changed

    @staticmethod
    def _row_to_account(row: tuple[Any, ...]) -> Account:
        return Account(account_id=row[0], email=row[1], is_deleted=bool(row[2]))
