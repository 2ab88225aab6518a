"""
SQLite 거래 원장

transactions 테이블에 append-only로 거래 저장.
금융 필드는 UPDATE하지 않으며, is_flagged/flag_reason만 한 번 갱신.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import uuid4

from adapters.db.errors import storage_errors
from adapters.db.sqlite_adapter import SQLiteAdapter
from core.domain.errors import FlagAlreadySet, TransactionNotFound
from core.domain.models import NewTransaction, Transaction, to_money
from core.types import TransactionType
from core.utils.timezone import Clock, from_iso_utc, now_utc, to_iso_utc

logger = logging.getLogger(__name__)


_COLUMNS = """
    id, type, from_owner_id, to_owner_id, amount, currency,
    created_at, is_flagged, flag_reason, is_deleted
"""


class SqliteTransactionLedger:
    """SQLite 거래 원장

    ITransactionLedger Protocol 구현.

    Args:
        db: SQLiteAdapter 인스턴스
        clock: created_at 부여용 시계

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        ledger = SqliteTransactionLedger(db)

        tx = await ledger.append(NewTransaction.deposit(owner_id, Decimal("100"), "USD"))
        history = await ledger.list_history(owner_id)
    ```
    """

    def __init__(self, db: SQLiteAdapter, clock: Clock = now_utc):
        self.db = db
        self.clock = clock

    async def append(self, new_transaction: NewTransaction) -> Transaction:
        """거래 추가

        Args:
            new_transaction: 저장할 거래 (id/created_at 미부여)

        Returns:
            id/created_at이 부여된 Transaction
        """
        tx = new_transaction.to_transaction(str(uuid4()), self.clock())

        with storage_errors("ledger.append"):
            async with self.db.atomic():
                await self.db.execute(
                    """
                    INSERT INTO transactions (
                        id, type, from_owner_id, to_owner_id, amount, currency, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        tx.id,
                        tx.type.value,
                        tx.from_owner_id,
                        tx.to_owner_id,
                        str(tx.amount),
                        tx.currency,
                        to_iso_utc(tx.created_at),
                    ),
                )

        logger.debug(
            "거래 저장 완료",
            extra={"transaction_id": tx.id, "type": tx.type.value},
        )
        return tx

    async def get(self, transaction_id: str) -> Transaction | None:
        with storage_errors("ledger.get"):
            row = await self.db.fetchone(
                f"SELECT {_COLUMNS} FROM transactions WHERE id = ?",
                (transaction_id,),
            )
        return self._row_to_transaction(row) if row else None

    async def find_by_actor_and_type(
        self,
        owner_id: str,
        tx_type: TransactionType,
        since: datetime,
        until: datetime | None = None,
    ) -> list[Transaction]:
        """owner_id가 출금측(from)인 특정 유형 거래 (시간순)"""
        sql = f"""
            SELECT {_COLUMNS} FROM transactions
            WHERE from_owner_id = ? AND type = ? AND created_at >= ?
        """
        params: list[Any] = [owner_id, TransactionType(tx_type).value, to_iso_utc(since)]
        if until is not None:
            sql += " AND created_at <= ?"
            params.append(to_iso_utc(until))
        sql += " ORDER BY created_at ASC, seq ASC"

        with storage_errors("ledger.find_by_actor_and_type"):
            rows = await self.db.fetchall(sql, tuple(params))
        return [self._row_to_transaction(row) for row in rows]

    async def find_by_actor(
        self,
        owner_id: str,
        since: datetime,
        until: datetime | None = None,
    ) -> list[Transaction]:
        """owner_id가 from 또는 to인 거래 (시간순)"""
        sql = f"""
            SELECT {_COLUMNS} FROM transactions
            WHERE (from_owner_id = ? OR to_owner_id = ?) AND created_at >= ?
        """
        params: list[Any] = [owner_id, owner_id, to_iso_utc(since)]
        if until is not None:
            sql += " AND created_at <= ?"
            params.append(to_iso_utc(until))
        sql += " ORDER BY created_at ASC, seq ASC"

        with storage_errors("ledger.find_by_actor"):
            rows = await self.db.fetchall(sql, tuple(params))
        return [self._row_to_transaction(row) for row in rows]

    async def set_flag(self, transaction_id: str, reason: str) -> Transaction:
        """Fraud 플래그 설정 (거래당 1회)

        Raises:
            TransactionNotFound: 거래가 없는 경우
            FlagAlreadySet: 이미 플래그가 있는 경우
        """
        with storage_errors("ledger.set_flag"):
            async with self.db.atomic():
                cursor = await self.db.execute(
                    """
                    UPDATE transactions
                    SET is_flagged = 1, flag_reason = ?
                    WHERE id = ? AND is_flagged = 0
                    """,
                    (reason, transaction_id),
                )
                if cursor.rowcount == 0:
                    exists = await self.db.fetchone(
                        "SELECT 1 FROM transactions WHERE id = ?",
                        (transaction_id,),
                    )
                    if exists is None:
                        raise TransactionNotFound(transaction_id)
                    raise FlagAlreadySet(transaction_id)

        tx = await self.get(transaction_id)
        if tx is None:
            raise TransactionNotFound(transaction_id)
        return tx

    async def list_history(
        self,
        owner_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Transaction]:
        """거래 이력 (soft-delete 제외, 최신순)"""
        with storage_errors("ledger.list_history"):
            rows = await self.db.fetchall(
                f"""
                SELECT {_COLUMNS} FROM transactions
                WHERE (from_owner_id = ? OR to_owner_id = ?) AND is_deleted = 0
                ORDER BY created_at DESC, seq DESC
                LIMIT ? OFFSET ?
                """,
                (owner_id, owner_id, -1 if limit is None else limit, offset),
            )
        return [self._row_to_transaction(row) for row in rows]

    async def list_flagged(self, limit: int | None = None) -> list[Transaction]:
        """플래그된 거래 (soft-delete 제외, 최신순)"""
        with storage_errors("ledger.list_flagged"):
            rows = await self.db.fetchall(
                f"""
                SELECT {_COLUMNS} FROM transactions
                WHERE is_flagged = 1 AND is_deleted = 0
                ORDER BY created_at DESC, seq DESC
                LIMIT ?
                """,
                (-1 if limit is None else limit,),
            )
        return [self._row_to_transaction(row) for row in rows]

    def _row_to_transaction(self, row: tuple[Any, ...]) -> Transaction:
        """DB 행을 Transaction 객체로 변환

        컬럼 순서:
        0: id, 1: type, 2: from_owner_id, 3: to_owner_id, 4: amount, 5: currency,
        6: created_at, 7: is_flagged, 8: flag_reason, 9: is_deleted
        """
        return Transaction(
            id=row[0],
            type=TransactionType(row[1]),
            from_owner_id=row[2],
            to_owner_id=row[3],
            amount=to_money(row[4]),
            currency=row[5],
            created_at=from_iso_utc(row[6]),
            is_flagged=bool(row[7]),
            flag_reason=row[8],
            is_deleted=bool(row[9]),
        )
