"""
SQLite 작업 단위

지갑 변경과 거래 append를 하나의 SQLite 트랜잭션으로 묶음.
"""

import logging
from typing import Any

from adapters.db.errors import storage_errors
from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.db.transaction_ledger import SqliteTransactionLedger
from adapters.db.wallet_store import SqliteWalletStore
from core.utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


class SqliteUnitOfWork:
    """SQLite 작업 단위

    IUnitOfWork Protocol 구현.
    begin()에서 어댑터 락 + BEGIN IMMEDIATE, commit()/rollback()에서 해제.
    commit() 없이 컨텍스트를 벗어나면 rollback.

    Args:
        db: SQLiteAdapter 인스턴스
        clock: 저장소에 전달할 시계
    """

    def __init__(self, db: SQLiteAdapter, clock: Clock = now_utc):
        self.db = db
        self.wallets = SqliteWalletStore(db, clock)
        self.ledger = SqliteTransactionLedger(db, clock)
        self._active = False

    async def begin(self) -> None:
        with storage_errors("uow.begin"):
            await self.db.begin()
        self._active = True

    async def commit(self) -> None:
        if not self._active:
            raise RuntimeError("Unit of work is not active")
        with storage_errors("uow.commit"):
            await self.db.commit()
        self._active = False

    async def rollback(self) -> None:
        if not self._active:
            return
        self._active = False
        with storage_errors("uow.rollback"):
            await self.db.rollback()

    async def __aenter__(self) -> "SqliteUnitOfWork":
        await self.begin()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._active:
            if exc_type is None:
                logger.debug("커밋 없이 작업 단위 종료 - 롤백")
            await self.rollback()
