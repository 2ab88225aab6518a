"""
LedgerEngine + SQLite 통합 테스트

실제 DB 파일을 사용하여 원자성, 동시성, Fraud 플래그 영속화를 검증.
"""

import asyncio
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db import SQLiteAdapter, SqliteAccountDirectory, init_schema
from core.domain.errors import (
    InsufficientFunds,
    PersistenceFailure,
    RecipientNotFound,
)
from core.ledger import LedgerEngine, build_sqlite_engine
from core.types import FlagReason, TransactionType


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> SQLiteAdapter:
    adapter = SQLiteAdapter(tmp_path / "walletledger.db")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def engine(db: SQLiteAdapter, clock) -> LedgerEngine:
    engine = build_sqlite_engine(db, clock=clock)
    directory: SqliteAccountDirectory = engine.accounts  # type: ignore[assignment]
    await directory.register("alice@example.com", "USD", Decimal("100"), account_id="alice")
    await directory.register("bob@example.com", "USD", Decimal("100"), account_id="bob")
    return engine


async def count_rows(db: SQLiteAdapter, table: str = "transactions") -> int:
    row = await db.fetchone(f"SELECT COUNT(*) FROM {table}")
    return row[0]


async def balance_sum(db: SQLiteAdapter) -> Decimal:
    rows = await db.fetchall("SELECT balance FROM wallets")
    return sum((Decimal(r[0]) for r in rows), Decimal("0"))


class TestEndToEnd:
    """기본 흐름"""

    @pytest.mark.asyncio
    async def test_deposit_withdraw_transfer(self, engine: LedgerEngine, db: SQLiteAdapter, clock) -> None:
        await engine.deposit("alice", "50")
        clock.advance(minutes=1)
        await engine.withdraw("alice", "20")
        clock.advance(minutes=1)
        result = await engine.transfer("alice", "bob@example.com", "30")

        assert result.new_balance == Decimal("100.00")
        assert (await engine.get_balance("alice")).balance == Decimal("100.00")
        assert (await engine.get_balance("bob")).balance == Decimal("130.00")

        history = await engine.get_transaction_history("alice")
        assert [t.type for t in history] == [
            TransactionType.TRANSFER,
            TransactionType.WITHDRAWAL,
            TransactionType.DEPOSIT,
        ]
        assert [t.type for t in await engine.get_transaction_history("bob")] == [
            TransactionType.TRANSFER,
        ]

    @pytest.mark.asyncio
    async def test_rejected_operation_writes_nothing(self, engine: LedgerEngine, db: SQLiteAdapter) -> None:
        with pytest.raises(InsufficientFunds):
            await engine.transfer("alice", "bob@example.com", "100.01")
        with pytest.raises(RecipientNotFound):
            await engine.transfer("alice", "carol@example.com", "1")

        assert await count_rows(db) == 0
        assert await balance_sum(db) == Decimal("200.00")
        assert db.in_transaction is False

    @pytest.mark.asyncio
    async def test_flag_persisted(self, engine: LedgerEngine, db: SQLiteAdapter) -> None:
        await engine.deposit("alice", "2000")

        result = await engine.withdraw("alice", "1500")

        assert result.transaction.flag_reason == FlagReason.LARGE_WITHDRAWAL.value
        assert result.new_balance == Decimal("600.00")
        row = await db.fetchone(
            "SELECT is_flagged, flag_reason FROM transactions WHERE id = ?",
            (result.transaction.id,),
        )
        assert row == (1, FlagReason.LARGE_WITHDRAWAL.value)
        flagged = await engine.get_flagged_transactions()
        assert [t.id for t in flagged] == [result.transaction.id]

    @pytest.mark.asyncio
    async def test_velocity_flag(self, engine: LedgerEngine, clock) -> None:
        results = []
        for _ in range(5):
            results.append(await engine.transfer("alice", "bob@example.com", "1"))
            clock.advance(minutes=5)

        assert results[-1].transaction.flag_reason == FlagReason.VELOCITY.value
        assert not any(r.transaction.is_flagged for r in results[:-1])

    @pytest.mark.asyncio
    async def test_soft_deleted_excluded_from_history(self, engine: LedgerEngine, db: SQLiteAdapter, clock) -> None:
        first = await engine.deposit("alice", "10")
        clock.advance(seconds=1)
        await engine.deposit("alice", "10")
        async with db.transaction():
            await db.execute(
                "UPDATE transactions SET is_deleted = 1 WHERE id = ?",
                (first.transaction.id,),
            )

        history = await engine.get_transaction_history("alice")

        assert len(history) == 1
        assert first.transaction.id not in {t.id for t in history}


class TestAtomicity:
    """영속화 실패 시 전체 롤백"""

    @pytest.mark.asyncio
    async def test_ledger_failure_rolls_back_balances(self, engine: LedgerEngine, db: SQLiteAdapter) -> None:
        async with db.transaction():
            await db.execute("ALTER TABLE transactions RENAME TO transactions_moved")

        with pytest.raises(PersistenceFailure):
            await engine.transfer("alice", "bob@example.com", "40")

        assert (await engine.get_balance("alice")).balance == Decimal("100.00")
        assert (await engine.get_balance("bob")).balance == Decimal("100.00")
        assert db.in_transaction is False

        async with db.transaction():
            await db.execute("ALTER TABLE transactions_moved RENAME TO transactions")

        result = await engine.transfer("alice", "bob@example.com", "40")
        assert result.new_balance == Decimal("60.00")


class TestConcurrency:
    """동일 연결을 공유하는 동시 요청"""

    @pytest.mark.asyncio
    async def test_concurrent_withdrawals(self, engine: LedgerEngine, db: SQLiteAdapter) -> None:
        results = await asyncio.gather(
            *(engine.withdraw("alice", "30") for _ in range(6)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if not isinstance(r, Exception)]
        assert len(succeeded) == 3
        assert all(isinstance(r, InsufficientFunds) for r in results if isinstance(r, Exception))
        assert (await engine.get_balance("alice")).balance == Decimal("10.00")
        assert await count_rows(db) == 3

    @pytest.mark.asyncio
    async def test_opposite_transfers(self, engine: LedgerEngine, db: SQLiteAdapter) -> None:
        jobs = [
            engine.transfer("alice", "bob@example.com", "2") if i % 2 == 0
            else engine.transfer("bob", "alice@example.com", "2")
            for i in range(16)
        ]

        await asyncio.wait_for(asyncio.gather(*jobs), timeout=30)

        assert (await engine.get_balance("alice")).balance == Decimal("100.00")
        assert (await engine.get_balance("bob")).balance == Decimal("100.00")
        assert await count_rows(db) == 16

    @pytest.mark.asyncio
    async def test_conservation(self, engine: LedgerEngine, db: SQLiteAdapter) -> None:
        jobs = []
        for i in range(10):
            jobs.append(engine.transfer("alice", "bob@example.com", "15"))
            jobs.append(engine.transfer("bob", "alice@example.com", "9"))
            jobs.append(engine.deposit("bob", "1"))
            jobs.append(engine.withdraw("alice", "4"))
        results = await asyncio.gather(*jobs, return_exceptions=True)

        errors = [r for r in results if isinstance(r, Exception)]
        assert all(isinstance(e, InsufficientFunds) for e in errors)

        rows = await db.fetchall("SELECT type, amount FROM transactions")
        deposits = sum((Decimal(a) for t, a in rows if t == "DEPOSIT"), Decimal("0"))
        withdrawals = sum((Decimal(a) for t, a in rows if t == "WITHDRAWAL"), Decimal("0"))
        assert await balance_sum(db) == Decimal("200") + deposits - withdrawals
