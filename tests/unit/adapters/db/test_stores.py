"""
SQLite 저장소 테스트

SqliteWalletStore / SqliteTransactionLedger / SqliteAccountDirectory / SqliteUnitOfWork
"""

from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db import (
    SQLiteAdapter,
    SqliteAccountDirectory,
    SqliteTransactionLedger,
    SqliteUnitOfWork,
    SqliteWalletStore,
    init_schema,
)
from core.domain.errors import (
    BalanceConflict,
    BalanceOverflow,
    FlagAlreadySet,
    NegativeBalance,
    StorageError,
    TransactionNotFound,
    WalletNotFound,
)
from core.domain.models import NewTransaction
from core.types import FlagReason, TransactionType


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> SQLiteAdapter:
    adapter = SQLiteAdapter(tmp_path / "ledger.db")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def directory(db: SQLiteAdapter, clock) -> SqliteAccountDirectory:
    directory = SqliteAccountDirectory(db, clock)
    await directory.register("alice@example.com", "USD", Decimal("100"), account_id="alice")
    await directory.register("bob@example.com", "USD", account_id="bob")
    return directory


class TestSqliteAccountDirectory:
    """계정 디렉토리 테스트"""

    @pytest.mark.asyncio
    async def test_register_creates_wallet(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        wallet = await SqliteWalletStore(db).get_wallet("alice")

        assert wallet is not None
        assert wallet.balance == Decimal("100.00")
        assert wallet.currency == "USD"

    @pytest.mark.asyncio
    async def test_find_active_by_email(self, directory: SqliteAccountDirectory) -> None:
        account = await directory.find_active_by_email("  ALICE@example.com")

        assert account is not None
        assert account.account_id == "alice"
        assert await directory.find_active_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_soft_deleted_not_found(self, directory: SqliteAccountDirectory) -> None:
        assert await directory.soft_delete("bob") is True
        assert await directory.soft_delete("bob") is False

        assert await directory.find_active_by_email("bob@example.com") is None
        bob = await directory.get_account("bob")
        assert bob is not None and bob.is_deleted is True

    @pytest.mark.asyncio
    async def test_duplicate_email_rolls_back(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        """중복 이메일이면 계정도 지갑도 생성되지 않음"""
        with pytest.raises(StorageError):
            await directory.register("alice@example.com", "USD", account_id="alice2")

        assert await directory.get_account("alice2") is None
        assert await SqliteWalletStore(db).get_wallet("alice2") is None
        assert db.in_transaction is False


class TestSqliteWalletStore:
    """지갑 저장소 테스트"""

    @pytest.mark.asyncio
    async def test_apply_delta(self, directory: SqliteAccountDirectory, db: SQLiteAdapter, clock) -> None:
        store = SqliteWalletStore(db, clock)

        new_balance = await store.apply_delta("alice", Decimal("-30.25"), Decimal("100"))

        assert new_balance == Decimal("69.75")
        wallet = await store.get_wallet("alice")
        assert wallet is not None
        assert wallet.balance == Decimal("69.75")
        assert wallet.updated_at == clock()

    @pytest.mark.asyncio
    async def test_conflict(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        store = SqliteWalletStore(db)

        with pytest.raises(BalanceConflict) as exc_info:
            await store.apply_delta("alice", Decimal("1"), Decimal("99"))

        assert exc_info.value.actual == Decimal("100.00")
        assert await store.get_balance("alice") == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_negative_rejected(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        store = SqliteWalletStore(db)

        with pytest.raises(NegativeBalance):
            await store.apply_delta("alice", Decimal("-100.01"), Decimal("100"))

    @pytest.mark.asyncio
    async def test_overflow(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        await directory.register("big@example.com", "USD", Decimal("9" * 26), account_id="big")
        store = SqliteWalletStore(db)

        with pytest.raises(BalanceOverflow):
            await store.apply_delta("big", Decimal("1"), Decimal("9" * 26))

        assert await store.get_balance("big") == Decimal("9" * 26)
        assert db.in_transaction is False

    @pytest.mark.asyncio
    async def test_missing_wallet(self, db: SQLiteAdapter) -> None:
        store = SqliteWalletStore(db)

        assert await store.get_wallet("ghost") is None
        with pytest.raises(WalletNotFound):
            await store.get_balance("ghost")
        with pytest.raises(WalletNotFound):
            await store.apply_delta("ghost", Decimal("1"), Decimal("0"))


class TestSqliteTransactionLedger:
    """거래 원장 테스트"""

    @pytest.mark.asyncio
    async def test_append_and_get(self, directory: SqliteAccountDirectory, db: SQLiteAdapter, clock) -> None:
        ledger = SqliteTransactionLedger(db, clock)

        tx = await ledger.append(NewTransaction.transfer("alice", "bob", Decimal("12.30"), "USD"))
        loaded = await ledger.get(tx.id)

        assert loaded == tx
        assert loaded.amount == Decimal("12.30")
        assert loaded.created_at == clock()
        assert await ledger.get("missing") is None

    @pytest.mark.asyncio
    async def test_windows_inclusive(self, directory: SqliteAccountDirectory, db: SQLiteAdapter, clock) -> None:
        ledger = SqliteTransactionLedger(db, clock)
        start = clock()
        first = await ledger.append(NewTransaction.transfer("alice", "bob", Decimal("1"), "USD"))
        clock.advance(minutes=30)
        second = await ledger.append(NewTransaction.transfer("alice", "bob", Decimal("1"), "USD"))
        await ledger.append(NewTransaction.transfer("bob", "alice", Decimal("1"), "USD"))
        clock.advance(minutes=30, microseconds=1)
        await ledger.append(NewTransaction.transfer("alice", "bob", Decimal("1"), "USD"))

        sent = await ledger.find_by_actor_and_type(
            "alice", TransactionType.TRANSFER, since=start, until=start + timedelta(hours=1)
        )
        involved = await ledger.find_by_actor(
            "alice", since=start + timedelta(minutes=30), until=start + timedelta(hours=1)
        )

        assert [t.id for t in sent] == [first.id, second.id]
        assert len(involved) == 2
        assert all(t.created_at == start + timedelta(minutes=30) for t in involved)

    @pytest.mark.asyncio
    async def test_set_flag(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        ledger = SqliteTransactionLedger(db)
        tx = await ledger.append(NewTransaction.withdrawal("alice", Decimal("5"), "USD"))

        flagged = await ledger.set_flag(tx.id, FlagReason.LARGE_WITHDRAWAL.value)

        assert flagged.is_flagged is True
        assert flagged.flag_reason == FlagReason.LARGE_WITHDRAWAL.value
        assert flagged.amount == tx.amount
        with pytest.raises(FlagAlreadySet):
            await ledger.set_flag(tx.id, FlagReason.VELOCITY.value)
        with pytest.raises(TransactionNotFound):
            await ledger.set_flag("missing", FlagReason.VELOCITY.value)
        assert db.in_transaction is False

    @pytest.mark.asyncio
    async def test_history_excludes_deleted(self, directory: SqliteAccountDirectory, db: SQLiteAdapter, clock) -> None:
        ledger = SqliteTransactionLedger(db, clock)
        first = await ledger.append(NewTransaction.deposit("alice", Decimal("1"), "USD"))
        clock.advance(seconds=1)
        second = await ledger.append(NewTransaction.deposit("alice", Decimal("2"), "USD"))
        clock.advance(seconds=1)
        third = await ledger.append(NewTransaction.deposit("alice", Decimal("3"), "USD"))
        await ledger.set_flag(first.id, "x")
        await ledger.set_flag(third.id, "y")
        async with db.transaction():
            await db.execute("UPDATE transactions SET is_deleted = 1 WHERE id = ?", (third.id,))

        history = await ledger.list_history("alice")
        page = await ledger.list_history("alice", limit=1, offset=1)
        flagged = await ledger.list_flagged()

        assert [t.id for t in history] == [second.id, first.id]
        assert [t.id for t in page] == [first.id]
        assert [t.id for t in flagged] == [first.id]


class TestSqliteUnitOfWork:
    """작업 단위 테스트"""

    @pytest.mark.asyncio
    async def test_commit(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        async with SqliteUnitOfWork(db) as uow:
            await uow.wallets.apply_delta("alice", Decimal("-10"), Decimal("100"))
            await uow.wallets.apply_delta("bob", Decimal("10"), Decimal("0"))
            await uow.ledger.append(NewTransaction.transfer("alice", "bob", Decimal("10"), "USD"))
            await uow.commit()

        wallets = SqliteWalletStore(db)
        assert await wallets.get_balance("alice") == Decimal("90.00")
        assert await wallets.get_balance("bob") == Decimal("10.00")
        assert db.in_transaction is False

    @pytest.mark.asyncio
    async def test_exit_without_commit_rolls_back(
        self, directory: SqliteAccountDirectory, db: SQLiteAdapter
    ) -> None:
        async with SqliteUnitOfWork(db) as uow:
            await uow.wallets.apply_delta("alice", Decimal("-10"), Decimal("100"))
            await uow.ledger.append(NewTransaction.withdrawal("alice", Decimal("10"), "USD"))

        assert await SqliteWalletStore(db).get_balance("alice") == Decimal("100.00")
        assert await SqliteTransactionLedger(db).list_history("alice") == []
        assert db.in_transaction is False

    @pytest.mark.asyncio
    async def test_db_error_rolls_back(self, directory: SqliteAccountDirectory, db: SQLiteAdapter) -> None:
        """append 실패(DB 오류) 시 앞선 잔액 변경도 롤백"""
        async with db.transaction():
            await db.execute("ALTER TABLE transactions RENAME TO transactions_moved")

        with pytest.raises(StorageError):
            async with SqliteUnitOfWork(db) as uow:
                await uow.wallets.apply_delta("alice", Decimal("-10"), Decimal("100"))
                await uow.ledger.append(NewTransaction.withdrawal("alice", Decimal("10"), "USD"))

        assert await SqliteWalletStore(db).get_balance("alice") == Decimal("100.00")
        assert db.in_transaction is False
