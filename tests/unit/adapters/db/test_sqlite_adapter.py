"""
SQLite 어댑터 테스트

SQLiteAdapter 및 관련 함수 테스트.
"""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    create_connection,
    init_schema,
)


class TestCreateConnection:
    """create_connection 테스트"""

    @pytest.mark.asyncio
    async def test_create_connection(self, tmp_path: Path) -> None:
        """연결 생성"""
        db_path = tmp_path / "test.db"

        conn = await create_connection(db_path)

        assert conn is not None

        # WAL 모드 확인
        cursor = await conn.execute("PRAGMA journal_mode")
        row = await cursor.fetchone()
        assert row[0].upper() == "WAL"

        await conn.close()

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """부모 디렉토리 생성"""
        db_path = tmp_path / "subdir" / "test.db"

        conn = await create_connection(db_path)

        assert db_path.parent.exists()

        await conn.close()


class TestSQLiteAdapter:
    """SQLiteAdapter 테스트"""

    @pytest_asyncio.fixture
    async def adapter(self, tmp_path: Path) -> SQLiteAdapter:
        """어댑터 픽스처"""
        db_path = tmp_path / "test.db"
        adapter = SQLiteAdapter(db_path)
        await adapter.connect()
        yield adapter
        await adapter.close()

    @pytest.mark.asyncio
    async def test_connect_and_close(self, tmp_path: Path) -> None:
        """연결 및 종료"""
        db_path = tmp_path / "test.db"
        adapter = SQLiteAdapter(db_path)

        assert adapter.is_connected is False

        await adapter.connect()
        assert adapter.is_connected is True

        await adapter.close()
        assert adapter.is_connected is False

    @pytest.mark.asyncio
    async def test_not_connected(self, tmp_path: Path) -> None:
        adapter = SQLiteAdapter(tmp_path / "test.db")

        with pytest.raises(RuntimeError):
            await adapter.fetchone("SELECT 1")

    @pytest.mark.asyncio
    async def test_transaction_commit(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 커밋"""
        async with adapter.transaction():
            await adapter.execute("CREATE TABLE tx_test (id INTEGER)")

        async with adapter.transaction():
            await adapter.execute("INSERT INTO tx_test (id) VALUES (1)")
            await adapter.execute("INSERT INTO tx_test (id) VALUES (2)")

        rows = await adapter.fetchall("SELECT id FROM tx_test ORDER BY id")
        assert rows == [(1,), (2,)]
        assert adapter.in_transaction is False

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 롤백"""
        async with adapter.transaction():
            await adapter.execute("CREATE TABLE tx_test2 (id INTEGER)")

        with pytest.raises(ValueError):
            async with adapter.transaction():
                await adapter.execute("INSERT INTO tx_test2 (id) VALUES (1)")
                raise ValueError("의도적 에러")

        rows = await adapter.fetchall("SELECT id FROM tx_test2")
        assert len(rows) == 0
        assert adapter.in_transaction is False

    @pytest.mark.asyncio
    async def test_nested_begin_rejected(self, adapter: SQLiteAdapter) -> None:
        await adapter.begin()
        try:
            with pytest.raises(RuntimeError):
                await adapter.begin()
        finally:
            await adapter.rollback()

    @pytest.mark.asyncio
    async def test_atomic_joins_open_transaction(self, adapter: SQLiteAdapter) -> None:
        """atomic()은 열린 트랜잭션에 합류하여 함께 롤백"""
        async with adapter.transaction():
            await adapter.execute("CREATE TABLE joined (id INTEGER)")

        await adapter.begin()
        async with adapter.atomic():
            await adapter.execute("INSERT INTO joined (id) VALUES (1)")
        assert adapter.in_transaction is True
        await adapter.rollback()

        assert await adapter.fetchall("SELECT id FROM joined") == []

    @pytest.mark.asyncio
    async def test_atomic_opens_own_transaction(self, adapter: SQLiteAdapter) -> None:
        async with adapter.transaction():
            await adapter.execute("CREATE TABLE standalone (id INTEGER)")

        async with adapter.atomic():
            await adapter.execute("INSERT INTO standalone (id) VALUES (1)")

        assert adapter.in_transaction is False
        assert await adapter.fetchall("SELECT id FROM standalone") == [(1,)]

    @pytest.mark.asyncio
    async def test_other_task_waits_for_commit(self, adapter: SQLiteAdapter) -> None:
        """다른 Task는 미커밋 데이터를 보지 못하고 커밋 후 조회"""
        async with adapter.transaction():
            await adapter.execute("CREATE TABLE isolated (id INTEGER)")

        await adapter.begin()
        await adapter.execute("INSERT INTO isolated (id) VALUES (1)")

        reader = asyncio.create_task(adapter.fetchall("SELECT id FROM isolated"))
        await asyncio.sleep(0.01)
        assert not reader.done()

        await adapter.rollback()
        assert await reader == []

    @pytest.mark.asyncio
    async def test_table_exists(self, adapter: SQLiteAdapter) -> None:
        """테이블 존재 확인"""
        assert await adapter.table_exists("nonexistent") is False

        async with adapter.transaction():
            await adapter.execute("CREATE TABLE existing (id INTEGER)")

        assert await adapter.table_exists("existing") is True

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path: Path) -> None:
        """컨텍스트 매니저"""
        db_path = tmp_path / "ctx_test.db"

        async with SQLiteAdapter(db_path) as adapter:
            assert adapter.is_connected is True

        # 컨텍스트 종료 후 연결 해제 확인
        assert adapter.is_connected is False


class TestInitSchema:
    """init_schema 테스트"""

    @pytest.mark.asyncio
    async def test_init_schema_creates_tables(self, tmp_path: Path) -> None:
        """스키마 초기화 - 테이블 생성"""
        async with SQLiteAdapter(tmp_path / "schema_test.db") as adapter:
            await init_schema(adapter)

            assert await adapter.table_exists("accounts") is True
            assert await adapter.table_exists("wallets") is True
            assert await adapter.table_exists("transactions") is True

    @pytest.mark.asyncio
    async def test_init_schema_idempotent(self, tmp_path: Path) -> None:
        """여러 번 실행해도 안전"""
        async with SQLiteAdapter(tmp_path / "schema_test.db") as adapter:
            await init_schema(adapter)
            await init_schema(adapter)

            assert await adapter.table_exists("transactions") is True

    @pytest.mark.asyncio
    async def test_transactions_columns(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "schema_test.db") as adapter:
            await init_schema(adapter)

            rows = await adapter.fetchall("PRAGMA table_info(transactions)")
            columns = {row[1] for row in rows}

        assert {
            "id",
            "type",
            "from_owner_id",
            "to_owner_id",
            "amount",
            "currency",
            "created_at",
            "is_flagged",
            "flag_reason",
            "is_deleted",
        } <= columns
