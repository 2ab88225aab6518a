"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
하나의 연결을 여러 코루틴이 공유하므로 트랜잭션은 어댑터 락으로 직렬화.
트랜잭션을 연 Task 외의 코루틴은 커밋/롤백 전까지 대기 (미커밋 데이터 노출 방지).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)


async def create_connection(db_path: Path | str) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로

    Returns:
        aiosqlite 연결 객체
    """
    db_path_str = str(db_path)

    # 디렉토리가 없으면 생성
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path_str)

    # WAL 모드 설정
    await conn.execute("PRAGMA journal_mode=WAL")

    # 동시 접근 설정 (다른 프로세스가 쓰기 락 보유 시 대기)
    await conn.execute("PRAGMA busy_timeout=30000")  # 30초 대기

    # 외래 키 제약 활성화
    await conn.execute("PRAGMA foreign_keys=ON")

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드로 SQLite 연결 관리.
    begin/commit/rollback 및 트랜잭션 컨텍스트 매니저 제공.

    Args:
        db_path: DB 파일 경로

    사용 예시:
    ```python
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()

    async with adapter.transaction():
        await adapter.execute("INSERT INTO ...")

    await adapter.close()
    ```
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """현재 Task가 트랜잭션을 보유 중인지"""
        return self._owner is not None and self._owner is asyncio.current_task()

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path)

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료")

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Not connected to database")
        return self._conn

    @asynccontextmanager
    async def _guard(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 보유 Task는 그대로, 그 외는 락 획득 후 실행"""
        conn = self._require_conn()
        if self.in_transaction:
            yield conn
        else:
            async with self._lock:
                yield conn

    def _release(self) -> None:
        self._owner = None
        self._lock.release()

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행"""
        async with self._guard() as conn:
            if parameters:
                return await conn.execute(sql, parameters)
            return await conn.execute(sql)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        async with self._guard() as conn:
            cursor = await conn.execute(sql, parameters or ())
            return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        async with self._guard() as conn:
            cursor = await conn.execute(sql, parameters or ())
            return list(await cursor.fetchall())

    async def begin(self) -> None:
        """트랜잭션 시작

        어댑터 락을 획득하고 BEGIN IMMEDIATE로 DB 쓰기 락을 선점.
        같은 Task에서 중첩 호출 불가.
        """
        conn = self._require_conn()
        if self.in_transaction:
            raise RuntimeError("Transaction already open in this task")

        await self._lock.acquire()
        self._owner = asyncio.current_task()
        try:
            await conn.execute("BEGIN IMMEDIATE")
        except BaseException:
            self._release()
            raise

    async def commit(self) -> None:
        """커밋 (트랜잭션 보유 시 락 해제)

        커밋 실패 시 락은 유지되므로 호출자가 rollback() 해야 함.
        """
        if self._conn is None:
            return
        await self._conn.commit()
        if self.in_transaction:
            self._release()

    async def rollback(self) -> None:
        """롤백 (트랜잭션 보유 시 락 해제)"""
        if self._conn is None:
            return
        try:
            await self._conn.rollback()
        finally:
            if self.in_transaction:
                self._release()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백.

        사용 예시:
        ```python
        async with adapter.transaction():
            await adapter.execute("UPDATE ...")
            # 성공 시 자동 커밋
        ```
        """
        await self.begin()
        try:
            yield self._require_conn()
            await self.commit()
        except BaseException:
            await self.rollback()
            raise

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[aiosqlite.Connection]:
        """현재 Task의 트랜잭션에 합류, 없으면 새 트랜잭션 시작

        저장소 메서드가 작업 단위 안/밖 어디서 호출되어도 원자적으로 기록되도록 함.
        """
        if self.in_transaction:
            yield self._require_conn()
        else:
            async with self.transaction() as conn:
                yield conn

    async def table_exists(self, table_name: str) -> bool:
        """테이블 존재 여부 확인"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """스키마 초기화 (테이블 생성)

    금액/잔액은 0.01 단위 Decimal 문자열(TEXT)로 저장.
    시각은 마이크로초 포함 UTC ISO 8601 문자열로 저장 (문자열 비교 = 시간 비교).

    Args:
        adapter: 연결된 SQLiteAdapter
    """
    async with adapter.transaction():
        # accounts (외부 생명주기, 수신자 조회용)
        await adapter.execute("""
            CREATE TABLE IF NOT EXISTS accounts (
                account_id   TEXT PRIMARY KEY,
                email        TEXT NOT NULL UNIQUE,
                is_deleted   INTEGER NOT NULL DEFAULT 0,
                created_at   TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)

        # wallets (계정당 1개)
        await adapter.execute("""
            CREATE TABLE IF NOT EXISTS wallets (
                owner_id     TEXT PRIMARY KEY,
                balance      TEXT NOT NULL DEFAULT '0.00',
                currency     TEXT NOT NULL DEFAULT 'USD',
                updated_at   TEXT,
                FOREIGN KEY (owner_id) REFERENCES accounts(account_id)
            )
        """)

        # transactions (append-only, 플래그만 1회 갱신)
        await adapter.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                seq            INTEGER PRIMARY KEY AUTOINCREMENT,
                id             TEXT NOT NULL UNIQUE,
                type           TEXT NOT NULL,
                from_owner_id  TEXT,
                to_owner_id    TEXT,
                amount         TEXT NOT NULL,
                currency       TEXT NOT NULL,
                created_at     TEXT NOT NULL,
                is_flagged     INTEGER NOT NULL DEFAULT 0,
                flag_reason    TEXT,
                is_deleted     INTEGER NOT NULL DEFAULT 0,
                FOREIGN KEY (from_owner_id) REFERENCES accounts(account_id),
                FOREIGN KEY (to_owner_id) REFERENCES accounts(account_id)
            )
        """)

        # 인덱스 생성
        await adapter.execute("""
            CREATE INDEX IF NOT EXISTS ix_transactions_from
            ON transactions(from_owner_id, type, created_at)
        """)

        await adapter.execute("""
            CREATE INDEX IF NOT EXISTS ix_transactions_to
            ON transactions(to_owner_id, created_at)
        """)

        await adapter.execute("""
            CREATE INDEX IF NOT EXISTS ix_transactions_flagged
            ON transactions(is_flagged, created_at)
        """)

    logger.info("스키마 초기화 완료")
