"""
Ledger Bootstrap

저장소 구현체를 조립하여 LedgerEngine 생성.
"""

from adapters.db.account_directory import SqliteAccountDirectory
from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.db.transaction_ledger import SqliteTransactionLedger
from adapters.db.unit_of_work import SqliteUnitOfWork
from adapters.db.wallet_store import SqliteWalletStore
from adapters.memory.store import (
    InMemoryAccountDirectory,
    InMemoryTransactionLedger,
    InMemoryUnitOfWork,
    InMemoryWalletStore,
    MemoryState,
)
from core.config.loader import LedgerConfig
from core.ledger.engine import LedgerEngine
from core.ledger.fraud import FraudDetector
from core.utils.timezone import Clock, now_utc


def build_sqlite_engine(
    db: SQLiteAdapter,
    config: LedgerConfig | None = None,
    clock: Clock = now_utc,
) -> LedgerEngine:
    """SQLite 기반 엔진 생성

    Args:
        db: 연결된 SQLite 어댑터 (init_schema 완료 상태)
        config: 전체 설정 (None이면 기본값)
        clock: 거래 시각/판정 기준 시계
    """
    config = config or LedgerConfig()
    ledger = SqliteTransactionLedger(db, clock)

    return LedgerEngine(
        uow_factory=lambda: SqliteUnitOfWork(db, clock),
        wallets=SqliteWalletStore(db, clock),
        ledger=ledger,
        accounts=SqliteAccountDirectory(db, clock),
        config=config.engine,
        fraud_detector=FraudDetector(ledger, config.fraud),
        clock=clock,
    )


def build_memory_engine(
    state: MemoryState | None = None,
    config: LedgerConfig | None = None,
    clock: Clock = now_utc,
) -> LedgerEngine:
    """메모리 기반 엔진 생성 (테스트/임베딩용)

    계정 등록은 engine.accounts.register() 사용.
    """
    state = state if state is not None else MemoryState()
    config = config or LedgerConfig()
    ledger = InMemoryTransactionLedger(state, clock)

    return LedgerEngine(
        uow_factory=lambda: InMemoryUnitOfWork(state, clock),
        wallets=InMemoryWalletStore(state, clock),
        ledger=ledger,
        accounts=InMemoryAccountDirectory(state, clock),
        config=config.engine,
        fraud_detector=FraudDetector(ledger, config.fraud),
        clock=clock,
    )
