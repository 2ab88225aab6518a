"""
지갑 원장 (Wallet Ledger)

입금/출금/이체를 원자적으로 기록하고, 커밋된 거래를 Fraud 규칙으로 판정.

사용 예시:
```python
from adapters.db import SQLiteAdapter, SqliteAccountDirectory, init_schema
from core.ledger import build_sqlite_engine

async with SQLiteAdapter("data/walletledger.db") as db:
    await init_schema(db)
    engine = build_sqlite_engine(db)

    alice, _ = await engine.accounts.register("alice@example.com", "USD")
    await engine.deposit(alice.account_id, "100.00")
    result = await engine.transfer(alice.account_id, "bob@example.com", "25")

    balance = await engine.get_balance(alice.account_id)
    flagged = await engine.get_flagged_transactions()
```
"""

from core.ledger.bootstrap import build_memory_engine, build_sqlite_engine
from core.ledger.engine import LedgerEngine
from core.ledger.fraud import (
    AverageDeviationRule,
    FraudCheckResult,
    FraudDetector,
    FraudRule,
    LargeWithdrawalRule,
    VelocityRule,
)
from core.ledger.locks import WalletLocks

__all__ = [
    # 핵심 클래스
    "LedgerEngine",
    "FraudDetector",
    "WalletLocks",
    # Fraud 규칙
    "FraudRule",
    "FraudCheckResult",
    "VelocityRule",
    "LargeWithdrawalRule",
    "AverageDeviationRule",
    # 조립
    "build_sqlite_engine",
    "build_memory_engine",
]
