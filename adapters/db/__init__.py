"""
데이터베이스 어댑터

SQLite WAL 모드 연결 관리 및 Ledger 저장소 구현.
"""

from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    create_connection,
    init_schema,
)
from adapters.db.account_directory import SqliteAccountDirectory
from adapters.db.transaction_ledger import SqliteTransactionLedger
from adapters.db.unit_of_work import SqliteUnitOfWork
from adapters.db.wallet_store import SqliteWalletStore

__all__ = [
    "SQLiteAdapter",
    "create_connection",
    "init_schema",
    "SqliteAccountDirectory",
    "SqliteTransactionLedger",
    "SqliteUnitOfWork",
    "SqliteWalletStore",
]
