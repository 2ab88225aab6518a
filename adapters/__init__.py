"""
어댑터 레이어

저장소(SQLite, 메모리)와의 연동을 담당.
Protocol 기반 인터페이스로 구현체 교체 가능.
"""

from adapters.interfaces import (
    IAccountDirectory,
    ITransactionLedger,
    IUnitOfWork,
    IWalletStore,
)

__all__ = [
    # Interfaces
    "IWalletStore",
    "ITransactionLedger",
    "IAccountDirectory",
    "IUnitOfWork",
]
