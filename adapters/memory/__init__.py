"""
메모리 어댑터

테스트용 in-process 저장소 구현체 제공.
Protocol 준수하여 SQLite 구현체와 교체 가능.
"""

from adapters.memory.store import (
    InMemoryAccountDirectory,
    InMemoryTransactionLedger,
    InMemoryUnitOfWork,
    InMemoryWalletStore,
    MemoryState,
)

__all__ = [
    "MemoryState",
    "InMemoryWalletStore",
    "InMemoryTransactionLedger",
    "InMemoryAccountDirectory",
    "InMemoryUnitOfWork",
]
