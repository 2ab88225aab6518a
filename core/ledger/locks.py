"""
지갑 락

지갑(owner_id)별 asyncio.Lock 관리.
여러 지갑을 잠글 때는 owner_id 오름차순으로 획득하여 교착 상태 방지.
"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator


class WalletLocks:
    """지갑별 락 레지스트리

    사용 예시:
    ```python
    locks = WalletLocks()

    # A→B, B→A 이체가 동시에 와도 항상 같은 순서로 잠금
    async with locks.acquire(sender_id, recipient_id):
        ...
    ```
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock

    @staticmethod
    def lock_order(*owner_ids: str) -> list[str]:
        """획득 순서 (중복 제거 후 오름차순)"""
        return sorted(set(owner_ids))

    @asynccontextmanager
    async def acquire(self, *owner_ids: str) -> AsyncIterator[None]:
        """지정한 지갑 락을 모두 획득

        획득 순서는 호출 인자 순서와 무관하게 owner_id 오름차순.
        """
        async with AsyncExitStack() as stack:
            for owner_id in self.lock_order(*owner_ids):
                await stack.enter_async_context(self._lock_for(owner_id))
            yield

    def is_locked(self, owner_id: str) -> bool:
        lock = self._locks.get(owner_id)
        return lock is not None and lock.locked()
