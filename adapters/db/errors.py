"""
SQLite 오류 변환

aiosqlite(sqlite3) 예외를 도메인 StorageError로 변환.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

import aiosqlite

from core.domain.errors import StorageError

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """블록 내 DB 오류를 StorageError로 변환

    사용 예시:
    ```python
    with storage_errors("wallet.apply_delta"):
        await self.db.execute("UPDATE ...")
    ```
    """
    try:
        yield
    except aiosqlite.Error as e:
        logger.error(
            "DB 작업 실패",
            extra={"operation": operation, "error": str(e)},
        )
        raise StorageError(f"{operation} failed: {e}") from e
