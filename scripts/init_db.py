"""
Ledger DB 초기화

스키마를 생성하고, 옵션으로 계정/지갑을 등록.

사용법:
    python -m scripts.init_db
    python -m scripts.init_db --db data/walletledger.db --register alice@example.com --balance 100
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.account_directory import SqliteAccountDirectory
from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.config.loader import get_settings
from core.constants import Money
from core.domain.errors import InvalidAmount
from core.domain.models import parse_amount
from core.logging import setup_logging

logger = logging.getLogger(__name__)


def opening_balance(value: str) -> Decimal:
    """--balance 인자 변환 (0 또는 유효한 금액)"""
    try:
        if Decimal(value.strip() or "0") == 0:
            return Money.ZERO
        return parse_amount(value)
    except (InvalidOperation, InvalidAmount) as e:
        raise argparse.ArgumentTypeError(f"잘못된 시작 잔액: {value!r}") from e


async def main(
    db_path: Path,
    email: str | None,
    currency: str,
    balance: Decimal,
) -> None:
    """초기화 실행

    Args:
        db_path: DB 파일 경로
        email: 등록할 계정 이메일 (None이면 스키마만 생성)
        currency: 지갑 통화
        balance: 시작 잔액
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    async with SQLiteAdapter(db_path) as db:
        await init_schema(db)
        logger.info(f"스키마 준비 완료: {db_path}")

        if email is None:
            return

        directory = SqliteAccountDirectory(db)
        account, wallet = await directory.register(email, currency, balance)
        logger.info(f"계정 등록: {account.email} ({account.account_id})")
        print(f"account_id: {account.account_id}")
        print(f"balance:    {wallet.balance} {wallet.currency}")


if __name__ == "__main__":
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Ledger DB 초기화")
    parser.add_argument(
        "--db",
        type=Path,
        default=settings.db_path,
        help="DB 파일 경로 (기본: config/ledger.yaml의 database.path)",
    )
    parser.add_argument("--register", metavar="EMAIL", help="등록할 계정 이메일")
    parser.add_argument(
        "--currency",
        default=settings.engine.default_currency,
        help="지갑 통화",
    )
    parser.add_argument(
        "--balance",
        type=opening_balance,
        default=Money.ZERO,
        help="시작 잔액 (0 이상)",
    )
    args = parser.parse_args()

    setup_logging("init_db")

    asyncio.run(main(args.db, args.register, args.currency.upper(), args.balance))
