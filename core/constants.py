"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → walletledger/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    CURRENCY: str = "USD"
    MAX_CONFLICT_RETRIES: int = 3


class Money:
    """금액 표현 규칙

    모든 금액은 Decimal, 소수점 이하 2자리 (minor unit = 0.01)
    """

    AMOUNT_DECIMALS: int = 2
    QUANT: Decimal = Decimal("0.01")
    ZERO: Decimal = Decimal("0.00")


class FraudDefaults:
    """Fraud 규칙 기본 임계값 (config/ledger.yaml에서 변경 가능)"""

    VELOCITY_WINDOW_MINUTES: int = 60
    VELOCITY_MAX_TRANSFERS: int = 5
    LARGE_WITHDRAWAL_THRESHOLD: Decimal = Decimal("1000")
    AVERAGE_WINDOW_DAYS: int = 30
    AVERAGE_MULTIPLIER: Decimal = Decimal("3")


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    CONFIG_FILE: Path = CONFIG_DIR / "ledger.yaml"

    # DB 파일
    DEFAULT_DB: Path = DATA_DIR / "walletledger.db"
