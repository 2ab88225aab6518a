"""
설정 로더

config/ledger.yaml 로드 및 Ledger 설정 생성
"""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from core.constants import PROJECT_ROOT, Defaults, FraudDefaults, Paths


@dataclass(frozen=True)
class FraudConfig:
    """Fraud 규칙 임계값

    불변 데이터 구조로 설정 변경 방지
    """

    velocity_window_minutes: int = FraudDefaults.VELOCITY_WINDOW_MINUTES
    velocity_max_transfers: int = FraudDefaults.VELOCITY_MAX_TRANSFERS
    large_withdrawal_threshold: Decimal = FraudDefaults.LARGE_WITHDRAWAL_THRESHOLD
    average_window_days: int = FraudDefaults.AVERAGE_WINDOW_DAYS
    average_multiplier: Decimal = FraudDefaults.AVERAGE_MULTIPLIER

    @property
    def velocity_window(self) -> timedelta:
        return timedelta(minutes=self.velocity_window_minutes)

    @property
    def average_window(self) -> timedelta:
        return timedelta(days=self.average_window_days)


@dataclass(frozen=True)
class EngineConfig:
    """LedgerEngine 동작 설정"""

    default_currency: str = Defaults.CURRENCY
    max_conflict_retries: int = Defaults.MAX_CONFLICT_RETRIES


@dataclass(frozen=True)
class LedgerConfig:
    """전체 설정"""

    db_path: Path = Paths.DEFAULT_DB
    engine: EngineConfig = field(default_factory=EngineConfig)
    fraud: FraudConfig = field(default_factory=FraudConfig)


class ConfigLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def _positive_int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigLoadError(f"'{key}'는 양의 정수여야 합니다: {value!r}")
    return value


def _positive_decimal(section: dict[str, Any], key: str, default: Decimal) -> Decimal:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigLoadError(f"'{key}'는 양수여야 합니다: {value!r}")
    try:
        # float는 str 경유 (Decimal 정밀도 보존)
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigLoadError(f"'{key}'는 숫자여야 합니다: {value!r}") from e
    if not result.is_finite() or result <= 0:
        raise ConfigLoadError(f"'{key}'는 양수여야 합니다: {value!r}")
    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigLoadError(f"'{name}' 섹션은 매핑이어야 합니다")
    return section


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """YAML 파싱 결과(dict)를 LedgerConfig로 변환

    Args:
        data: yaml.safe_load 결과

    Returns:
        LedgerConfig 인스턴스

    Raises:
        ConfigLoadError: 값이 유효하지 않은 경우
    """
    database = _section(data, "database")
    engine = _section(data, "engine")
    fraud = _section(data, "fraud")

    db_path = Paths.DEFAULT_DB
    if database.get("path"):
        db_path = Path(database["path"])
        if not db_path.is_absolute():
            db_path = PROJECT_ROOT / db_path

    currency = engine.get("default_currency", Defaults.CURRENCY)
    if not isinstance(currency, str) or not currency.strip():
        raise ConfigLoadError(f"'default_currency'는 통화 코드여야 합니다: {currency!r}")

    retries = engine.get("max_conflict_retries", Defaults.MAX_CONFLICT_RETRIES)
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
        raise ConfigLoadError(f"'max_conflict_retries'는 0 이상 정수여야 합니다: {retries!r}")

    return LedgerConfig(
        db_path=db_path,
        engine=EngineConfig(
            default_currency=currency.strip().upper(),
            max_conflict_retries=retries,
        ),
        fraud=FraudConfig(
            velocity_window_minutes=_positive_int(
                fraud, "velocity_window_minutes", FraudDefaults.VELOCITY_WINDOW_MINUTES
            ),
            velocity_max_transfers=_positive_int(
                fraud, "velocity_max_transfers", FraudDefaults.VELOCITY_MAX_TRANSFERS
            ),
            large_withdrawal_threshold=_positive_decimal(
                fraud, "large_withdrawal_threshold", FraudDefaults.LARGE_WITHDRAWAL_THRESHOLD
            ),
            average_window_days=_positive_int(
                fraud, "average_window_days", FraudDefaults.AVERAGE_WINDOW_DAYS
            ),
            average_multiplier=_positive_decimal(
                fraud, "average_multiplier", FraudDefaults.AVERAGE_MULTIPLIER
            ),
        ),
    )


def load_config(path: Path | None = None) -> LedgerConfig:
    """ledger.yaml 파일 로드

    Args:
        path: 설정 파일 경로 (None이면 기본 경로, 기본 파일이 없으면 기본값 사용)

    Returns:
        LedgerConfig 인스턴스

    Raises:
        ConfigLoadError: 명시한 파일이 없거나 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.CONFIG_FILE
        if not path.exists():
            return LedgerConfig()
    elif not path.exists():
        raise ConfigLoadError(f"설정 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"설정 파일 파싱 실패: {e}") from e

    if data is None:
        return LedgerConfig()
    if not isinstance(data, dict):
        raise ConfigLoadError("설정 파일 최상위는 매핑이어야 합니다")

    return parse_config(data)


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    ledger.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _config: LedgerConfig | None = None

    def __new__(cls, config_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_path: Path | None = None) -> None:
        if self._config is None:
            type(self)._config = load_config(config_path)

    @property
    def config(self) -> LedgerConfig:
        assert self._config is not None
        return self._config

    @property
    def db_path(self) -> Path:
        """DB 파일 경로"""
        return self.config.db_path

    @property
    def fraud(self) -> FraudConfig:
        """Fraud 임계값"""
        return self.config.fraud

    @property
    def engine(self) -> EngineConfig:
        """엔진 설정"""
        return self.config.engine

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._config = None


def get_settings(config_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        config_path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(config_path)
