"""
pytest 공통 fixture 정의

시각 고정(FakeClock), 임시 디렉토리, 설정 파일 fixture
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest


class FakeClock:
    """수동으로 진행하는 시계 (Clock callable)"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def base_time() -> datetime:
    """테스트 기준 시각"""
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(base_time: datetime) -> FakeClock:
    """고정 시계 (advance()로 진행)"""
    return FakeClock(base_time)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """테스트용 ledger.yaml 파일 생성"""
    content = """# 테스트용 ledger.yaml
database:
  path: ledger_test.db

engine:
  default_currency: eur
  max_conflict_retries: 5

fraud:
  velocity_window_minutes: 30
  velocity_max_transfers: 3
  large_withdrawal_threshold: "500.50"
  average_window_days: 7
  average_multiplier: 2.5
"""
    config_path = temp_dir / "ledger.yaml"
    config_path.write_text(content, encoding="utf-8")
    return config_path
