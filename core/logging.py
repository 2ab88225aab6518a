"""
로깅 설정 유틸리티

Ledger 프로세스(스크립트, 임베딩 애플리케이션)에서 사용하는 공통 로깅 설정.
- 콘솔/파일 모두 같은 포맷 (LedgerFormatter)
- 파일: TimedRotatingFileHandler, 자정마다 교체

로그 호출 시 extra로 넘긴 필드(transaction_id, owner_id, error 등)는
메시지 뒤에 key=value 형태로 붙여 출력.

사용법:
    from core.logging import setup_logging
    setup_logging("ledger")

    logger.warning("거래 플래그", extra={"transaction_id": tx.id})
    # ... | 거래 플래그 | transaction_id=9f1c...
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.constants import Paths


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 7

# 레벨을 WARNING으로 올릴 외부 라이브러리 로거
NOISY_LOGGERS = [
    "aiosqlite",      # 쿼리마다 DEBUG 로그
    "asyncio",
]

# LogRecord 기본 속성 (이 외의 속성은 extra로 전달된 컨텍스트)
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def record_context(record: logging.LogRecord) -> dict[str, object]:
    """extra로 전달된 컨텍스트 필드 추출 (키 이름순)"""
    return {
        key: value
        for key, value in sorted(vars(record).items())
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class LedgerFormatter(logging.Formatter):
    """extra 컨텍스트를 메시지 뒤에 붙이는 Formatter

    예외 traceback보다 앞, 메시지 줄 끝에 붙음.
    """

    def formatMessage(self, record: logging.LogRecord) -> str:
        message = super().formatMessage(record)
        context = record_context(record)
        if not context:
            return message
        fields = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{message} | {fields}"


def _file_handler(log_file: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"  # ledger.log.2026-03-01
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    process_name: str,
    console_level: int = logging.INFO,
    file_level: int = logging.INFO,
    log_dir: Path | None = None,
) -> logging.Logger:
    """루트 로거에 콘솔/파일 핸들러 설정

    다시 호출하면 기존 핸들러를 닫고 교체.

    Args:
        process_name: 로그 파일명 (예: "ledger" → ledger.log)
        console_level: 콘솔 로그 레벨
        file_level: 파일 로그 레벨
        log_dir: 로그 디렉토리 (None이면 Paths.LOGS_DIR)

    Returns:
        설정된 루트 Logger
    """
    log_dir = log_dir or Paths.LOGS_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = get_log_file_path(process_name, log_dir)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(console_level, file_level))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = LedgerFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(_file_handler(log_file, file_level, formatter))

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.info(
        "로깅 초기화 완료",
        extra={"process_name": process_name, "log_file": str(log_file)},
    )
    return root_logger


def get_log_file_path(process_name: str, log_dir: Path | None = None) -> Path:
    """로그 파일 경로 반환"""
    return (log_dir or Paths.LOGS_DIR) / f"{process_name}.log"
