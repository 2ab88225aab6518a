"""
Fraud Detector

커밋된 거래를 원장 이력 기준으로 판정하는 규칙 체인.
읽기 전용이며, 플래그 기록은 LedgerEngine 책임.

규칙 우선순위 (첫 매칭 사유 반환):
1. VelocityRule: 1시간 내 송금 5회 이상
2. LargeWithdrawalRule: 1000 초과 출금
3. AverageDeviationRule: 30일 평균의 3배 초과
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from adapters.interfaces import ITransactionLedger
from core.config.loader import FraudConfig
from core.constants import Money
from core.domain.models import Transaction
from core.types import FlagReason, TransactionType

logger = logging.getLogger(__name__)


@dataclass
class FraudCheckResult:
    """Fraud 규칙 판정 결과"""
    flagged: bool
    rule_name: str
    reason: str | None = None
    details: dict[str, Any] | None = None


class FraudRule(ABC):
    """Fraud 규칙 추상 클래스

    모든 Fraud 규칙은 이 클래스를 상속하여 구현.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """규칙 이름"""
        pass

    @abstractmethod
    async def evaluate(
        self,
        actor_id: str,
        transaction: Transaction,
        now: datetime,
        ledger: ITransactionLedger,
    ) -> FraudCheckResult:
        """판정

        Args:
            actor_id: 행위자 (출금/이체는 송금자, 입금은 수취인)
            transaction: 커밋된 거래
            now: 판정 기준 시각 (윈도우 끝)
            ledger: 이력 조회용 원장 (읽기만 사용)

        Returns:
            FraudCheckResult
        """
        pass

    def applies_to(self, tx_type: TransactionType) -> bool:
        """해당 거래 유형에 적용되는지 여부"""
        return True  # 기본: 모든 거래에 적용


class VelocityRule(FraudRule):
    """단시간 다회 송금 규칙

    윈도우 [now - window, now] 안에서 actor가 송금한 TRANSFER 수가
    max_transfers 이상이면 플래그. 방금 커밋된 거래도 포함.
    """

    def __init__(self, config: FraudConfig):
        self.config = config

    @property
    def name(self) -> str:
        return "Velocity"

    def applies_to(self, tx_type: TransactionType) -> bool:
        return tx_type == TransactionType.TRANSFER

    async def evaluate(
        self,
        actor_id: str,
        transaction: Transaction,
        now: datetime,
        ledger: ITransactionLedger,
    ) -> FraudCheckResult:
        recent = await ledger.find_by_actor_and_type(
            actor_id,
            TransactionType.TRANSFER,
            since=now - self.config.velocity_window,
            until=now,
        )

        if len(recent) >= self.config.velocity_max_transfers:
            return FraudCheckResult(
                flagged=True,
                rule_name=self.name,
                reason=FlagReason.VELOCITY.value,
                details={
                    "transfer_count": len(recent),
                    "max_transfers": self.config.velocity_max_transfers,
                },
            )

        return FraudCheckResult(flagged=False, rule_name=self.name)


class LargeWithdrawalRule(FraudRule):
    """고액 출금 규칙 (임계값 초과, 같은 통화 단위)"""

    def __init__(self, config: FraudConfig):
        self.config = config

    @property
    def name(self) -> str:
        return "LargeWithdrawal"

    def applies_to(self, tx_type: TransactionType) -> bool:
        return tx_type == TransactionType.WITHDRAWAL

    async def evaluate(
        self,
        actor_id: str,
        transaction: Transaction,
        now: datetime,
        ledger: ITransactionLedger,
    ) -> FraudCheckResult:
        threshold = self.config.large_withdrawal_threshold

        if transaction.amount > threshold:
            return FraudCheckResult(
                flagged=True,
                rule_name=self.name,
                reason=FlagReason.LARGE_WITHDRAWAL.value,
                details={"amount": str(transaction.amount), "threshold": str(threshold)},
            )

        return FraudCheckResult(flagged=False, rule_name=self.name)


class AverageDeviationRule(FraudRule):
    """평균 대비 이상 금액 규칙

    윈도우 [now - window, now] 안에서 actor가 관여한(from 또는 to) 거래의
    산술 평균 금액 × multiplier를 초과하면 플래그. 이력이 없으면 통과.
    """

    def __init__(self, config: FraudConfig):
        self.config = config

    @property
    def name(self) -> str:
        return "AverageDeviation"

    async def evaluate(
        self,
        actor_id: str,
        transaction: Transaction,
        now: datetime,
        ledger: ITransactionLedger,
    ) -> FraudCheckResult:
        history = await ledger.find_by_actor(
            actor_id,
            since=now - self.config.average_window,
            until=now,
        )

        if not history:
            return FraudCheckResult(
                flagged=False,
                rule_name=self.name,
                reason="No history in window",
            )

        total = sum((tx.amount for tx in history), Money.ZERO)
        average = total / len(history)
        limit = average * self.config.average_multiplier

        if transaction.amount > limit:
            return FraudCheckResult(
                flagged=True,
                rule_name=self.name,
                reason=FlagReason.ABOVE_AVERAGE.value,
                details={
                    "amount": str(transaction.amount),
                    "average": str(average),
                    "sample_size": len(history),
                },
            )

        return FraudCheckResult(flagged=False, rule_name=self.name)


class FraudDetector:
    """Fraud Detector

    규칙을 고정 순서로 평가하고 첫 번째로 매칭된 사유를 반환.
    상태를 변경하지 않음.

    Args:
        ledger: 이력 조회용 원장
        config: 임계값 설정
        rules: 규칙 목록 (None이면 기본 3개 규칙)

    사용 예시:
    ```python
    detector = FraudDetector(ledger, FraudConfig())
    reason = await detector.classify(actor_id, tx, now)
    if reason:
        await ledger.set_flag(tx.id, reason)
    ```
    """

    def __init__(
        self,
        ledger: ITransactionLedger,
        config: FraudConfig | None = None,
        rules: list[FraudRule] | None = None,
    ):
        self.ledger = ledger
        self.config = config or FraudConfig()
        self._rules: list[FraudRule] = rules if rules is not None else self.default_rules(self.config)

    @staticmethod
    def default_rules(config: FraudConfig) -> list[FraudRule]:
        """기본 규칙 (우선순위 순)"""
        return [
            VelocityRule(config),
            LargeWithdrawalRule(config),
            AverageDeviationRule(config),
        ]

    @property
    def rules(self) -> list[FraudRule]:
        return list(self._rules)

    async def classify(
        self,
        actor_id: str,
        transaction: Transaction,
        now: datetime,
    ) -> str | None:
        """커밋된 거래 판정

        Args:
            actor_id: 행위자
            transaction: 커밋된 거래
            now: 판정 기준 시각

        Returns:
            플래그 사유 또는 None
        """
        for rule in self._rules:
            if not rule.applies_to(transaction.type):
                continue

            result = await rule.evaluate(actor_id, transaction, now, self.ledger)
            if result.flagged:
                logger.info(
                    f"Fraud rule matched: {rule.name} - {result.reason}",
                    extra={
                        "transaction_id": transaction.id,
                        "actor_id": actor_id,
                        "details": result.details,
                    },
                )
                return result.reason

        return None
