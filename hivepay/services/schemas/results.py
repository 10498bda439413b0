"""Result dataclasses returned by service operations."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from db.enums import BatchStatus
from hivepay.services.schemas.chain import DelegationState


@dataclass(frozen=True)
class CalculatedPayment:
    recipient: str
    weight_hp: Decimal
    percentage_of_total: Decimal
    amount: Decimal
    memo: str


@dataclass(frozen=True)
class DistributionStats:
    minimum: Decimal
    maximum: Decimal
    mean: Decimal
    median: Decimal
    stddev: Decimal


@dataclass(frozen=True)
class DistributionResult:
    payments: list[CalculatedPayment]
    total_hp: Decimal
    total_distributed: Decimal
    pool_amount: Decimal
    remaining_amount: Decimal
    stats: DistributionStats | None
    below_minimum: list[str] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)

    @property
    def recipient_count(self) -> int:
        return len(self.payments)


@dataclass(frozen=True)
class CurationStats:
    account: str
    last_24h: Decimal
    last_7d: Decimal
    last_30d: Decimal
    event_count: int
    fetched_at: datetime


@dataclass
class CalculationOutput:
    account: str
    cutoff_date: datetime
    events_processed: int
    realized_reward: Decimal
    percentage: Decimal
    period: str
    states: dict[str, DelegationState]
    distribution: DistributionResult | None = None


@dataclass(frozen=True)
class BatchResult:
    """Outcome reported by the signing/broadcast collaborator for one batch."""

    success: bool
    transaction_id: str | None = None
    processed_count: int = 0
    failed_count: int = 0
    error: str | None = None
    error_code: str | None = None
    block_number: int | None = None


@dataclass(frozen=True)
class BatchOutcome:
    batch_id: str
    status: BatchStatus
    processed_count: int
    failed_count: int
    transaction_id: str | None = None
    error: str | None = None


@dataclass
class ExecutionReport:
    outcomes: list[BatchOutcome]
    processed_count: int
    failed_count: int
    resume_from: int | None

    @property
    def completed(self) -> bool:
        return self.resume_from is None and all(
            o.status is BatchStatus.COMPLETED for o in self.outcomes
        )
