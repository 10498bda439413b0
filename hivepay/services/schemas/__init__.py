"""Shared dataclasses for hivepay services."""

from hivepay.services.schemas.chain import (
    AccountBalance,
    DelegationEvent,
    DelegationState,
    GlobalRatio,
    RewardEvent,
)
from hivepay.services.schemas.results import (
    BatchOutcome,
    BatchResult,
    CalculatedPayment,
    CalculationOutput,
    CurationStats,
    DistributionResult,
    DistributionStats,
    ExecutionReport,
)

__all__ = [
    # Chain schemas
    "AccountBalance",
    "DelegationEvent",
    "DelegationState",
    "GlobalRatio",
    "RewardEvent",
    # Result schemas
    "BatchOutcome",
    "BatchResult",
    "CalculatedPayment",
    "CalculationOutput",
    "CurationStats",
    "DistributionResult",
    "DistributionStats",
    "ExecutionReport",
]
