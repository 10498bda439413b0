"""Typed dicts for service-layer return values.

Keeps route-facing methods explicit about their shape instead of returning bare dicts.
"""

import sys

if sys.version_info >= (3, 12):
    from typing import TypedDict
else:
    from typing_extensions import TypedDict

# -- Calculation -----------------------------------------------------------


class DelegatorRowDict(TypedDict):
    delegator: str
    hp: str
    percentage: str
    amount: str
    memo: str
    sourceBlock: int
    sourceTimestamp: str


class DelegationStateDict(TypedDict):
    delegator: str
    hp: str
    vests: str
    lastEventBlock: int
    lastEventTimestamp: str


class DistributionSummaryDict(TypedDict):
    recipientCount: int
    poolAmount: str
    remainingAmount: str
    minimum: str | None
    maximum: str | None
    mean: str | None
    median: str | None
    stddev: str | None
    belowMinimum: list[str]
    excluded: list[str]


class CalculationDict(TypedDict):
    account: str
    delegators: list[DelegatorRowDict]
    totalHP: str
    totalDistributed: str
    cutoffDate: str
    eventsProcessed: int
    realizedReward: str
    percentage: str
    period: str
    summary: DistributionSummaryDict
    states: list[DelegationStateDict]


class CurationStatsDict(TypedDict):
    account: str
    last24h: str
    last7d: str
    last30d: str
    eventCount: int
    fetchedAt: str


# -- Batching --------------------------------------------------------------


# "from" is a keyword, hence the functional form.
TransferOperationBody = TypedDict(
    "TransferOperationBody",
    {"from": str, "to": str, "amount": str, "memo": str},
)


class BatchProgressDict(TypedDict):
    totalBatches: int
    completedBatches: int
    currentBatch: int | None
    processedPayments: int
    failedPayments: int
    remainingPayments: int
    remainingAmount: str
    totalAmount: str


# -- Payments --------------------------------------------------------------


class PaymentHistoryDict(TypedDict):
    payments: list[dict[str, object]]
    total: int
    limit: int
    offset: int
    hasMore: bool


class PaymentStatsDict(TypedDict):
    username: str
    total: int
    byStatus: dict[str, int]
    totalsByCurrency: dict[str, str]
    successRate: str


# -- Health ----------------------------------------------------------------


class DbInfoDict(TypedDict, total=False):
    backend_type: str
    database_url_or_path: str | None
    tables_present: list[str]
    tables_missing: list[str]
    schema_initialized: bool
    error: str
    pid: int
