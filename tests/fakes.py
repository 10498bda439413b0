"""In-memory stand-ins for the ledger and the payment gateway."""

from datetime import UTC, datetime
from decimal import Decimal

from hivepay.services.amounts import NaiAmount
from hivepay.services.entities import Payment, PaymentBatch
from hivepay.services.errors import HistorySourceError, RatioSourceError
from hivepay.services.schemas.chain import (
    AccountBalance,
    DelegationEvent,
    GlobalRatio,
    RewardEvent,
)
from hivepay.services.schemas.results import BatchResult

ACCOUNT: str = "aliento"
RATIO: Decimal = Decimal("0.0005")
NOW: datetime = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def vests_for_hp(hp: Decimal | int | str, ratio: Decimal = RATIO) -> NaiAmount:
    """NAI-encoded VESTS that convert to exactly ``hp`` under ``ratio``."""
    vests: Decimal = Decimal(str(hp)) / ratio
    return NaiAmount(str(int(vests * 10**6)), 6, "@@000000037")


def delegation(
    delegator: str,
    hp: Decimal | int | str,
    block: int,
    timestamp: datetime,
    delegatee: str = ACCOUNT,
) -> DelegationEvent:
    return DelegationEvent(
        delegator=delegator,
        delegatee=delegatee,
        staked_amount=vests_for_hp(hp),
        block_number=block,
        timestamp=timestamp,
        tx_id=f"tx-{delegator}-{block}",
        operation_id=f"op-{delegator}-{block}",
    )


def reward(op_id: str, hp: Decimal | int | str, timestamp: datetime) -> RewardEvent:
    return RewardEvent(
        operation_id=op_id,
        curator=ACCOUNT,
        reward=vests_for_hp(hp),
        block_number=1,
        timestamp=timestamp,
    )


class FakeLedger:
    def __init__(
        self,
        delegations: list[DelegationEvent] | None = None,
        rewards: list[RewardEvent] | None = None,
        ratio: Decimal = RATIO,
        balances: dict[str, AccountBalance] | None = None,
    ) -> None:
        self.delegations: list[DelegationEvent] = delegations or []
        self.rewards: list[RewardEvent] = rewards or []
        self.ratio: Decimal = ratio
        self.balances: dict[str, AccountBalance] = balances or {}
        self.fail_ratio: bool = False
        self.fail_history: bool = False
        self.ratio_calls: int = 0
        self.delegation_calls: int = 0
        self.reward_calls: int = 0

    async def fetch_global_ratio(self) -> GlobalRatio:
        self.ratio_calls += 1
        if self.fail_ratio:
            raise RatioSourceError("node unreachable")
        shares: Decimal = Decimal("1000000")
        return GlobalRatio(
            numerator_total=shares * self.ratio,
            denominator_total=shares,
            ratio=self.ratio,
            cached_at=0.0,
        )

    async def fetch_delegation_events(
        self, account: str, until: datetime | None = None
    ) -> list[DelegationEvent]:
        self.delegation_calls += 1
        if self.fail_history:
            raise HistorySourceError("history unreachable")
        return [e for e in self.delegations if until is None or e.timestamp <= until]

    async def fetch_reward_events(
        self, account: str, since: datetime, until: datetime | None = None
    ) -> list[RewardEvent]:
        self.reward_calls += 1
        if self.fail_history:
            raise HistorySourceError("history unreachable")
        return [
            e for e in self.rewards if e.timestamp >= since and (until is None or e.timestamp <= until)
        ]

    async def get_balance(self, account: str) -> AccountBalance:
        return self.balances.get(account, AccountBalance(account, Decimal(0), Decimal(0)))


class FakeGateway:
    """Replays scripted batch results; an Exception entry is raised instead."""

    def __init__(
        self,
        results: list[BatchResult | Exception] | None = None,
        available: bool = True,
        balance: AccountBalance | None = None,
        fee: Decimal = Decimal(0),
    ) -> None:
        self.results: list[BatchResult | Exception] = list(results or [])
        self.available: bool = available
        self.balance: AccountBalance = balance or AccountBalance(ACCOUNT, Decimal(1000), Decimal(50))
        self.fee: Decimal = fee
        self.submitted: list[str] = []

    async def is_available(self) -> bool:
        return self.available

    async def _next(self, item_id: str, count: int) -> BatchResult:
        self.submitted.append(item_id)
        if not self.results:
            return BatchResult(success=True, transaction_id=f"tx-{item_id}", processed_count=count)
        outcome = self.results.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def process_batch(self, batch: PaymentBatch) -> BatchResult:
        return await self._next(batch.id, len(batch.payments))

    async def process_payment(self, payment: Payment) -> BatchResult:
        return await self._next(payment.id, 1)

    async def estimate_fees(self, payment: Payment) -> Decimal:
        return self.fee

    async def get_balance(self, account: str) -> AccountBalance:
        return self.balance
