"""Calculation use case: history -> active delegations -> pool -> payments."""

from collections.abc import Callable, Mapping
from datetime import datetime
from decimal import Decimal

import structlog

from config import PayoutSettings, get_settings
from db.enums import EmptyPolicy
from hivepay.services._helpers import round_amount, utc_now
from hivepay.services._types import (
    CalculationDict,
    CurationStatsDict,
    DelegationStateDict,
    DelegatorRowDict,
    DistributionSummaryDict,
)
from hivepay.services.converter import UnitConverter
from hivepay.services.delegations import calculate_cutoff_date, resolve_active_delegations
from hivepay.services.distribution import MAX_POOL_AMOUNT, DistributionFilters, distribute
from hivepay.services.entities import curation_memo
from hivepay.services.errors import CalculationOverflowError, InsufficientDataError
from hivepay.services.percentage import (
    HUNDRED,
    PercentageConfig,
    PercentageFn,
    compute_percentage,
    get_percentage_strategy,
)
from hivepay.services.ports import HistorySource
from hivepay.services.rewards import RewardAggregator
from hivepay.services.schemas.chain import DelegationEvent, DelegationState
from hivepay.services.schemas.results import (
    CalculationOutput,
    CurationStats,
    DistributionResult,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def size_pool(
    filters: DistributionFilters,
    realized_reward: Decimal,
    percentage: Decimal,
    retained_percentage: Decimal = Decimal(0),
) -> Decimal:
    """An explicit pool wins (minus the retained share); otherwise a percentage of the reward."""
    if filters.explicit_pool_value is not None:
        pool: Decimal = filters.explicit_pool_value * (HUNDRED - retained_percentage) / HUNDRED
    else:
        pool = realized_reward * percentage / HUNDRED
    pool = round_amount(pool)
    if pool > MAX_POOL_AMOUNT:
        raise CalculationOverflowError(f"pool amount {pool} exceeds {MAX_POOL_AMOUNT}")
    return pool


class DistributionCalculator:
    """Composes the resolver, aggregator, percentage strategy and distribution engine."""

    def __init__(
        self,
        history: HistorySource,
        converter: UnitConverter,
        rewards: RewardAggregator,
        percentage_config: PercentageConfig | None = None,
        percentage_strategy: PercentageFn | None = None,
        payout: PayoutSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.history: HistorySource = history
        self.converter: UnitConverter = converter
        self.rewards: RewardAggregator = rewards
        self.payout: PayoutSettings = payout or get_settings().payout
        self.percentage_config: PercentageConfig = percentage_config or PercentageConfig(
            self.payout.base_percentage, self.payout.min_percentage, self.payout.max_percentage
        )
        self.percentage_strategy: PercentageFn = percentage_strategy or get_percentage_strategy(
            self.payout.percentage_strategy, self.payout.graded_reference_reward
        )
        self._clock: Callable[[], datetime] = clock or utc_now

    async def _pool_inputs(
        self, account: str, filters: DistributionFilters
    ) -> tuple[Decimal, Decimal]:
        if filters.explicit_pool_value is not None:
            # Reward history is not needed to size an explicit pool.
            return Decimal(0), self.percentage_config.base
        realized: Decimal = await self.rewards.aggregate_rewards(account, filters.period)
        percentage: Decimal = compute_percentage(
            realized, self.percentage_config, self.percentage_strategy
        )
        return realized, percentage

    async def calculate(
        self,
        account: str,
        filters: DistributionFilters,
        on_empty: EmptyPolicy = EmptyPolicy.RETURN_EMPTY,
    ) -> CalculationOutput:
        filters.validate()
        key: str = account.lower()
        cutoff: datetime = calculate_cutoff_date(filters.lookback_days, self._clock())

        events: list[DelegationEvent] = await self.history.fetch_delegation_events(key)
        states: dict[str, DelegationState] = await resolve_active_delegations(
            events, key, self.converter, as_of=cutoff
        )

        realized, percentage = await self._pool_inputs(key, filters)
        distribution: DistributionResult = self._distribute(
            states, filters, filters.period, realized, percentage, on_empty
        )
        output = CalculationOutput(
            account=key,
            cutoff_date=cutoff,
            events_processed=len(events),
            realized_reward=realized,
            percentage=percentage,
            period=filters.period,
            states=states,
            distribution=distribution,
        )
        logger.info(
            "Distribution calculated",
            account=key,
            cutoff=cutoff.date().isoformat(),
            events=len(events),
            active=len(states),
            recipients=distribution.recipient_count,
            pool=str(distribution.pool_amount),
            percentage=str(percentage),
        )
        return output

    def recalculate(
        self,
        previous: CalculationOutput,
        filters: DistributionFilters,
        on_empty: EmptyPolicy = EmptyPolicy.RETURN_EMPTY,
    ) -> CalculationOutput:
        """Re-filter already resolved states; touches no data source.

        Minimum HP, exclusions and an explicit pool may change. The reward
        period and its percentage stay those of ``previous``.
        """
        filters.validate()
        return CalculationOutput(
            account=previous.account,
            cutoff_date=previous.cutoff_date,
            events_processed=previous.events_processed,
            realized_reward=previous.realized_reward,
            percentage=previous.percentage,
            period=previous.period,
            states=previous.states,
            distribution=self._distribute(
                previous.states,
                filters,
                previous.period,
                previous.realized_reward,
                previous.percentage,
                on_empty,
            ),
        )

    def _distribute(
        self,
        states: Mapping[str, DelegationState],
        filters: DistributionFilters,
        period: str,
        realized: Decimal,
        percentage: Decimal,
        on_empty: EmptyPolicy,
    ) -> DistributionResult:
        pool: Decimal = size_pool(filters, realized, percentage, self.payout.retained_percentage)
        memo: str = curation_memo(period, percentage, self.payout.memo_template)
        return distribute(states, filters, pool, on_empty=on_empty, memo=memo)


# -- Serialization ---------------------------------------------------------


def _opt(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def state_to_dict(state: DelegationState) -> DelegationStateDict:
    return DelegationStateDict(
        delegator=state.delegator,
        hp=str(state.hp),
        vests=str(state.vests),
        lastEventBlock=state.last_event_block,
        lastEventTimestamp=state.last_event_timestamp.isoformat(),
    )


def stats_to_dict(stats: CurationStats) -> CurationStatsDict:
    return CurationStatsDict(
        account=stats.account,
        last24h=str(round_amount(stats.last_24h)),
        last7d=str(round_amount(stats.last_7d)),
        last30d=str(round_amount(stats.last_30d)),
        eventCount=stats.event_count,
        fetchedAt=stats.fetched_at.isoformat(),
    )


def calculation_to_dict(output: CalculationOutput) -> CalculationDict:
    result: DistributionResult | None = output.distribution
    if result is None:
        raise InsufficientDataError(f"No distribution computed for {output.account}")
    rows: list[DelegatorRowDict] = []
    for p in result.payments:
        state: DelegationState = output.states[p.recipient]
        rows.append(
            DelegatorRowDict(
                delegator=p.recipient,
                hp=str(round_amount(p.weight_hp)),
                percentage=f"{p.percentage_of_total:.2f}",
                amount=f"{p.amount:.3f}",
                memo=p.memo,
                sourceBlock=state.last_event_block,
                sourceTimestamp=state.last_event_timestamp.isoformat(),
            )
        )
    stats = result.stats
    summary = DistributionSummaryDict(
        recipientCount=result.recipient_count,
        poolAmount=f"{result.pool_amount:.3f}",
        remainingAmount=f"{result.remaining_amount:.3f}",
        minimum=_opt(stats.minimum if stats else None),
        maximum=_opt(stats.maximum if stats else None),
        mean=_opt(stats.mean if stats else None),
        median=_opt(stats.median if stats else None),
        stddev=_opt(stats.stddev if stats else None),
        belowMinimum=result.below_minimum,
        excluded=result.excluded,
    )
    return CalculationDict(
        account=output.account,
        delegators=rows,
        totalHP=str(round_amount(result.total_hp)),
        totalDistributed=f"{result.total_distributed:.3f}",
        cutoffDate=output.cutoff_date.date().isoformat(),
        eventsProcessed=output.events_processed,
        realizedReward=str(round_amount(output.realized_reward)),
        percentage=f"{output.percentage:.2f}",
        period=output.period,
        summary=summary,
        states=[state_to_dict(s) for s in output.states.values()],
    )
