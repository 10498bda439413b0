"""Proportional distribution of a reward pool over delegated HP."""

import statistics
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from db.enums import EmptyPolicy
from hivepay.services._helpers import AMOUNT_QUANTUM, round_amount
from hivepay.services.delegations import MAX_LOOKBACK_DAYS
from hivepay.services.errors import (
    CalculationOverflowError,
    InvalidFiltersError,
    ZeroTotalAmountError,
)
from hivepay.services.rewards import parse_period
from hivepay.services.schemas.chain import DelegationState
from hivepay.services.schemas.results import (
    CalculatedPayment,
    DistributionResult,
    DistributionStats,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

HUNDRED: Decimal = Decimal(100)
MAX_POOL_AMOUNT: Decimal = Decimal(100_000)
MAX_MINIMUM_HP: Decimal = Decimal(10_000)


@dataclass(frozen=True)
class DistributionFilters:
    lookback_days: int = 30
    minimum_hp: Decimal = Decimal(50)
    excluded_delegators: frozenset[str] = field(default_factory=frozenset)
    period: str = "30d"
    explicit_pool_value: Decimal | None = None

    def __post_init__(self) -> None:
        excluded: frozenset[str] = frozenset(
            name.strip().lower() for name in self.excluded_delegators if name and name.strip()
        )
        object.__setattr__(self, "excluded_delegators", excluded)

    @classmethod
    def build(
        cls,
        lookback_days: int = 30,
        minimum_hp: Decimal | int | float | str = 50,
        excluded_delegators: Iterable[str] = (),
        period: str | int = "30d",
        explicit_pool_value: Decimal | int | float | str | None = None,
    ) -> "DistributionFilters":
        """Normalize raw values and validate the result."""
        filters = cls(
            lookback_days=int(lookback_days),
            minimum_hp=Decimal(str(minimum_hp)),
            excluded_delegators=frozenset(excluded_delegators),
            period=parse_period(period).label,
            explicit_pool_value=(
                Decimal(str(explicit_pool_value)) if explicit_pool_value is not None else None
            ),
        )
        filters.validate()
        return filters

    def validate(self) -> None:
        errors: list[str] = []
        if self.lookback_days < 1 or self.lookback_days > MAX_LOOKBACK_DAYS:
            errors.append(f"lookback_days must be between 1 and {MAX_LOOKBACK_DAYS}")
        if self.minimum_hp < 0 or self.minimum_hp > MAX_MINIMUM_HP:
            errors.append(f"minimum_hp must be between 0 and {MAX_MINIMUM_HP}")
        if self.explicit_pool_value is not None and not (
            0 <= self.explicit_pool_value <= MAX_POOL_AMOUNT
        ):
            errors.append(f"explicit_pool_value must be between 0 and {MAX_POOL_AMOUNT}")
        if errors:
            raise InvalidFiltersError("; ".join(errors))


def summarize_amounts(amounts: list[Decimal]) -> DistributionStats | None:
    if not amounts:
        return None
    return DistributionStats(
        minimum=min(amounts),
        maximum=max(amounts),
        mean=round_amount(statistics.mean(amounts)),
        median=round_amount(statistics.median(amounts)),
        stddev=round_amount(statistics.pstdev(amounts)),
    )


def distribute(
    states: Iterable[DelegationState] | Mapping[str, DelegationState],
    filters: DistributionFilters,
    pool_amount: Decimal,
    on_empty: EmptyPolicy = EmptyPolicy.RETURN_EMPTY,
    memo: str = "",
) -> DistributionResult:
    """Split ``pool_amount`` proportionally to HP across the delegators that pass ``filters``.

    Pure: the same states, filters and pool always produce the same payments,
    so narrowing filters only needs a re-run over already resolved states.
    """
    pool: Decimal = Decimal(pool_amount)
    if pool < 0:
        raise InvalidFiltersError("pool amount cannot be negative")
    if pool > MAX_POOL_AMOUNT:
        raise CalculationOverflowError(f"pool amount {pool} exceeds {MAX_POOL_AMOUNT}")

    pool_states: Iterable[DelegationState] = (
        states.values() if isinstance(states, Mapping) else states
    )
    ordered: list[DelegationState] = sorted(pool_states, key=lambda s: s.delegator)

    survivors: list[DelegationState] = []
    below_minimum: list[str] = []
    excluded: list[str] = []
    for state in ordered:
        if state.delegator.lower() in filters.excluded_delegators:
            excluded.append(state.delegator)
        elif state.hp < filters.minimum_hp:
            below_minimum.append(state.delegator)
        else:
            survivors.append(state)

    total_hp: Decimal = sum((s.hp for s in survivors), Decimal(0))
    if total_hp <= 0:
        if on_empty is EmptyPolicy.RAISE:
            raise ZeroTotalAmountError(
                f"No delegated HP left after filtering ({len(ordered)} delegators considered)"
            )
        return DistributionResult(
            payments=[],
            total_hp=Decimal(0),
            total_distributed=Decimal(0),
            pool_amount=round_amount(pool),
            remaining_amount=round_amount(pool),
            stats=None,
            below_minimum=below_minimum,
            excluded=excluded,
        )

    payments: list[CalculatedPayment] = []
    for state in survivors:
        share: Decimal = state.hp / total_hp
        payments.append(
            CalculatedPayment(
                recipient=state.delegator,
                weight_hp=state.hp,
                percentage_of_total=share * HUNDRED,
                amount=round_amount(share * pool),
                memo=memo,
            )
        )
    payments.sort(key=lambda p: (-p.amount, p.recipient))

    total_distributed: Decimal = sum((p.amount for p in payments), Decimal(0))
    # Rounding drift is bounded by half a quantum per recipient.
    if abs(total_distributed - pool) > AMOUNT_QUANTUM * len(payments):
        raise CalculationOverflowError(
            f"distributed {total_distributed} drifted from pool {pool}"
        )

    logger.debug(
        "Distribution computed",
        recipients=len(payments),
        total_hp=str(total_hp),
        pool=str(pool),
        distributed=str(total_distributed),
    )
    return DistributionResult(
        payments=payments,
        total_hp=total_hp,
        total_distributed=total_distributed,
        pool_amount=round_amount(pool),
        remaining_amount=round_amount(pool) - total_distributed,
        stats=summarize_amounts([p.amount for p in payments]),
        below_minimum=below_minimum,
        excluded=excluded,
    )
