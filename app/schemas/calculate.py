"""Calculation request schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from app.schemas.common import CamelModel
from hivepay.services.distribution import DistributionFilters
from hivepay.services.schemas.chain import DelegationState


class FiltersIn(CamelModel):
    lookback_days: int = Field(30, ge=1, le=365)
    minimum_hp: Decimal = Field(Decimal(50), ge=0)
    excluded_delegators: list[str] = Field(default_factory=list)
    period: str = Field("30d", description="24h | 7d | 30d | <n>d | <n>h")
    explicit_pool_value: Decimal | None = Field(None, ge=0)

    def to_filters(self) -> DistributionFilters:
        return DistributionFilters.build(
            lookback_days=self.lookback_days,
            minimum_hp=self.minimum_hp,
            excluded_delegators=self.excluded_delegators,
            period=self.period,
            explicit_pool_value=self.explicit_pool_value,
        )


class CalculateRequest(FiltersIn):
    account: str = Field(..., min_length=3, max_length=16)


class DelegationStateIn(CamelModel):
    delegator: str
    hp: Decimal = Field(..., ge=0)
    vests: Decimal = Field(Decimal(0), ge=0)
    last_event_block: int = 0
    last_event_timestamp: datetime

    def to_state(self) -> DelegationState:
        return DelegationState(
            delegator=self.delegator.lower(),
            hp=self.hp,
            vests=self.vests,
            last_event_block=self.last_event_block,
            last_event_timestamp=self.last_event_timestamp,
        )


class RecalculateRequest(CamelModel):
    account: str = Field(..., min_length=3, max_length=16)
    filters: FiltersIn = Field(default_factory=FiltersIn)
    states: list[DelegationStateIn]
    cutoff_date: datetime
    events_processed: int = 0
    realized_reward: Decimal = Field(Decimal(0), ge=0)
    percentage: Decimal = Field(..., ge=0, le=100)
    period: str = "30d"
