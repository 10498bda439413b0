"""Ledger-side data transfer objects."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from hivepay.services.amounts import RawAmount


@dataclass(frozen=True)
class DelegationEvent:
    delegator: str
    delegatee: str
    staked_amount: RawAmount
    block_number: int
    timestamp: datetime
    tx_id: str
    operation_id: str | None = None


@dataclass(frozen=True)
class DelegationState:
    delegator: str
    hp: Decimal
    vests: Decimal
    last_event_block: int
    last_event_timestamp: datetime


@dataclass(frozen=True)
class RewardEvent:
    operation_id: str
    curator: str
    reward: RawAmount
    block_number: int
    timestamp: datetime
    author: str | None = None
    permlink: str | None = None


@dataclass(frozen=True)
class GlobalRatio:
    numerator_total: Decimal  # total_vesting_fund_hive
    denominator_total: Decimal  # total_vesting_shares
    ratio: Decimal
    cached_at: float
    is_fallback: bool = False


@dataclass(frozen=True)
class AccountBalance:
    account: str
    hive: Decimal
    hbd: Decimal
