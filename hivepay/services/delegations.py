"""Rebuilds the active delegation set from delegate_vesting_shares history."""

from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal

import structlog

from hivepay.services._helpers import utc_now
from hivepay.services.amounts import normalize_raw_amount
from hivepay.services.converter import UnitConverter
from hivepay.services.errors import InvalidFiltersError
from hivepay.services.schemas.chain import DelegationEvent, DelegationState

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

MAX_LOOKBACK_DAYS: int = 365


def calculate_cutoff_date(lookback_days: int, now: datetime | None = None) -> datetime:
    """Only delegations already in place at this instant are paid."""
    if lookback_days < 1 or lookback_days > MAX_LOOKBACK_DAYS:
        raise InvalidFiltersError(
            f"lookback_days must be between 1 and {MAX_LOOKBACK_DAYS}, got {lookback_days}"
        )
    return (now or utc_now()) - timedelta(days=lookback_days)


def _is_newer(candidate: DelegationEvent, current: DelegationEvent) -> bool:
    if candidate.block_number != current.block_number:
        return candidate.block_number > current.block_number
    return candidate.timestamp > current.timestamp


def latest_events(
    events: Iterable[DelegationEvent],
    account: str,
    as_of: datetime | None = None,
) -> dict[str, DelegationEvent]:
    """Latest event per delegator toward ``account``, optionally bounded by ``as_of``."""
    target: str = account.lower()
    latest: dict[str, DelegationEvent] = {}
    for event in events:
        if event.delegatee.lower() != target:
            continue
        if event.delegator.lower() == target:
            continue
        if as_of is not None and event.timestamp > as_of:
            continue
        key: str = event.delegator.lower()
        current: DelegationEvent | None = latest.get(key)
        if current is None or _is_newer(event, current):
            latest[key] = event
    return latest


async def resolve_active_delegations(
    events: Iterable[DelegationEvent],
    account: str,
    converter: UnitConverter,
    as_of: datetime,
) -> dict[str, DelegationState]:
    """Return delegator -> state for every delegation active at ``as_of``.

    Each delegator's state is its single latest event at or before ``as_of``;
    earlier events are overwritten, never summed. Delegators whose kept event
    is zero drop out, and so do those whose latest event overall (after
    ``as_of`` too) withdrew the delegation entirely. Self-delegation never counts.
    """
    all_events: list[DelegationEvent] = list(events)
    in_window: dict[str, DelegationEvent] = latest_events(all_events, account, as_of)
    overall: dict[str, DelegationEvent] = latest_events(all_events, account)

    kept: list[tuple[str, DelegationEvent, Decimal]] = []
    withdrawn: int = 0
    for delegator, event in in_window.items():
        vests: Decimal = normalize_raw_amount(event.staked_amount)
        if vests <= 0:
            continue
        newest: DelegationEvent = overall[delegator]
        if newest is not event and normalize_raw_amount(newest.staked_amount) <= 0:
            withdrawn += 1
            continue
        kept.append((delegator, event, vests))

    hp_values: list[Decimal] = await converter.to_hp_batch([vests for _, _, vests in kept])

    states: dict[str, DelegationState] = {}
    for (delegator, event, vests), hp in zip(kept, hp_values, strict=True):
        states[delegator] = DelegationState(
            delegator=delegator,
            hp=hp,
            vests=vests,
            last_event_block=event.block_number,
            last_event_timestamp=event.timestamp,
        )

    logger.info(
        "Resolved delegations",
        account=account,
        events=len(all_events),
        delegators_seen=len(in_window),
        active=len(states),
        withdrawn_after_cutoff=withdrawn,
    )
    return states
