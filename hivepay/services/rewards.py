"""Realized curation reward over a lookback window."""

import asyncio
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

import structlog

from config import get_settings
from hivepay.services._helpers import utc_now
from hivepay.services.converter import UnitConverter
from hivepay.services.errors import DataSourceError, InvalidFiltersError
from hivepay.services.ports import HistorySource
from hivepay.services.schemas.chain import RewardEvent
from hivepay.services.schemas.results import CurationStats

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

NAMED_PERIODS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
STATS_WINDOW: timedelta = NAMED_PERIODS["30d"]

_CUSTOM_PATTERN: re.Pattern[str] = re.compile(r"^(\d+)([hd])$")


@dataclass(frozen=True)
class RewardPeriod:
    label: str
    duration: timedelta

    @property
    def is_named(self) -> bool:
        return self.label in NAMED_PERIODS


def parse_period(raw: "str | int | timedelta | RewardPeriod") -> RewardPeriod:
    """Accepts '24h' / '7d' / '30d', custom '<n>h' / '<n>d', a day count, or a timedelta."""
    if isinstance(raw, RewardPeriod):
        return raw
    if isinstance(raw, timedelta):
        duration: timedelta = raw
    elif isinstance(raw, int) and not isinstance(raw, bool):
        duration = timedelta(days=raw)
    elif isinstance(raw, str):
        text: str = raw.strip().lower()
        if text in NAMED_PERIODS:
            return RewardPeriod(text, NAMED_PERIODS[text])
        match = _CUSTOM_PATTERN.match(text)
        if not match:
            raise InvalidFiltersError(f"Unknown reward period: {raw!r}")
        count: int = int(match.group(1))
        duration = timedelta(hours=count) if match.group(2) == "h" else timedelta(days=count)
    else:
        raise InvalidFiltersError(f"Unknown reward period: {raw!r}")

    if duration <= timedelta(0):
        raise InvalidFiltersError("Reward period must be positive")
    for label, named in NAMED_PERIODS.items():
        if duration == named:
            return RewardPeriod(label, named)
    if duration.seconds == 0:
        return RewardPeriod(f"{duration.days}d", duration)
    return RewardPeriod(f"{int(duration.total_seconds() // 3600)}h", duration)


@dataclass(frozen=True)
class RewardSample:
    operation_id: str
    timestamp: datetime
    hp: Decimal


def dedupe_rewards(events: Iterable[RewardEvent]) -> list[RewardEvent]:
    seen: set[str] = set()
    unique: list[RewardEvent] = []
    for event in events:
        if event.operation_id in seen:
            continue
        seen.add(event.operation_id)
        unique.append(event)
    return unique


def sum_rewards(samples: Iterable[RewardSample], start: datetime, end: datetime) -> Decimal:
    return sum((s.hp for s in samples if start <= s.timestamp <= end), Decimal(0))


@dataclass
class _StatsEntry:
    stats: CurationStats
    samples: list[RewardSample]


class RewardAggregator:
    """Sums curation rewards for an account, caching a rolling 30-day view per account."""

    def __init__(
        self,
        source: HistorySource,
        converter: UnitConverter,
        stats_ttl_seconds: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.source: HistorySource = source
        self.converter: UnitConverter = converter
        self.stats_ttl: timedelta = timedelta(
            seconds=stats_ttl_seconds
            if stats_ttl_seconds is not None
            else get_settings().hive.stats_ttl_seconds
        )
        self._clock: Callable[[], datetime] = clock or utc_now
        self._entries: dict[str, _StatsEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def _samples(self, account: str, since: datetime, until: datetime) -> list[RewardSample]:
        events: list[RewardEvent] = dedupe_rewards(
            await self.source.fetch_reward_events(account, since=since, until=until)
        )
        hp_values: list[Decimal] = await self.converter.to_hp_batch([e.reward for e in events])
        return [
            RewardSample(e.operation_id, e.timestamp, hp)
            for e, hp in zip(events, hp_values, strict=True)
        ]

    async def _load(self, account: str) -> _StatsEntry:
        key: str = account.lower()
        async with self._locks.setdefault(key, asyncio.Lock()):
            now: datetime = self._clock()
            entry: _StatsEntry | None = self._entries.get(key)
            if entry is not None and now - entry.stats.fetched_at <= self.stats_ttl:
                return entry

            try:
                samples: list[RewardSample] = await self._samples(key, now - STATS_WINDOW, now)
            except DataSourceError as e:
                if entry is None:
                    raise
                logger.warning("Reward refresh failed, reusing stale stats", account=key, error=str(e))
                return entry

            stats = CurationStats(
                account=key,
                last_24h=sum_rewards(samples, now - NAMED_PERIODS["24h"], now),
                last_7d=sum_rewards(samples, now - NAMED_PERIODS["7d"], now),
                last_30d=sum_rewards(samples, now - NAMED_PERIODS["30d"], now),
                event_count=len(samples),
                fetched_at=now,
            )
            entry = _StatsEntry(stats=stats, samples=samples)
            self._entries[key] = entry
            logger.info(
                "Curation stats refreshed",
                account=key,
                events=len(samples),
                last_24h=str(stats.last_24h),
                last_7d=str(stats.last_7d),
                last_30d=str(stats.last_30d),
            )
            return entry

    async def curation_stats(self, account: str) -> CurationStats:
        return (await self._load(account)).stats

    async def aggregate_rewards(
        self, account: str, period: str | int | timedelta | RewardPeriod
    ) -> Decimal:
        """Realized reward HP for ``account`` over ``period`` ending at the stats timestamp."""
        selected: RewardPeriod = parse_period(period)
        entry: _StatsEntry = await self._load(account)
        stats: CurationStats = entry.stats

        match selected.label:
            case "24h":
                return stats.last_24h
            case "7d":
                return stats.last_7d
            case "30d":
                return stats.last_30d

        end: datetime = stats.fetched_at
        start: datetime = end - selected.duration
        if selected.duration <= STATS_WINDOW:
            return sum_rewards(entry.samples, start, end)

        samples: list[RewardSample] = await self._samples(account.lower(), start, end)
        # A longer window never reports less than the cached 30-day view it contains.
        total: Decimal = max(sum_rewards(samples, start, end), stats.last_30d)
        logger.info(
            "Custom reward window summed", account=account, period=selected.label, total=str(total)
        )
        return total

    def invalidate(self, account: str | None = None) -> None:
        if account is None:
            self._entries.clear()
        else:
            self._entries.pop(account.lower(), None)
