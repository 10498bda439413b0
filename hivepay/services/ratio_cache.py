"""TTL cache for the VESTS -> HP conversion ratio."""

import asyncio
import time
from collections.abc import Callable
from dataclasses import replace
from decimal import Decimal

import structlog

from config import get_settings
from hivepay.services.errors import DataSourceError
from hivepay.services.ports import RatioSource
from hivepay.services.schemas.chain import GlobalRatio

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

Clock = Callable[[], float]


class GlobalRatioCache:
    """Holds the network-wide ratio; one instance is shared by every converter.

    Refresh-and-store runs under a lock so concurrent callers never trigger
    duplicate fetches. When the source fails an expired value is reused, and
    when nothing was ever cached the configured fallback ratio is returned.
    """

    def __init__(
        self,
        source: RatioSource,
        ttl_seconds: float | None = None,
        fallback_ratio: Decimal | None = None,
        clock: Clock | None = None,
    ) -> None:
        hive = get_settings().hive
        self.source: RatioSource = source
        self.ttl_seconds: float = ttl_seconds if ttl_seconds is not None else hive.ratio_ttl_seconds
        self.fallback_ratio: Decimal = (
            fallback_ratio if fallback_ratio is not None else hive.fallback_hp_per_vests
        )
        self._clock: Clock = clock or time.monotonic
        self._cached: GlobalRatio | None = None
        self._lock: asyncio.Lock = asyncio.Lock()
        self.fetch_count: int = 0

    @property
    def cached(self) -> GlobalRatio | None:
        return self._cached

    def _is_fresh(self, now: float) -> bool:
        return self._cached is not None and now - self._cached.cached_at <= self.ttl_seconds

    async def get_ratio(self) -> GlobalRatio:
        async with self._lock:
            now: float = self._clock()
            if self._is_fresh(now):
                return self._cached  # type: ignore[return-value]

            try:
                self.fetch_count += 1
                fetched: GlobalRatio = await self.source.fetch_global_ratio()
            except DataSourceError as e:
                if self._cached is not None:
                    logger.warning(
                        "Ratio refresh failed, reusing stale value",
                        error=str(e),
                        age_seconds=round(now - self._cached.cached_at, 1),
                    )
                    return self._cached
                logger.warning(
                    "Ratio refresh failed with no cached value, using fallback",
                    error=str(e),
                    fallback=str(self.fallback_ratio),
                )
                return GlobalRatio(
                    numerator_total=Decimal(0),
                    denominator_total=Decimal(0),
                    ratio=self.fallback_ratio,
                    cached_at=now,
                    is_fallback=True,
                )

            self._cached = replace(fetched, cached_at=now)
            logger.debug("Ratio refreshed", ratio=str(self._cached.ratio))
            return self._cached

    def invalidate(self) -> None:
        self._cached = None
