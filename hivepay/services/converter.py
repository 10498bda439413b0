"""VESTS -> HP conversion."""

from collections.abc import Sequence
from decimal import Decimal

from hivepay.services.amounts import normalize_raw_amount
from hivepay.services.ratio_cache import GlobalRatioCache
from hivepay.services.schemas.chain import GlobalRatio


def apply_ratio(vests: Decimal, ratio: GlobalRatio) -> Decimal:
    return vests * ratio.ratio


class UnitConverter:
    """Converts staked units to HP through a shared GlobalRatioCache."""

    def __init__(self, cache: GlobalRatioCache) -> None:
        self.cache: GlobalRatioCache = cache

    async def to_hp(self, raw_amount: object) -> Decimal:
        vests: Decimal = normalize_raw_amount(raw_amount)
        ratio: GlobalRatio = await self.cache.get_ratio()
        return apply_ratio(vests, ratio)

    async def to_hp_batch(self, raw_amounts: Sequence[object]) -> list[Decimal]:
        """Convert many amounts under a single ratio read."""
        vests: list[Decimal] = [normalize_raw_amount(raw) for raw in raw_amounts]
        ratio: GlobalRatio = await self.cache.get_ratio()
        return [apply_ratio(v, ratio) for v in vests]
