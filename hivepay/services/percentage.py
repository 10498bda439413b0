"""Dynamic return percentage derived from realized curation reward."""

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from functools import partial

from config import get_settings
from db.enums import PercentageStrategy
from hivepay.services.errors import InvalidPercentageConfigError

HUNDRED: Decimal = Decimal(100)


@dataclass(frozen=True)
class PercentageConfig:
    base: Decimal
    minimum: Decimal
    maximum: Decimal

    @classmethod
    def from_settings(cls) -> "PercentageConfig":
        payout = get_settings().payout
        return cls(payout.base_percentage, payout.min_percentage, payout.max_percentage)


def validate_percentage_config(config: PercentageConfig) -> list[str]:
    errors: list[str] = []
    if not (0 <= config.base <= HUNDRED):
        errors.append("base percentage must be between 0 and 100")
    if config.minimum < 0:
        errors.append("minimum percentage cannot be negative")
    if config.maximum > HUNDRED:
        errors.append("maximum percentage cannot exceed 100")
    if config.minimum > config.maximum:
        errors.append("minimum percentage cannot exceed maximum percentage")
    return errors


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def binary_percentage(realized_reward: Decimal, config: PercentageConfig) -> Decimal:
    """Any reward earns the base rate, none earns the floor."""
    if realized_reward <= 0:
        return config.minimum
    return clamp(config.base, config.minimum, config.maximum)


def graded_percentage(
    realized_reward: Decimal, config: PercentageConfig, reference_reward: Decimal
) -> Decimal:
    """Scales the base rate by realized / reference reward, inside [min, max]."""
    if realized_reward <= 0 or reference_reward <= 0:
        return config.minimum
    return clamp(config.base * realized_reward / reference_reward, config.minimum, config.maximum)


PercentageFn = Callable[[Decimal, PercentageConfig], Decimal]


def get_percentage_strategy(
    strategy: PercentageStrategy | str | None = None,
    reference_reward: Decimal | None = None,
) -> PercentageFn:
    """Pick the strategy once at composition time."""
    payout = get_settings().payout
    selected = PercentageStrategy(strategy or payout.percentage_strategy)
    if selected is PercentageStrategy.GRADED:
        ref: Decimal = reference_reward if reference_reward is not None else payout.graded_reference_reward
        return partial(graded_percentage, reference_reward=ref)
    return binary_percentage


def compute_percentage(
    realized_reward: Decimal,
    config: PercentageConfig,
    strategy: PercentageFn = binary_percentage,
) -> Decimal:
    errors: list[str] = validate_percentage_config(config)
    if errors:
        raise InvalidPercentageConfigError("; ".join(errors))
    return strategy(Decimal(realized_reward), config)
