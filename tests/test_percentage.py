"""Tests for hivepay.services.percentage."""

from decimal import Decimal

import pytest

from db.enums import PercentageStrategy
from hivepay.services.errors import InvalidPercentageConfigError
from hivepay.services.percentage import (
    PercentageConfig,
    binary_percentage,
    compute_percentage,
    get_percentage_strategy,
    graded_percentage,
    validate_percentage_config,
)

CONFIG = PercentageConfig(base=Decimal(15), minimum=Decimal(10), maximum=Decimal(20))


class TestBinaryPercentage:
    @pytest.mark.parametrize("reward", ["0", "0.001", "10", "1000000000"])
    def test_within_bounds(self, reward: str) -> None:
        pct: Decimal = compute_percentage(Decimal(reward), CONFIG)
        assert CONFIG.minimum <= pct <= CONFIG.maximum

    def test_no_reward_gets_minimum(self) -> None:
        assert binary_percentage(Decimal(0), CONFIG) == Decimal(10)

    def test_any_reward_gets_base(self) -> None:
        assert binary_percentage(Decimal("0.5"), CONFIG) == Decimal(15)


class TestGradedPercentage:
    def test_scales_with_reward(self) -> None:
        assert graded_percentage(Decimal(100), CONFIG, Decimal(100)) == Decimal(15)
        assert graded_percentage(Decimal(120), CONFIG, Decimal(100)) == Decimal(18)

    def test_clamped(self) -> None:
        assert graded_percentage(Decimal(1), CONFIG, Decimal(100)) == Decimal(10)
        assert graded_percentage(Decimal(10_000), CONFIG, Decimal(100)) == Decimal(20)

    def test_strategy_selection(self) -> None:
        graded = get_percentage_strategy(PercentageStrategy.GRADED, Decimal(100))
        assert compute_percentage(Decimal(120), CONFIG, graded) == Decimal(18)
        assert get_percentage_strategy("binary") is binary_percentage


class TestConfigValidation:
    def test_valid(self) -> None:
        assert validate_percentage_config(CONFIG) == []

    def test_min_above_max(self) -> None:
        bad = PercentageConfig(Decimal(15), Decimal(30), Decimal(20))
        assert validate_percentage_config(bad)
        with pytest.raises(InvalidPercentageConfigError):
            compute_percentage(Decimal(1), bad)

    def test_out_of_range(self) -> None:
        bad = PercentageConfig(Decimal(150), Decimal(-1), Decimal(120))
        assert len(validate_percentage_config(bad)) == 3
