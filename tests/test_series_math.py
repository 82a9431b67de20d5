import random

import pytest

from futures_bot.indicators.series_math import (
    average_true_range,
    bollinger_bands,
    exponential_moving_average,
    moving_average,
    relative_strength_index,
)


def random_series(seed: int, length: int = 60):
    rng = random.Random(seed)
    price = 50_000.0
    values = []
    for _ in range(length):
        price += rng.uniform(-250, 250)
        values.append(price)
    return values


class TestMovingAverage:
    def test_mean_of_trailing_window(self):
        assert moving_average([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)

    def test_insufficient_data_is_none(self):
        assert moving_average([1, 2], 3) is None

    def test_empty_and_non_positive_period(self):
        assert moving_average([], 3) is None
        assert moving_average([1, 2, 3], 0) is None


class TestExponentialMovingAverage:
    def test_seeded_with_first_window_mean(self):
        # seed mean(1, 2, 3) = 2, factor 0.5: 4 -> 3, 5 -> 4
        assert exponential_moving_average([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)

    def test_exact_period_equals_mean(self):
        assert exponential_moving_average([2, 4, 6], 3) == pytest.approx(4.0)

    def test_insufficient_data_is_none(self):
        assert exponential_moving_average([1.0], 2) is None
        assert exponential_moving_average([], 1) is None


class TestBollingerBands:
    def test_population_std_dev(self):
        bands = bollinger_bands([2, 4, 4, 4, 5, 5, 7, 9], 8, 2.0)
        assert bands.middle == pytest.approx(5.0)
        assert bands.lower == pytest.approx(1.0)
        assert bands.upper == pytest.approx(9.0)

    def test_uses_trailing_window(self):
        bands = bollinger_bands([100, 100, 2, 4, 4, 4, 5, 5, 7, 9], 8, 2.0)
        assert bands.middle == pytest.approx(5.0)

    def test_constant_series_collapses(self):
        bands = bollinger_bands([10.0] * 12, 12, 2.0)
        assert bands.lower == bands.middle == bands.upper == pytest.approx(10.0)

    @pytest.mark.parametrize("seed", range(5))
    def test_band_ordering(self, seed):
        bands = bollinger_bands(random_series(seed), 12, 2.0)
        assert bands.lower <= bands.middle <= bands.upper

    def test_insufficient_data_is_none(self):
        assert bollinger_bands([1, 2, 3], 12, 2.0) is None


class TestRelativeStrengthIndex:
    def test_wilder_smoothing(self):
        # gains [1, 0, 1], losses [0, 1, 0]; seed 0.5/0.5, then 0.75/0.25 -> RS 3
        assert relative_strength_index([1, 2, 1, 2], 2) == pytest.approx(75.0)

    def test_only_gains_is_100(self):
        assert relative_strength_index(list(range(1, 20)), 9) == pytest.approx(100.0)

    def test_only_losses_is_0(self):
        assert relative_strength_index(list(range(20, 1, -1)), 9) == pytest.approx(0.0)

    @pytest.mark.parametrize("seed", range(5))
    def test_bounded(self, seed):
        value = relative_strength_index(random_series(seed), 9)
        assert 0.0 <= value <= 100.0

    def test_insufficient_data_is_none(self):
        assert relative_strength_index([1, 2, 3], 9) is None
        assert relative_strength_index([], 9) is None


class TestAverageTrueRange:
    def test_true_range_uses_previous_close(self):
        highs = [10, 11, 12]
        lows = [8, 9, 10]
        closes = [9, 10, 11]
        assert average_true_range(highs, lows, closes, 2) == pytest.approx(2.0)

    def test_averages_first_window_only(self):
        highs = [10, 11, 12, 20]
        lows = [8, 9, 10, 10]
        closes = [9, 10, 11, 15]
        # true ranges [2, 2, 10]; only the first two are averaged
        assert average_true_range(highs, lows, closes, 2) == pytest.approx(2.0)

    def test_requires_period_true_ranges(self):
        # three points give only two true ranges
        assert average_true_range([3, 4, 5], [1, 2, 3], [2, 3, 4], 3) is None

    def test_any_short_input_is_none(self):
        assert average_true_range([1, 2, 3, 4], [1, 2], [1, 2, 3, 4], 3) is None

    @pytest.mark.parametrize("seed", range(5))
    def test_never_negative(self, seed):
        closes = random_series(seed)
        highs = [c + 50 for c in closes]
        lows = [c - 50 for c in closes]
        assert average_true_range(highs, lows, closes, 7) >= 0.0
