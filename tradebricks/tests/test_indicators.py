"""Unit tests for trailing-window indicators."""

from __future__ import annotations

import unittest

from tradebricks.core.backtest.indicators import (
    NEUTRAL_RSI,
    bollinger_bands,
    rsi,
    simple_moving_average,
    standard_deviation,
)


class TestSimpleMovingAverage(unittest.TestCase):
    """Validate SMA over full and short windows."""

    def test_average_of_last_period_values(self) -> None:
        self.assertAlmostEqual(simple_moving_average([1.0, 2.0, 3.0, 4.0, 5.0], 3), 4.0)

    def test_short_history_uses_available_values(self) -> None:
        self.assertAlmostEqual(simple_moving_average([2.0, 4.0], 5), 3.0)

    def test_empty_input_returns_zero(self) -> None:
        self.assertEqual(simple_moving_average([], 5), 0.0)


class TestStandardDeviation(unittest.TestCase):
    def test_population_form(self) -> None:
        self.assertAlmostEqual(standard_deviation([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]), 2.0)

    def test_empty_input_returns_zero(self) -> None:
        self.assertEqual(standard_deviation([]), 0.0)


class TestRSI(unittest.TestCase):
    """Validate RSI warm-up and bounds."""

    def test_neutral_before_enough_history(self) -> None:
        closes = [100.0 + index for index in range(10)]
        self.assertEqual(rsi(closes, 5, period=14), NEUTRAL_RSI)
        self.assertEqual(rsi(closes, 13, period=14), NEUTRAL_RSI)

    def test_only_gains_approach_one_hundred(self) -> None:
        closes = [100.0 + index for index in range(20)]
        value = rsi(closes, 19, period=14)
        self.assertGreater(value, 99.9)
        self.assertLessEqual(value, 100.0)

    def test_only_losses_is_zero(self) -> None:
        closes = [200.0 - index for index in range(20)]
        self.assertAlmostEqual(rsi(closes, 19, period=14), 0.0)

    def test_balanced_moves_are_fifty(self) -> None:
        closes = [100.0, 101.0, 100.0, 101.0, 100.0]
        self.assertAlmostEqual(rsi(closes, 4, period=4), 50.0)

    def test_flat_series_uses_loss_floor(self) -> None:
        closes = [100.0] * 20
        self.assertAlmostEqual(rsi(closes, 19, period=14), 0.0)


class TestBollingerBands(unittest.TestCase):
    """Validate band construction and short-window fallback."""

    def test_short_window_returns_latest_value(self) -> None:
        bands = bollinger_bands([1.0, 2.0, 3.0], period=20)
        self.assertEqual(bands, (3.0, 3.0, 3.0))

    def test_empty_input_returns_zeros(self) -> None:
        self.assertEqual(bollinger_bands([], period=20), (0.0, 0.0, 0.0))

    def test_bands_use_population_deviation(self) -> None:
        values = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]
        bands = bollinger_bands(values, period=8, width=2.0)
        self.assertAlmostEqual(bands.middle, 5.0)
        self.assertAlmostEqual(bands.upper, 9.0)
        self.assertAlmostEqual(bands.lower, 1.0)

    def test_constant_series_collapses_bands(self) -> None:
        bands = bollinger_bands([10.0] * 25, period=20, width=2.0)
        self.assertAlmostEqual(bands.upper, 10.0)
        self.assertAlmostEqual(bands.lower, 10.0)


if __name__ == "__main__":
    unittest.main()
