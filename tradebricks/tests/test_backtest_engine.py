"""Behavioral tests for the single-position backtest simulator."""

from __future__ import annotations

import unittest
from datetime import date

from tradebricks.core.backtest.engine import BacktestJob, run_backtest, run_backtest_batch
from tradebricks.core.backtest.types import PriceBar, TradeAction
from tradebricks.core.graph.model import StrategyGraph
from tradebricks.core.utils.errors import BacktestError, DataValidationError, NoMarketDataError
from tradebricks.tests.helpers import block, edge, ma_crossover_graph, make_graph, make_price_bars


def _threshold_graph(threshold: float) -> StrategyGraph:
    """Enter when price is above ``threshold``, exit when it drops below."""
    return make_graph(
        [
            block("price", "price"),
            block("above", "comparison", purpose="entry", operator=">", value2=threshold),
            block("below", "comparison", purpose="exit", operator="<", value2=threshold),
        ],
        [edge("price", "above", "input1"), edge("price", "below", "input1")],
    )


def _assert_single_position(test: unittest.TestCase, actions: list[TradeAction]) -> None:
    expected = [TradeAction.BUY, TradeAction.SELL] * (len(actions) // 2)
    test.assertEqual(actions, expected)


class TestMovingAverageCrossover(unittest.TestCase):
    """Fast/slow SMA crossover over a steadily rising series."""

    def setUp(self) -> None:
        self.bars = make_price_bars([100.0 + index for index in range(40)])

    def test_buys_on_first_crossover_and_liquidates_at_end(self) -> None:
        result = run_backtest(ma_crossover_graph(fast=5, slow=20), self.bars, 10_000.0)

        self.assertEqual(len(result.trades), 2)
        buy, sell = result.trades
        self.assertEqual(buy.action, TradeAction.BUY)
        self.assertEqual((buy.date, buy.price), (date(2020, 1, 6), 105.0))
        self.assertEqual(sell.action, TradeAction.SELL)
        self.assertEqual((sell.date, sell.price), (date(2020, 2, 9), 139.0))
        self.assertAlmostEqual(result.final_capital, 10_000.0 / 105.0 * 139.0)
        self.assertAlmostEqual(result.total_return_pct, (139.0 / 105.0 - 1.0) * 100.0)
        self.assertEqual(result.warnings, ())

    def test_repeated_runs_are_identical(self) -> None:
        graph = ma_crossover_graph()
        first = run_backtest(graph, self.bars, 10_000.0)
        second = run_backtest(graph, self.bars, 10_000.0)
        self.assertEqual(first, second)


class TestTransitions(unittest.TestCase):
    """Validate entry/exit state transitions and liquidation."""

    def test_threshold_strategy_round_trips(self) -> None:
        bars = make_price_bars([100.0, 101.0, 102.0, 99.0, 98.0, 103.0])
        result = run_backtest(_threshold_graph(100.0), bars, 1_000.0)

        summary = [(trade.date.day, trade.action, trade.price) for trade in result.trades]
        self.assertEqual(
            summary,
            [
                (2, TradeAction.BUY, 101.0),
                (4, TradeAction.SELL, 99.0),
                (6, TradeAction.BUY, 103.0),
                (6, TradeAction.SELL, 103.0),
            ],
        )
        self.assertAlmostEqual(result.final_capital, 1_000.0 / 101.0 * 99.0)

    def test_default_stop_loss_and_re_entry(self) -> None:
        bars = make_price_bars([100.0, 100.0, 94.0, 94.0, 94.0])
        result = run_backtest(make_graph([]), bars, 10_000.0)

        actions = [trade.action for trade in result.trades]
        _assert_single_position(self, actions)
        self.assertEqual([trade.price for trade in result.trades], [100.0, 94.0, 94.0, 94.0])
        self.assertAlmostEqual(result.final_capital, 9_400.0)
        self.assertAlmostEqual(result.total_return_pct, -6.0)

    def test_default_take_profit(self) -> None:
        bars = make_price_bars([100.0, 125.0])
        result = run_backtest(make_graph([]), bars, 10_000.0)
        self.assertEqual([trade.price for trade in result.trades], [100.0, 125.0])
        self.assertEqual(result.trades[1].date, date(2020, 1, 2))
        self.assertAlmostEqual(result.final_capital, 12_500.0)

    def test_trades_at_selected_price_field(self) -> None:
        bars = [
            PriceBar(date(2020, 1, 1), open=99.0, high=101.0, low=98.0, close=100.0),
            PriceBar(date(2020, 1, 2), open=100.5, high=102.0, low=99.5, close=101.0),
        ]
        result = run_backtest(make_graph([]), bars, 1_000.0, price_field="open")
        self.assertEqual([trade.price for trade in result.trades], [99.0, 100.5])

    def test_non_positive_price_skips_transition(self) -> None:
        graph = make_graph([block("always", "comparison", value1=1, value2=0)])
        bars = make_price_bars([0.0, 100.0, 100.0])
        result = run_backtest(graph, bars, 1_000.0)

        self.assertEqual([trade.date.day for trade in result.trades], [2, 3])
        self.assertTrue(any("non-positive close price" in message for message in result.warnings))

    def test_non_positive_price_skips_exit_and_keeps_position(self) -> None:
        bars = make_price_bars([100.0, 0.0, 100.0, 100.0])
        result = run_backtest(make_graph([]), bars, 1_000.0)

        actions = [trade.action for trade in result.trades]
        open_positions = 0
        for action in actions:
            open_positions += 1 if action is TradeAction.BUY else -1
            self.assertIn(open_positions, (0, 1))
        self.assertEqual(actions, [TradeAction.BUY, TradeAction.SELL])
        self.assertEqual([trade.date.day for trade in result.trades], [1, 4])
        self.assertAlmostEqual(result.final_capital, 1_000.0)
        self.assertIn("Skipped exit on 2020-01-02: non-positive close price.", result.warnings)

    def test_single_position_invariant_on_oscillating_prices(self) -> None:
        closes = [100.0 + 10.0 * ((index % 8) - 4) for index in range(64)]
        result = run_backtest(_threshold_graph(100.0), make_price_bars(closes), 1_000.0)

        self.assertGreater(len(result.trades), 2)
        _assert_single_position(self, [trade.action for trade in result.trades])


class TestUnderSpecifiedGraphs(unittest.TestCase):
    def test_empty_graph_on_flat_series(self) -> None:
        bars = make_price_bars([100.0] * 10)
        result = run_backtest(make_graph([]), bars, 10_000.0)

        self.assertLessEqual(len(result.trades), 2)
        self.assertEqual(result.trades[0].action, TradeAction.BUY)
        self.assertEqual(result.trades[-1].action, TradeAction.SELL)
        self.assertAlmostEqual(result.final_capital, 10_000.0)
        self.assertTrue(any("No entry blocks found" in message for message in result.warnings))
        self.assertTrue(any("No exit blocks found" in message for message in result.warnings))

    def test_degenerate_indicator_entry_fires_on_numeric_value(self) -> None:
        graph = make_graph([block("ma", "moving_average", period=3)])
        result = run_backtest(graph, make_price_bars([50.0, 51.0, 52.0]), 100.0)
        self.assertEqual(result.trades[0].date, date(2020, 1, 1))
        self.assertTrue(any("degenerate entry" in message for message in result.warnings))

    def test_warnings_are_deduplicated_across_bars(self) -> None:
        graph = make_graph(
            [
                block("signal", "trade_signal"),
                block("entry", "entry_condition"),
            ],
            [edge("entry", "signal")],
        )
        result = run_backtest(graph, make_price_bars([10.0] * 5), 100.0)
        unsupported = [message for message in result.warnings if "Unsupported" in message]
        self.assertEqual(len(unsupported), 1)
        self.assertEqual(result.trades, ())


class TestValidation(unittest.TestCase):
    """Fatal request errors raise before any bar is simulated."""

    def test_empty_series_raises_no_market_data(self) -> None:
        with self.assertRaisesRegex(NoMarketDataError, "No data available for the requested range"):
            run_backtest(
                ma_crossover_graph(),
                [],
                10_000.0,
                symbol="ES",
                start="2020-01-01",
                end="2020-01-31",
            )

    def test_non_positive_capital(self) -> None:
        with self.assertRaises(BacktestError):
            run_backtest(make_graph([]), make_price_bars([1.0]), 0.0)

    def test_unknown_price_field(self) -> None:
        with self.assertRaises(BacktestError):
            run_backtest(make_graph([]), make_price_bars([1.0]), 10.0, price_field="vwap")

    def test_dates_must_strictly_increase(self) -> None:
        bars = make_price_bars([1.0, 2.0])
        with self.assertRaises(DataValidationError):
            run_backtest(make_graph([]), [bars[1], bars[0]], 10.0)
        with self.assertRaises(DataValidationError):
            run_backtest(make_graph([]), [bars[0], bars[0]], 10.0)


class TestBatch(unittest.TestCase):
    def test_batch_matches_sequential_runs_in_order(self) -> None:
        rising = make_price_bars([100.0 + index for index in range(40)])
        flat = make_price_bars([100.0] * 10)
        jobs = [
            BacktestJob(graph=ma_crossover_graph(), bars=rising, initial_capital=10_000.0),
            BacktestJob(graph=make_graph([]), bars=flat, initial_capital=5_000.0),
        ]
        results = run_backtest_batch(jobs, max_workers=2)
        expected = [run_backtest(job.graph, job.bars, job.initial_capital) for job in jobs]
        self.assertEqual(results, expected)
        self.assertEqual(run_backtest_batch([]), [])


if __name__ == "__main__":
    unittest.main()
