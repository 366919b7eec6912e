"""Backtest engine exports."""

from tradebricks.core.backtest.engine import BacktestJob, run_backtest, run_backtest_batch
from tradebricks.core.backtest.evaluator import EvaluationContext, GraphEvaluator
from tradebricks.core.backtest.metrics import (
    build_equity_curve,
    calculate_max_drawdown,
    summarize_result,
)
from tradebricks.core.backtest.types import BacktestResult, PriceBar, Trade, TradeAction

__all__ = [
    "BacktestJob",
    "BacktestResult",
    "EvaluationContext",
    "GraphEvaluator",
    "PriceBar",
    "Trade",
    "TradeAction",
    "build_equity_curve",
    "calculate_max_drawdown",
    "run_backtest",
    "run_backtest_batch",
    "summarize_result",
]
