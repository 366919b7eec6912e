"""Backtest summary statistics."""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd

from tradebricks.core.backtest.types import BacktestResult, PriceBar, Trade, TradeAction


def _round_trip_returns(trades: Sequence[Trade]) -> list[float]:
    """Percentage return of each completed BUY -> SELL pair."""
    returns: list[float] = []
    entry_price: float | None = None
    for trade in trades:
        if trade.action is TradeAction.BUY:
            entry_price = trade.price
        elif entry_price is not None:
            returns.append((trade.price / entry_price - 1.0) * 100.0)
            entry_price = None
    return returns


def summarize_result(result: BacktestResult) -> dict[str, float]:
    """
    Calculate deterministic summary metrics for a backtest result.

    Args:
        result: Completed backtest result.

    Returns:
        Metrics dictionary.
    """
    round_trips = _round_trip_returns(result.trades)
    winning = sum(1 for value in round_trips if value > 0)
    return {
        "initial_capital": float(result.initial_capital),
        "final_capital": float(result.final_capital),
        "total_return_pct": float(result.total_return_pct),
        "trade_count": float(len(result.trades)),
        "round_trips": float(len(round_trips)),
        "winning_trades": float(winning),
        "win_rate_pct": winning / len(round_trips) * 100.0 if round_trips else 0.0,
        "average_trade_return_pct": (
            float(sum(round_trips) / len(round_trips)) if round_trips else 0.0
        ),
    }


def build_equity_curve(
    bars: Sequence[PriceBar],
    trades: Sequence[Trade],
    initial_capital: float,
    price_field: str = "close",
) -> pd.Series:
    """
    Mark the single-position portfolio to market at every bar.

    Trades are applied on their own date before marking, so a bar with a sell
    shows the realized cash.

    Returns:
        Equity series indexed by bar date.
    """
    trades_by_date: dict[object, list[Trade]] = {}
    for trade in trades:
        trades_by_date.setdefault(trade.date, []).append(trade)

    cash = float(initial_capital)
    units = 0.0
    values: list[float] = []
    for bar in bars:
        for trade in trades_by_date.get(bar.date, []):
            if trade.action is TradeAction.BUY:
                units = cash / trade.price
                cash = 0.0
            else:
                cash = units * trade.price
                units = 0.0
        values.append(cash + units * bar.price(price_field))

    index = pd.DatetimeIndex([pd.Timestamp(bar.date) for bar in bars], name="date")
    return pd.Series(values, index=index, dtype=float, name="equity")


def calculate_max_drawdown(equity_curve: pd.Series) -> float:
    """
    Calculate max drawdown from an equity curve.

    Returns:
        Minimum drawdown as a negative decimal, ``0.0`` for an empty curve.
    """
    if equity_curve.empty:
        return 0.0
    running_max = equity_curve.cummax()
    drawdowns = equity_curve / running_max - 1.0
    return float(drawdowns.min())
