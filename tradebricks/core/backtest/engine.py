"""Deterministic single-position backtest simulator."""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from tradebricks.core.backtest.evaluator import (
    EvaluationContext,
    GraphEvaluator,
    WarningCollector,
    is_truthy,
)
from tradebricks.core.backtest.types import (
    PRICE_FIELDS,
    BacktestResult,
    PortfolioState,
    PriceBar,
    Trade,
    TradeAction,
)
from tradebricks.core.graph.model import StrategyGraph
from tradebricks.core.graph.resolver import resolve_candidates
from tradebricks.core.utils.errors import BacktestError, DataValidationError, NoMarketDataError
from tradebricks.core.utils.logging import get_logger

DEFAULT_STOP_LOSS: float = 0.95
DEFAULT_TAKE_PROFIT: float = 1.20
_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class BacktestJob:
    """Inputs for one independent backtest run."""

    graph: StrategyGraph
    bars: Sequence[PriceBar]
    initial_capital: float
    price_field: str = "close"


def _describe_range(symbol: str | None, start: str | None, end: str | None) -> str:
    parts = []
    if symbol:
        parts.append(f"symbol '{symbol}'")
    if start or end:
        parts.append(f"range {start or '?'} to {end or '?'}")
    return f" ({', '.join(parts)})" if parts else ""


def _validate_request(
    bars: Sequence[PriceBar],
    initial_capital: float,
    price_field: str,
    symbol: str | None,
    start: str | None,
    end: str | None,
) -> None:
    """Reject runs that cannot be simulated before any bar is processed."""
    if not bars:
        raise NoMarketDataError(
            f"No data available for the requested range{_describe_range(symbol, start, end)}."
        )
    if initial_capital <= 0:
        raise BacktestError("initial_capital must be greater than 0.")
    if price_field not in PRICE_FIELDS:
        raise BacktestError(
            f"price_field must be one of {list(PRICE_FIELDS)}, got '{price_field}'."
        )
    for previous, current in zip(bars, bars[1:]):
        if current.date <= previous.date:
            raise DataValidationError(
                "Price bars must be strictly increasing by date: "
                f"{current.date.isoformat()} follows {previous.date.isoformat()}"
                f"{_describe_range(symbol, start, end)}."
            )


def _default_exit_triggered(price: float, entry_price: float) -> bool:
    return price < entry_price * DEFAULT_STOP_LOSS or price > entry_price * DEFAULT_TAKE_PROFIT


def run_backtest(
    graph: StrategyGraph,
    bars: Sequence[PriceBar],
    initial_capital: float,
    price_field: str = "close",
    symbol: str | None = None,
    start: str | None = None,
    end: str | None = None,
) -> BacktestResult:
    """
    Simulate a strategy graph over a daily price series.

    Execution model:
    - Bars are processed in date order with at most one transition per bar.
    - Flat: the first entry candidate that fires buys with all cash.
    - Long: the first exit candidate that fires sells everything; without exit
      candidates a 5% stop-loss / 20% take-profit rule applies.
    - Trades execute at ``price_field`` of the signalling bar; a non-positive
      price skips that bar's transition with a warning.
    - An open position is liquidated at the last bar.

    Args:
        graph: Strategy graph, borrowed read-only.
        bars: Price bars in strictly increasing date order.
        initial_capital: Starting cash.
        price_field: ``open``, ``high``, ``low`` or ``close``.
        symbol: Optional symbol used in error messages.
        start: Optional requested start date used in error messages.
        end: Optional requested end date used in error messages.

    Returns:
        Backtest result with trade ledger and warnings.

    Raises:
        NoMarketDataError: If ``bars`` is empty.
        BacktestError: If capital or price field are invalid.
        DataValidationError: If bar dates are not strictly increasing.
    """
    _validate_request(bars, initial_capital, price_field, symbol, start, end)
    _LOGGER.info(
        "Running backtest over %d bars from %s to %s with initial capital %.2f using %s prices",
        len(bars),
        bars[0].date.isoformat(),
        bars[-1].date.isoformat(),
        initial_capital,
        price_field,
    )

    warnings = WarningCollector()
    resolution = resolve_candidates(graph)
    warnings.extend(resolution.warnings)
    evaluator = GraphEvaluator(resolution.graph, warnings)

    closes = [bar.close for bar in bars]
    portfolio = PortfolioState(cash=float(initial_capital))
    trades: list[Trade] = []

    for bar_index, bar in enumerate(bars):
        context = EvaluationContext(
            bar_index=bar_index, bars=bars, closes=closes, position=portfolio
        )
        trade_price = bar.price(price_field)

        if portfolio.is_flat:
            fired = any(
                is_truthy(evaluator.evaluate(block_id, context))
                for block_id in resolution.entry_ids
            )
            if not fired:
                continue
            if trade_price <= 0:
                warnings.add(
                    f"Skipped entry on {bar.date.isoformat()}: non-positive {price_field} price."
                )
                continue
            portfolio.buy_all(trade_price)
            trades.append(Trade(date=bar.date, action=TradeAction.BUY, price=trade_price))
            _LOGGER.info("BUY on %s at %.2f", bar.date.isoformat(), trade_price)
            continue

        if resolution.exit_ids:
            fired = any(
                evaluator.evaluate(block_id, context) is True
                for block_id in resolution.exit_ids
            )
        else:
            fired = _default_exit_triggered(trade_price, portfolio.entry_price)
        if not fired:
            continue
        if trade_price <= 0:
            warnings.add(
                f"Skipped exit on {bar.date.isoformat()}: non-positive {price_field} price."
            )
            continue
        portfolio.sell_all(trade_price)
        trades.append(Trade(date=bar.date, action=TradeAction.SELL, price=trade_price))
        _LOGGER.info("SELL on %s at %.2f", bar.date.isoformat(), trade_price)

    if not portfolio.is_flat:
        last_bar = bars[-1]
        final_price = last_bar.price(price_field)
        portfolio.sell_all(final_price)
        trades.append(Trade(date=last_bar.date, action=TradeAction.SELL, price=final_price))
        _LOGGER.info("Final SELL on %s at %.2f", last_bar.date.isoformat(), final_price)

    final_capital = portfolio.cash
    total_return_pct = (final_capital - initial_capital) / initial_capital * 100.0
    _LOGGER.info(
        "Backtest completed with %d trades: final capital %.2f, total return %.2f%%",
        len(trades),
        final_capital,
        total_return_pct,
    )
    return BacktestResult(
        trades=tuple(trades),
        initial_capital=float(initial_capital),
        final_capital=float(final_capital),
        total_return_pct=float(total_return_pct),
        warnings=warnings.as_tuple(),
    )


def run_backtest_batch(jobs: Sequence[BacktestJob], max_workers: int = 4) -> list[BacktestResult]:
    """
    Run independent backtests concurrently.

    Runs share no mutable state; results are returned in input order.

    Args:
        jobs: Backtest inputs.
        max_workers: Maximum worker threads.

    Returns:
        One result per job.
    """
    if not jobs:
        return []
    safe_workers = max(1, min(int(max_workers), len(jobs)))
    with ThreadPoolExecutor(
        max_workers=safe_workers, thread_name_prefix="tradebricks-backtest"
    ) as executor:
        futures = [
            executor.submit(
                run_backtest,
                graph=job.graph,
                bars=job.bars,
                initial_capital=job.initial_capital,
                price_field=job.price_field,
            )
            for job in jobs
        ]
        return [future.result() for future in futures]
