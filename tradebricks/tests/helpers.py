"""Test helpers for deterministic backtest cases."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta
from typing import Any

import pandas as pd

from tradebricks.core.backtest.types import PriceBar
from tradebricks.core.graph.loader import graph_from_document
from tradebricks.core.graph.model import StrategyGraph

START_DATE = date(2020, 1, 1)


def make_price_bars(close_values: Sequence[float], start: date = START_DATE) -> list[PriceBar]:
    """Build consecutive daily bars whose OHLC all equal the given closes."""
    return [
        PriceBar(
            date=start + timedelta(days=offset),
            open=float(close),
            high=float(close),
            low=float(close),
            close=float(close),
            volume=1_000.0,
        )
        for offset, close in enumerate(close_values)
    ]


def make_price_frame(close_values: Sequence[float], start: str = "2020-01-01") -> pd.DataFrame:
    """Build deterministic OHLCV dataframe from close values."""
    index = pd.date_range(start, periods=len(close_values), freq="D", tz="UTC", name="date")
    close = pd.Series(close_values, index=index, dtype=float)
    return pd.DataFrame(
        {
            "open": close,
            "high": close,
            "low": close,
            "close": close,
            "volume": 1_000.0,
        },
        index=index,
    )


def block(block_id: str, kind: str, purpose: str | None = None, **params: Any) -> dict[str, Any]:
    """Compact block document entry."""
    document: dict[str, Any] = {"id": block_id, "kind": kind, "params": dict(params)}
    if purpose is not None:
        document["purpose"] = purpose
    return document


def edge(source: str, target: str, target_port: str | None = None) -> dict[str, Any]:
    """Compact connection document entry."""
    return {"source": source, "target": target, "targetHandle": target_port}


def make_graph(
    blocks: Sequence[dict[str, Any]], connections: Sequence[dict[str, Any]] = ()
) -> StrategyGraph:
    """Build a graph from compact block and connection entries."""
    return graph_from_document({"blocks": list(blocks), "connections": list(connections)})


def ma_crossover_graph(fast: int = 5, slow: int = 20) -> StrategyGraph:
    """Fast/slow SMA crossover with tagged entry and exit comparisons."""
    return make_graph(
        [
            block("price", "price"),
            block("ma-fast", "moving_average", period=fast),
            block("ma-slow", "moving_average", period=slow),
            block("cross-up", "comparison", purpose="entry", operator=">"),
            block("cross-down", "comparison", purpose="exit", operator="<"),
        ],
        [
            edge("price", "ma-fast", "input"),
            edge("price", "ma-slow", "input"),
            edge("ma-fast", "cross-up", "input1"),
            edge("ma-slow", "cross-up", "input2"),
            edge("ma-fast", "cross-down", "input1"),
            edge("ma-slow", "cross-down", "input2"),
        ],
    )
