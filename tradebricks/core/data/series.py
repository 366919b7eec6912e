"""OHLCV frame normalization and conversion to price bars."""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd

from tradebricks.core.backtest.types import PriceBar
from tradebricks.core.utils.logging import get_logger

OHLCV_COLUMNS: tuple[str, str, str, str, str] = ("open", "high", "low", "close", "volume")


def empty_ohlcv_frame() -> pd.DataFrame:
    """Create an empty OHLCV dataframe with a UTC datetime index."""
    empty_index = pd.DatetimeIndex([], tz="UTC", name="date")
    return pd.DataFrame(columns=list(OHLCV_COLUMNS), index=empty_index, dtype=float)


def normalize_ohlcv_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize provider output to a sorted, de-duplicated, UTC-indexed OHLCV frame.

    Accepts either a ``DatetimeIndex`` or a ``date`` column. Rows missing any of
    open/high/low/close are dropped; missing volume becomes ``0.0``.
    """
    if frame.empty:
        return empty_ohlcv_frame()

    normalized = frame.copy()
    if "date" in normalized.columns:
        normalized["date"] = pd.to_datetime(normalized["date"], utc=True, errors="coerce")
        normalized = normalized.set_index("date")
    elif isinstance(normalized.index, pd.DatetimeIndex):
        normalized.index = pd.to_datetime(normalized.index, utc=True, errors="coerce")
    else:
        raise ValueError("OHLCV dataframe must have a DatetimeIndex or a 'date' column.")

    normalized = normalized.loc[~normalized.index.isna()]
    normalized.index.name = "date"
    for column in OHLCV_COLUMNS:
        if column not in normalized.columns:
            normalized[column] = pd.NA
        normalized[column] = pd.to_numeric(normalized[column], errors="coerce")

    normalized = normalized.dropna(subset=["open", "high", "low", "close"])
    normalized["volume"] = normalized["volume"].fillna(0.0)
    normalized = normalized.loc[:, list(OHLCV_COLUMNS)].astype(float).sort_index(kind="mergesort")
    normalized = normalized.loc[~normalized.index.duplicated(keep="last")]
    return normalized if not normalized.empty else empty_ohlcv_frame()


def frame_to_price_bars(frame: pd.DataFrame) -> list[PriceBar]:
    """Convert a normalized OHLCV frame to ascending daily price bars."""
    normalized = normalize_ohlcv_frame(frame)
    return [
        PriceBar(
            date=timestamp.date(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )
        for timestamp, row in zip(normalized.index, normalized.itertuples(index=False))
    ]


def log_price_summary(symbol: str, bars: Sequence[PriceBar]) -> None:
    """Log starting/ending/min/max closes so odd data is visible before a run."""
    logger = get_logger(__name__)
    if not bars:
        logger.warning("Empty price series for %s; summary skipped.", symbol)
        return
    closes = [bar.close for bar in bars]
    logger.info(
        "Price summary for %s: start=%.2f end=%.2f min=%.2f max=%.2f bars=%d",
        symbol,
        closes[0],
        closes[-1],
        min(closes),
        max(closes),
        len(bars),
    )
