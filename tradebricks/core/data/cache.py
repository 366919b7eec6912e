"""Parquet caching for daily OHLCV data."""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path

import pandas as pd

from tradebricks.core.data.series import empty_ohlcv_frame, normalize_ohlcv_frame
from tradebricks.core.utils.errors import CacheError
from tradebricks.core.utils.logging import get_logger

Fetcher = Callable[[str, str, str], pd.DataFrame]
_SYMBOL_SANITIZE_PATTERN = re.compile(r"[^A-Za-z0-9_.-]+")
_DATE_FORMAT = "%Y-%m-%d"


def _utc_day(date_str: str) -> pd.Timestamp:
    return pd.to_datetime(date_str, utc=True, errors="raise")


class ParquetCache:
    """One parquet file per symbol; requests only fetch ranges the file does not cover."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = cache_dir.expanduser().resolve()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def cache_path(self, symbol: str) -> Path:
        """Return the parquet path for a symbol."""
        clean_symbol = _SYMBOL_SANITIZE_PATTERN.sub("_", symbol.strip())
        if not clean_symbol:
            raise ValueError("Symbol cannot be empty.")
        return self.cache_dir / f"{clean_symbol}.parquet"

    def load(self, symbol: str) -> pd.DataFrame | None:
        """Return cached bars for a symbol, or ``None`` when nothing is cached."""
        path = self.cache_path(symbol)
        if not path.exists():
            return None
        try:
            cached = pd.read_parquet(path, engine="pyarrow")
        except Exception as exc:
            raise CacheError(
                f"Failed to read cache for symbol '{symbol}' at {path}: {exc}"
            ) from exc
        return normalize_ohlcv_frame(cached)

    def save(self, symbol: str, frame: pd.DataFrame) -> None:
        """Overwrite the cached bars for a symbol."""
        path = self.cache_path(symbol)
        try:
            normalize_ohlcv_frame(frame).to_parquet(path, engine="pyarrow", index=True)
        except Exception as exc:
            raise CacheError(
                f"Failed to write cache for symbol '{symbol}' at {path}: {exc}"
            ) from exc

    def _missing_ranges(
        self, cached: pd.DataFrame, start: pd.Timestamp, end: pd.Timestamp
    ) -> list[tuple[pd.Timestamp, pd.Timestamp]]:
        if cached.empty:
            return [(start, end)]
        ranges: list[tuple[pd.Timestamp, pd.Timestamp]] = []
        cache_start = cached.index.min()
        cache_end = cached.index.max()
        if start < cache_start:
            ranges.append((start, cache_start - pd.Timedelta(days=1)))
        if end > cache_end:
            ranges.append((cache_end + pd.Timedelta(days=1), end))
        return ranges

    def get_ohlcv(self, symbol: str, start: str, end: str, fetcher: Fetcher) -> pd.DataFrame:
        """
        Return bars for ``[start, end]``, fetching and caching uncovered edges.

        Args:
            symbol: Provider symbol identifier.
            start: Inclusive start date in ``YYYY-MM-DD`` format.
            end: Inclusive end date in ``YYYY-MM-DD`` format.
            fetcher: Provider fetch function for a date range.

        Returns:
            OHLCV dataframe restricted to the requested range.
        """
        start_ts = _utc_day(start)
        end_ts = _utc_day(end)
        if start_ts > end_ts:
            raise ValueError("Start date must be before or equal to end date.")

        cached = self.load(symbol)
        merged = cached if cached is not None else empty_ohlcv_frame()
        missing = self._missing_ranges(merged, start_ts, end_ts)
        if missing:
            frames = [merged] if not merged.empty else []
            for range_start, range_end in missing:
                get_logger(__name__).info(
                    "Cache miss for %s: fetching %s to %s",
                    symbol,
                    range_start.strftime(_DATE_FORMAT),
                    range_end.strftime(_DATE_FORMAT),
                )
                fetched = normalize_ohlcv_frame(
                    fetcher(
                        symbol,
                        range_start.strftime(_DATE_FORMAT),
                        range_end.strftime(_DATE_FORMAT),
                    )
                )
                if not fetched.empty:
                    frames.append(fetched)
            merged = normalize_ohlcv_frame(pd.concat(frames)) if frames else empty_ohlcv_frame()
            self.save(symbol, merged)

        in_range = merged.loc[(merged.index >= start_ts) & (merged.index <= end_ts)]
        return in_range if not in_range.empty else empty_ohlcv_frame()
