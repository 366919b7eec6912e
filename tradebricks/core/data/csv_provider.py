"""Local CSV price provider."""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from tradebricks.core.data.base import DataProvider
from tradebricks.core.data.series import normalize_ohlcv_frame
from tradebricks.core.utils.errors import DataFetchError, DataValidationError


class CsvDataProvider(DataProvider):
    """
    Serve OHLCV rows from a CSV file with a ``date`` column.

    ``path`` may be a single file, or a directory holding ``<SYMBOL>.csv`` files.
    """

    def __init__(self, path: Path) -> None:
        self.path = path.expanduser().resolve()

    def _csv_path(self, symbol: str) -> Path:
        if self.path.is_dir():
            return self.path / f"{symbol}.csv"
        return self.path

    def fetch_ohlcv(self, symbol: str, start: str, end: str) -> pd.DataFrame:
        csv_path = self._csv_path(symbol)
        if not csv_path.is_file():
            raise DataFetchError(f"CSV price file for symbol '{symbol}' not found: {csv_path}")
        try:
            raw = pd.read_csv(csv_path)
        except Exception as exc:
            raise DataFetchError(f"Failed to read CSV prices from {csv_path}: {exc}") from exc

        raw.columns = [str(column).strip().lower() for column in raw.columns]
        if "date" not in raw.columns:
            raise DataValidationError(f"CSV price file {csv_path} has no 'date' column.")

        frame = normalize_ohlcv_frame(raw)
        start_ts = pd.to_datetime(start, utc=True)
        end_ts = pd.to_datetime(end, utc=True)
        return frame.loc[(frame.index >= start_ts) & (frame.index <= end_ts)]
