"""Price data access and caching interfaces."""

from tradebricks.core.data.base import DataProvider
from tradebricks.core.data.cache import ParquetCache
from tradebricks.core.data.csv_provider import CsvDataProvider
from tradebricks.core.data.eodhd_provider import EODHDProvider
from tradebricks.core.data.series import frame_to_price_bars, log_price_summary

__all__ = [
    "CsvDataProvider",
    "DataProvider",
    "EODHDProvider",
    "ParquetCache",
    "frame_to_price_bars",
    "log_price_summary",
]
