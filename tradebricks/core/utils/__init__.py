"""Utility helpers."""

from tradebricks.core.utils.errors import (
    ArtifactError,
    BacktestError,
    CacheError,
    ConfigLoadError,
    DataFetchError,
    DataValidationError,
    GraphStructureError,
    NoMarketDataError,
    TradeBricksError,
    exit_code_for_exception,
)
from tradebricks.core.utils.env import load_dotenv
from tradebricks.core.utils.logging import configure_logging, get_logger
from tradebricks.core.utils.manifest import RunManifestWriter

__all__ = [
    "ArtifactError",
    "BacktestError",
    "CacheError",
    "ConfigLoadError",
    "DataFetchError",
    "DataValidationError",
    "GraphStructureError",
    "NoMarketDataError",
    "RunManifestWriter",
    "TradeBricksError",
    "configure_logging",
    "exit_code_for_exception",
    "get_logger",
    "load_dotenv",
]
