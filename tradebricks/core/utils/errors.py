"""Domain-specific error taxonomy for TradeBricks."""

from __future__ import annotations


class TradeBricksError(Exception):
    """Base TradeBricks error with CLI exit-code metadata."""

    exit_code: int = 1
    error_code: str = "tradebricks_error"


class ConfigLoadError(TradeBricksError, ValueError):
    """Configuration loading/validation error."""

    exit_code = 2
    error_code = "config_error"


class DataFetchError(TradeBricksError, ConnectionError):
    """Price data transport/retry error."""

    exit_code = 3
    error_code = "data_fetch_error"


class DataValidationError(TradeBricksError, ValueError):
    """Price series schema/ordering error."""

    exit_code = 4
    error_code = "data_validation_error"


class NoMarketDataError(DataValidationError):
    """No bars are available for the requested symbol and date range."""

    error_code = "no_market_data"


class CacheError(TradeBricksError, RuntimeError):
    """Cache read/write error."""

    exit_code = 5
    error_code = "cache_error"


class GraphStructureError(TradeBricksError, ValueError):
    """Strategy graph document or connection structure is invalid."""

    exit_code = 6
    error_code = "graph_structure_error"


class BacktestError(TradeBricksError, ValueError):
    """Backtest request parameters are invalid."""

    exit_code = 7
    error_code = "backtest_error"


class ArtifactError(TradeBricksError, RuntimeError):
    """Artifact write error."""

    exit_code = 8
    error_code = "artifact_error"


def exit_code_for_exception(exc: Exception) -> int:
    """
    Resolve process exit code for an exception.

    Args:
        exc: Raised exception.

    Returns:
        Integer process exit code.
    """
    return int(getattr(exc, "exit_code", 1))
