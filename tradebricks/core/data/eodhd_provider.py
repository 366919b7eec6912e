"""EOD Historical Data REST price provider."""

from __future__ import annotations

import os
import time
from typing import Any

import pandas as pd
import requests

from tradebricks.core.data.base import DataProvider
from tradebricks.core.data.series import empty_ohlcv_frame, normalize_ohlcv_frame
from tradebricks.core.utils.errors import DataFetchError, DataValidationError
from tradebricks.core.utils.logging import get_logger

REQUIRED_FIELDS: tuple[str, ...] = ("date", "open", "high", "low", "close")
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})
_LOGGER = get_logger(__name__)


def _drop_inconsistent_bars(frame: pd.DataFrame) -> pd.DataFrame:
    """Keep rows whose high/low bracket open and close and whose volume is non-negative."""
    consistent = (
        (frame["high"] >= frame[["open", "close", "low"]].max(axis=1))
        & (frame["low"] <= frame[["open", "close"]].min(axis=1))
        & (frame["volume"] >= 0.0)
    )
    return frame.loc[consistent]


class EODHDProvider(DataProvider):
    """Daily bars from the EODHD ``/eod/{symbol}`` endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://eodhd.com/api",
        session: requests.Session | None = None,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        retry_backoff_seconds: float = 0.5,
    ) -> None:
        """
        Initialize an EODHD provider.

        Args:
            api_key: API token. If omitted, reads from ``EODHD_API_KEY``.
            base_url: Base URL for the EODHD REST API.
            session: Optional requests session for dependency injection.
            timeout_seconds: Request timeout in seconds.
            max_retries: Retry attempts for transient failures.
            retry_backoff_seconds: Base seconds for exponential retry backoff.

        Raises:
            ValueError: If no API key is available or retry settings are negative.
        """
        resolved_api_key = api_key or os.getenv("EODHD_API_KEY")
        if not resolved_api_key:
            raise ValueError(
                "EODHD API key is required. Set EODHD_API_KEY or pass api_key explicitly."
            )
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0.")
        if retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must be >= 0.")

        self._api_key = resolved_api_key
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._retry_backoff_seconds = retry_backoff_seconds

    def _get_json(self, symbol: str, start: str, end: str) -> Any:
        """GET the EOD endpoint, retrying transport errors and retryable statuses."""
        endpoint = f"{self._base_url}/eod/{symbol}"
        params = {
            "api_token": self._api_key,
            "from": start,
            "to": end,
            "period": "d",
            "order": "a",
            "fmt": "json",
        }
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            if attempt > 0 and self._retry_backoff_seconds > 0:
                time.sleep(self._retry_backoff_seconds * (2 ** (attempt - 1)))
            try:
                response = self._session.get(endpoint, params=params, timeout=self._timeout_seconds)
                if response.status_code in RETRYABLE_STATUS_CODES and attempt < self._max_retries:
                    _LOGGER.info(
                        "EODHD returned %s for %s, retrying", response.status_code, symbol
                    )
                    continue
                response.raise_for_status()
                return response.json()
            except requests.exceptions.RequestException as exc:
                last_error = exc
            except ValueError as exc:
                raise DataValidationError(f"Invalid JSON response for symbol '{symbol}'.") from exc

        raise DataFetchError(f"Failed to fetch data for symbol '{symbol}': {last_error}")

    def _payload_to_frame(self, payload: Any, symbol: str) -> pd.DataFrame:
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error") or str(payload)
            raise DataValidationError(f"EODHD error for symbol '{symbol}': {message}")
        if not isinstance(payload, list):
            raise DataValidationError(f"Unexpected EODHD response type for symbol '{symbol}'.")
        if not payload:
            return empty_ohlcv_frame()

        raw = pd.DataFrame(payload)
        missing = [column for column in REQUIRED_FIELDS if column not in raw.columns]
        if missing:
            raise DataValidationError(
                f"EODHD payload is missing required columns for symbol '{symbol}': {missing}"
            )

        normalized = normalize_ohlcv_frame(raw)
        consistent = _drop_inconsistent_bars(normalized)
        if consistent.empty and not normalized.empty:
            raise DataValidationError(
                f"EODHD payload failed OHLCV integrity checks for symbol '{symbol}'."
            )
        return consistent

    def fetch_ohlcv(self, symbol: str, start: str, end: str) -> pd.DataFrame:
        """Fetch and validate daily bars for an inclusive date range."""
        payload = self._get_json(symbol=symbol, start=start, end=end)
        return self._payload_to_frame(payload, symbol)
