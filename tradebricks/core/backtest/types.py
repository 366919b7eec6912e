"""Data structures shared by the backtest engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Literal

PriceField = Literal["open", "high", "low", "close"]
PRICE_FIELDS: tuple[str, str, str, str] = ("open", "high", "low", "close")


@dataclass(frozen=True)
class PriceBar:
    """One daily OHLCV observation."""

    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def price(self, field: str) -> float:
        """Return the named OHLC field."""
        if field not in PRICE_FIELDS:
            raise ValueError(f"Unknown price field: {field!r}")
        return float(getattr(self, field))


class TradeAction(str, Enum):
    """Ledger trade direction."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Trade:
    """One immutable ledger entry."""

    date: date
    action: TradeAction
    price: float


@dataclass
class PortfolioState:
    """Single-position portfolio: either all cash or fully invested."""

    cash: float
    units_held: float = 0.0
    entry_price: float = 0.0

    @property
    def is_flat(self) -> bool:
        return self.units_held <= 0.0

    def buy_all(self, price: float) -> None:
        self.units_held = self.cash / price
        self.entry_price = price
        self.cash = 0.0

    def sell_all(self, price: float) -> None:
        self.cash = self.units_held * price
        self.units_held = 0.0


@dataclass(frozen=True)
class BacktestResult:
    """Container for deterministic backtest outputs."""

    trades: tuple[Trade, ...]
    initial_capital: float
    final_capital: float
    total_return_pct: float
    warnings: tuple[str, ...] = ()
