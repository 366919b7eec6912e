"""Technical indicators over a trailing price window.

Every function here is pure and never raises on short or empty input: it
returns a documented neutral value instead, so graph evaluation always has a
usable number.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import NamedTuple

NEUTRAL_RSI: float = 50.0
_MIN_AVERAGE_LOSS: float = 1e-4


class BollingerBands(NamedTuple):
    """Upper/middle/lower band values for one bar."""

    upper: float
    middle: float
    lower: float


def simple_moving_average(values: Sequence[float], period: int) -> float:
    """
    Average of the last ``min(period, len(values))`` values.

    Short history degrades to a shorter average rather than failing.

    Returns:
        Moving average, or ``0.0`` for an empty input.
    """
    if not values:
        return 0.0
    window = values[-period:]
    return math.fsum(window) / min(period, len(values))


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation (divides by ``n``)."""
    if not values:
        return 0.0
    mean = math.fsum(values) / len(values)
    variance = math.fsum((value - mean) ** 2 for value in values) / len(values)
    return math.sqrt(variance)


def rsi(series: Sequence[float], at_index: int, period: int = 14) -> float:
    """
    Relative Strength Index at ``at_index`` from simple average gain/loss.

    Uses the ``period`` changes ending at ``at_index``.

    Args:
        series: Closing prices, at least ``at_index + 1`` long.
        at_index: Bar index the value is computed for.
        period: Lookback length.

    Returns:
        RSI in ``[0, 100]``, or ``50.0`` when fewer than ``period`` prior bars exist.
    """
    if at_index < period:
        return NEUTRAL_RSI

    gains = 0.0
    losses = 0.0
    for index in range(at_index - period, at_index):
        change = series[index + 1] - series[index]
        if change > 0:
            gains += change
        else:
            losses += abs(change)

    average_gain = gains / period
    average_loss = (losses / period) or _MIN_AVERAGE_LOSS
    relative_strength = average_gain / average_loss
    return 100.0 - 100.0 / (1.0 + relative_strength)


def bollinger_bands(
    values: Sequence[float], period: int = 20, width: float = 2.0
) -> BollingerBands:
    """
    Bollinger bands over the trailing ``period`` window.

    Falls back to the latest value for every band while the window is shorter
    than ``period``.
    """
    if not values:
        return BollingerBands(0.0, 0.0, 0.0)
    if len(values) < period:
        latest = float(values[-1])
        return BollingerBands(latest, latest, latest)

    middle = simple_moving_average(values, period)
    sigma = standard_deviation(values[-period:])
    return BollingerBands(
        upper=middle + width * sigma,
        middle=middle,
        lower=middle - width * sigma,
    )
