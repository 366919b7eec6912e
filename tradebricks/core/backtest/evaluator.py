"""Per-bar memoized evaluation of strategy graph blocks."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from tradebricks.core.backtest import indicators
from tradebricks.core.backtest.types import PortfolioState, PriceBar
from tradebricks.core.graph.model import (
    INDICATOR_KINDS,
    PRICE_READING_KINDS,
    Block,
    BlockKind,
    BollingerBandsParams,
    ComparisonParams,
    MovingAverageParams,
    PriceParams,
    RSIParams,
    StrategyGraph,
)
from tradebricks.core.utils.logging import get_logger

Value = float | bool
_LOGGER = get_logger(__name__)
_OPERAND_PORTS: dict[str, int] = {"input1": 0, "input2": 1}


@dataclass(frozen=True)
class Evaluation:
    """Block value, plus the reason when it is a substituted fallback."""

    value: Value
    fallback_reason: str | None = None

    @classmethod
    def ok(cls, value: Value) -> Evaluation:
        return cls(value)

    @classmethod
    def fallback(cls, value: Value, reason: str) -> Evaluation:
        return cls(value, reason)

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None


class WarningCollector:
    """Ordered, de-duplicated anomaly messages for one backtest run."""

    def __init__(self) -> None:
        self._messages: dict[str, None] = {}

    def add(self, message: str) -> None:
        if message in self._messages:
            return
        self._messages[message] = None
        _LOGGER.warning(message)

    def extend(self, messages: Sequence[str]) -> None:
        for message in messages:
            self.add(message)

    def as_tuple(self) -> tuple[str, ...]:
        return tuple(self._messages)


@dataclass
class EvaluationContext:
    """
    Evaluation scope for a single bar.

    The value cache and recursion stack live only as long as the context;
    the simulator builds a new one for every bar.
    """

    bar_index: int
    bars: Sequence[PriceBar]
    closes: Sequence[float]
    position: PortfolioState | None = None
    cache: dict[tuple[str, int], Value] = field(default_factory=dict)
    stack: set[str] = field(default_factory=set)

    @property
    def current_bar(self) -> PriceBar:
        return self.bars[self.bar_index]

    @property
    def window(self) -> Sequence[PriceBar]:
        return self.bars[: self.bar_index + 1]

    @property
    def window_closes(self) -> Sequence[float]:
        return self.closes[: self.bar_index + 1]


def fallback_value(block: Block, context: EvaluationContext) -> Value:
    """Kind-appropriate substitute when a block cannot be evaluated."""
    if block.kind is BlockKind.RSI:
        return indicators.NEUTRAL_RSI
    if block.kind in PRICE_READING_KINDS or block.kind in INDICATOR_KINDS:
        return context.current_bar.close
    return False


def _is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Value) -> bool:
    """Trigger semantics: ``True``, or any non-zero, non-NaN number."""
    if isinstance(value, bool):
        return value
    return _is_number(value) and not math.isnan(value) and value != 0


class GraphEvaluator:
    """
    Recursive block evaluator with ``(block_id, bar_index)`` memoization.

    A block is computed at most once per bar regardless of fan-in. Failures
    never propagate: each yields a kind-appropriate fallback and a warning.
    """

    def __init__(self, graph: StrategyGraph, warnings: WarningCollector | None = None) -> None:
        self._graph = graph
        self._warnings = warnings if warnings is not None else WarningCollector()
        self._rules: dict[BlockKind, Callable[[Block, EvaluationContext], Evaluation]] = {
            BlockKind.PRICE: self._evaluate_price,
            BlockKind.MARKET_DATA: self._evaluate_price,
            BlockKind.MOVING_AVERAGE: self._evaluate_moving_average,
            BlockKind.RSI: self._evaluate_rsi,
            BlockKind.BOLLINGER_BANDS: self._evaluate_bollinger_bands,
            BlockKind.COMPARISON: self._evaluate_comparison,
            BlockKind.ENTRY_CONDITION: self._evaluate_condition,
            BlockKind.EXIT_CONDITION: self._evaluate_condition,
        }

    @property
    def warnings(self) -> WarningCollector:
        return self._warnings

    def evaluate(self, block_id: str, context: EvaluationContext) -> Value:
        """Return the block's value for the context's bar."""
        cache_key = (block_id, context.bar_index)
        if cache_key in context.cache:
            return context.cache[cache_key]

        if block_id not in self._graph:
            self._warnings.add(f"Block '{block_id}' does not exist in the strategy graph.")
            return False

        block = self._graph.block(block_id)
        if block_id in context.stack:
            self._warnings.add(f"Cycle detected while evaluating block '{block_id}'.")
            return fallback_value(block, context)

        context.stack.add(block_id)
        try:
            outcome = self._evaluate_block(block, context)
        finally:
            context.stack.discard(block_id)

        if outcome.fallback_reason is not None:
            self._warnings.add(outcome.fallback_reason)
        context.cache[cache_key] = outcome.value
        return outcome.value

    def _evaluate_block(self, block: Block, context: EvaluationContext) -> Evaluation:
        rule = self._rules.get(block.kind)
        if rule is None:
            return Evaluation.fallback(
                False, f"Unsupported block kind '{block.label}' for block '{block.id}'."
            )
        try:
            return rule(block, context)
        except Exception as exc:
            _LOGGER.exception("Error evaluating block %s of kind %s", block.id, block.label)
            return Evaluation.fallback(
                fallback_value(block, context),
                f"Error evaluating {block.label} block '{block.id}': {exc}",
            )

    def _evaluate_price(self, block: Block, context: EvaluationContext) -> Evaluation:
        params = block.params
        assert isinstance(params, PriceParams)
        return Evaluation.ok(context.current_bar.price(params.price_field))

    def _evaluate_moving_average(self, block: Block, context: EvaluationContext) -> Evaluation:
        params = block.params
        assert isinstance(params, MovingAverageParams)
        if params.period is None:
            return Evaluation.fallback(
                context.current_bar.close,
                f"Invalid moving average period for block '{block.id}'; using current close.",
            )
        return Evaluation.ok(
            indicators.simple_moving_average(context.window_closes, params.period)
        )

    def _evaluate_rsi(self, block: Block, context: EvaluationContext) -> Evaluation:
        params = block.params
        assert isinstance(params, RSIParams)
        if params.period is None:
            return Evaluation.fallback(
                indicators.NEUTRAL_RSI,
                f"Invalid RSI period for block '{block.id}'; using neutral RSI 50.",
            )
        return Evaluation.ok(
            indicators.rsi(context.window_closes, context.bar_index, params.period)
        )

    def _evaluate_bollinger_bands(self, block: Block, context: EvaluationContext) -> Evaluation:
        params = block.params
        assert isinstance(params, BollingerBandsParams)
        if params.period is None or params.width is None:
            return Evaluation.fallback(
                context.current_bar.close,
                f"Invalid Bollinger band parameters for block '{block.id}'; using current close.",
            )
        bands = indicators.bollinger_bands(context.window_closes, params.period, params.width)
        return Evaluation.ok(getattr(bands, params.output))

    def _evaluate_comparison(self, block: Block, context: EvaluationContext) -> Evaluation:
        params = block.params
        assert isinstance(params, ComparisonParams)
        operands: list[float | None] = [params.value1, params.value2]

        if operands[0] is None or operands[1] is None:
            for connection in self._graph.incoming(block.id):
                slot = _OPERAND_PORTS.get(connection.target_port or "")
                if slot is None:
                    continue
                upstream = self.evaluate(connection.source, context)
                operands[slot] = float(upstream) if _is_number(upstream) else None

        left, right = operands
        if left is None or right is None:
            missing = [port for port, slot in _OPERAND_PORTS.items() if operands[slot] is None]
            return Evaluation.fallback(
                False,
                f"Comparison block '{block.id}' is missing operand(s): {', '.join(missing)}.",
            )
        if params.operator is None:
            return Evaluation.fallback(
                False,
                f"Comparison block '{block.id}' has unknown operator '{params.raw_operator}'.",
            )
        return Evaluation.ok(params.operator.apply(left, right))

    def _evaluate_condition(self, block: Block, context: EvaluationContext) -> Evaluation:
        for connection in self._graph.outgoing(block.id):
            if self.evaluate(connection.target, context) is True:
                return Evaluation.ok(True)
        return Evaluation.ok(False)
