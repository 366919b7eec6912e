"""Typed strategy graph: blocks, connections and arena-style storage."""

from __future__ import annotations

import operator
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from tradebricks.core.utils.errors import GraphStructureError

BandOutput = Literal["upper", "middle", "lower"]
Purpose = Literal["entry", "exit"]

EQUALITY_TOLERANCE: float = 1e-5


class BlockKind(str, Enum):
    """Block kinds understood by the strategy editor."""

    MARKET_DATA = "market_data"
    PRICE = "price"
    MOVING_AVERAGE = "moving_average"
    RSI = "rsi"
    BOLLINGER_BANDS = "bollinger_bands"
    COMPARISON = "comparison"
    ENTRY_CONDITION = "entry_condition"
    EXIT_CONDITION = "exit_condition"
    TRADE_SIGNAL = "trade_signal"
    MARKET_ORDER = "market_order"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"
    POSITION_SIZING = "position_sizing"
    RISK_REWARD = "risk_reward"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str | None) -> BlockKind:
        """Map an editor type id onto a kind, ``UNKNOWN`` if unrecognized."""
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN


PRICE_READING_KINDS: frozenset[BlockKind] = frozenset({BlockKind.PRICE, BlockKind.MARKET_DATA})
INDICATOR_KINDS: frozenset[BlockKind] = frozenset(
    {BlockKind.MOVING_AVERAGE, BlockKind.RSI, BlockKind.BOLLINGER_BANDS}
)


def _equal_within_tolerance(left: float, right: float) -> bool:
    return abs(left - right) < EQUALITY_TOLERANCE


class ComparisonOperator(str, Enum):
    """Binary operators supported by comparison blocks."""

    GT = ">"
    LT = "<"
    EQ = "=="
    GE = ">="
    LE = "<="

    @classmethod
    def parse(cls, raw: Any) -> ComparisonOperator | None:
        """Accept symbols or editor names (``greater_than`` ...); ``None`` if unknown."""
        if not isinstance(raw, str):
            return None
        token = raw.strip().lower()
        return _OPERATOR_ALIASES.get(token)

    def apply(self, left: float, right: float) -> bool:
        return _OPERATOR_FUNCTIONS[self](left, right)


_OPERATOR_ALIASES: dict[str, ComparisonOperator] = {
    ">": ComparisonOperator.GT,
    "greater_than": ComparisonOperator.GT,
    "<": ComparisonOperator.LT,
    "less_than": ComparisonOperator.LT,
    "==": ComparisonOperator.EQ,
    "=": ComparisonOperator.EQ,
    "equal_to": ComparisonOperator.EQ,
    ">=": ComparisonOperator.GE,
    "greater_than_or_equal": ComparisonOperator.GE,
    "<=": ComparisonOperator.LE,
    "less_than_or_equal": ComparisonOperator.LE,
}

_OPERATOR_FUNCTIONS: dict[ComparisonOperator, Callable[[float, float], bool]] = {
    ComparisonOperator.GT: operator.gt,
    ComparisonOperator.LT: operator.lt,
    ComparisonOperator.EQ: _equal_within_tolerance,
    ComparisonOperator.GE: operator.ge,
    ComparisonOperator.LE: operator.le,
}


@dataclass(frozen=True)
class PriceParams:
    price_field: str = "close"


@dataclass(frozen=True)
class MovingAverageParams:
    """``period`` is ``None`` when the configured value was unusable."""

    period: int | None = 20


@dataclass(frozen=True)
class RSIParams:
    period: int | None = 14


@dataclass(frozen=True)
class BollingerBandsParams:
    period: int | None = 20
    width: float | None = 2.0
    output: BandOutput = "middle"


@dataclass(frozen=True)
class ComparisonParams:
    operator: ComparisonOperator | None = ComparisonOperator.GT
    raw_operator: str = ">"
    value1: float | None = None
    value2: float | None = None


@dataclass(frozen=True)
class ConditionParams:
    """Entry/exit condition blocks carry no parameters."""


@dataclass(frozen=True)
class PassiveParams:
    """Raw parameters of kinds the engine does not evaluate."""

    values: Mapping[str, Any] = field(default_factory=dict)


BlockParams = (
    PriceParams
    | MovingAverageParams
    | RSIParams
    | BollingerBandsParams
    | ComparisonParams
    | ConditionParams
    | PassiveParams
)


@dataclass(frozen=True)
class Block:
    """One strategy node."""

    id: str
    kind: BlockKind
    params: BlockParams
    purpose: Purpose | None = None
    type_name: str = ""

    @property
    def label(self) -> str:
        """Human-readable kind for messages, keeping unknown raw type ids."""
        if self.kind is BlockKind.UNKNOWN:
            return self.type_name or "<missing type>"
        return self.kind.value


@dataclass(frozen=True)
class Connection:
    """Directed edge from ``source`` to ``target`` with optional port names."""

    source: str
    target: str
    source_port: str | None = None
    target_port: str | None = None


class StrategyGraph:
    """
    Read-only strategy graph with an id-to-index arena.

    Construction validates structure: block ids must be unique and every
    connection must reference existing blocks.
    """

    def __init__(
        self, blocks: Iterable[Block] = (), connections: Iterable[Connection] = ()
    ) -> None:
        self._blocks: tuple[Block, ...] = tuple(blocks)
        self._connections: tuple[Connection, ...] = tuple(connections)

        self._index: dict[str, int] = {}
        for position, block in enumerate(self._blocks):
            if block.id in self._index:
                raise GraphStructureError(f"Duplicate block id '{block.id}' in strategy graph.")
            self._index[block.id] = position

        self._outgoing: dict[str, list[Connection]] = {block.id: [] for block in self._blocks}
        self._incoming: dict[str, list[Connection]] = {block.id: [] for block in self._blocks}
        for connection in self._connections:
            for endpoint in (connection.source, connection.target):
                if endpoint not in self._index:
                    raise GraphStructureError(
                        f"Connection {connection.source!r} -> {connection.target!r} "
                        f"references unknown block id '{endpoint}'."
                    )
            self._outgoing[connection.source].append(connection)
            self._incoming[connection.target].append(connection)

    @property
    def blocks(self) -> tuple[Block, ...]:
        return self._blocks

    @property
    def connections(self) -> tuple[Connection, ...]:
        return self._connections

    def __len__(self) -> int:
        return len(self._blocks)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._index

    def block(self, block_id: str) -> Block:
        """Return a block by id, raising ``KeyError`` if absent."""
        return self._blocks[self._index[block_id]]

    def outgoing(self, block_id: str) -> tuple[Connection, ...]:
        return tuple(self._outgoing.get(block_id, ()))

    def incoming(self, block_id: str) -> tuple[Connection, ...]:
        return tuple(self._incoming.get(block_id, ()))

    def is_terminal(self, block_id: str) -> bool:
        """True when the block feeds nothing downstream."""
        return not self._outgoing.get(block_id)

    def with_block(self, block: Block) -> StrategyGraph:
        """Return a copy of this graph with one extra block appended."""
        return StrategyGraph([*self._blocks, block], self._connections)

    def unused_block_id(self, base: str) -> str:
        """Return ``base`` or the first ``base-N`` not already taken."""
        candidate = base
        suffix = 1
        while candidate in self._index:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate
