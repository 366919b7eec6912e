"""Strategy graph model, document loading and trigger resolution."""

from tradebricks.core.graph.loader import graph_from_document, load_strategy_graph
from tradebricks.core.graph.model import (
    Block,
    BlockKind,
    ComparisonOperator,
    Connection,
    StrategyGraph,
)
from tradebricks.core.graph.resolver import CandidateResolution, resolve_candidates

__all__ = [
    "Block",
    "BlockKind",
    "CandidateResolution",
    "ComparisonOperator",
    "Connection",
    "StrategyGraph",
    "graph_from_document",
    "load_strategy_graph",
    "resolve_candidates",
]
