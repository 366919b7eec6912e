"""Classify strategy blocks into entry and exit triggers before simulation."""

from __future__ import annotations

from dataclasses import dataclass

from tradebricks.core.graph.model import (
    INDICATOR_KINDS,
    PRICE_READING_KINDS,
    Block,
    BlockKind,
    PriceParams,
    StrategyGraph,
)
from tradebricks.core.utils.logging import get_logger

DEFAULT_ENTRY_ID = "default-entry"
DEGENERATE_ENTRY_KINDS: frozenset[BlockKind] = PRICE_READING_KINDS | INDICATOR_KINDS
_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class CandidateResolution:
    """
    Entry/exit trigger ids for one backtest run.

    ``graph`` is the graph to evaluate, which includes any synthesized
    placeholder entry block; the caller's graph is never modified.
    """

    graph: StrategyGraph
    entry_ids: tuple[str, ...]
    exit_ids: tuple[str, ...]
    warnings: tuple[str, ...] = ()


def _is_entry_candidate(graph: StrategyGraph, block: Block) -> bool:
    if block.kind is BlockKind.ENTRY_CONDITION:
        return True
    if block.kind is BlockKind.COMPARISON:
        return graph.is_terminal(block.id) and block.purpose != "exit"
    return False


def _is_exit_candidate(graph: StrategyGraph, block: Block, entry_ids: set[str]) -> bool:
    if block.kind is BlockKind.EXIT_CONDITION:
        return True
    if block.kind is BlockKind.COMPARISON:
        return (
            graph.is_terminal(block.id)
            and block.purpose != "entry"
            and block.id not in entry_ids
        )
    return False


def resolve_candidates(graph: StrategyGraph) -> CandidateResolution:
    """
    Resolve entry and exit candidates by structure and purpose tags.

    Rules, in order:
    1. ``entry_condition``/``exit_condition`` blocks are always candidates.
    2. Terminal comparisons are entries unless tagged ``exit``, otherwise exits
       unless tagged ``entry``; never both.
    3. With no entries, the first indicator or price block becomes a degenerate
       entry whose numeric value is read as truthy.
    4. With still no entries, a placeholder close-price block is synthesized.

    Args:
        graph: Strategy graph borrowed for this run.

    Returns:
        Candidate resolution in declaration order.
    """
    warnings: list[str] = []
    entry_ids = [block.id for block in graph.blocks if _is_entry_candidate(graph, block)]
    entry_set = set(entry_ids)
    exit_ids = [
        block.id for block in graph.blocks if _is_exit_candidate(graph, block, entry_set)
    ]

    if not entry_ids:
        fallback = next(
            (block for block in graph.blocks if block.kind in DEGENERATE_ENTRY_KINDS),
            None,
        )
        if fallback is not None:
            entry_ids.append(fallback.id)
            warnings.append(
                f"No entry blocks found; using {fallback.label} block '{fallback.id}' "
                "as a degenerate entry trigger. The strategy graph is under-specified."
            )

    if not entry_ids:
        placeholder = Block(
            id=graph.unused_block_id(DEFAULT_ENTRY_ID),
            kind=BlockKind.PRICE,
            params=PriceParams(price_field="close"),
            type_name=BlockKind.PRICE.value,
        )
        graph = graph.with_block(placeholder)
        entry_ids.append(placeholder.id)
        warnings.append(
            f"No entry blocks found, using default price entry '{placeholder.id}'."
        )

    if not exit_ids:
        warnings.append(
            "No exit blocks found, using default exit (5% stop-loss / 20% take-profit)."
        )

    _LOGGER.info(
        "Strategy has %d entry point(s) and %d exit point(s)", len(entry_ids), len(exit_ids)
    )
    return CandidateResolution(
        graph=graph,
        entry_ids=tuple(entry_ids),
        exit_ids=tuple(exit_ids),
        warnings=tuple(warnings),
    )
