"""Service-layer workflows for CLI orchestration."""

from tradebricks.core.services.backtest_service import (
    GraphInspection,
    RunOutcome,
    inspect_strategy_graph,
    load_price_bars,
    new_run_manifest,
    run_backtest_from_config,
    run_strategy_backtest,
)

__all__ = [
    "GraphInspection",
    "RunOutcome",
    "inspect_strategy_graph",
    "load_price_bars",
    "new_run_manifest",
    "run_backtest_from_config",
    "run_strategy_backtest",
]
