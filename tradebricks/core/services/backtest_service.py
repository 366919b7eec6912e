"""Programmatic service workflows for TradeBricks backtest operations."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd

from tradebricks.core.backtest.engine import run_backtest
from tradebricks.core.backtest.metrics import (
    build_equity_curve,
    calculate_max_drawdown,
    summarize_result,
)
from tradebricks.core.backtest.types import BacktestResult, PriceBar
from tradebricks.core.config import AppConfig, dump_config_to_yaml, load_config
from tradebricks.core.data.base import DataProvider
from tradebricks.core.data.cache import ParquetCache
from tradebricks.core.data.csv_provider import CsvDataProvider
from tradebricks.core.data.eodhd_provider import EODHDProvider
from tradebricks.core.data.series import frame_to_price_bars, log_price_summary
from tradebricks.core.graph.loader import load_strategy_graph
from tradebricks.core.graph.model import StrategyGraph
from tradebricks.core.graph.resolver import CandidateResolution, resolve_candidates
from tradebricks.core.utils.errors import ArtifactError, NoMarketDataError
from tradebricks.core.utils.logging import get_logger
from tradebricks.core.utils.manifest import RunManifestWriter

ProgressCallback = Callable[[str], None]
_LOGGER_NAME = "tradebricks.core.services.backtest_service"


@dataclass(frozen=True)
class RunOutcome:
    """Result payload for one completed backtest run."""

    run_id: str
    symbol: str
    result: BacktestResult
    metrics: dict[str, float]
    artifact_paths: list[str]
    manifest_path: Path


@dataclass(frozen=True)
class GraphInspection:
    """Entry/exit classification of a strategy graph without running it."""

    graph_path: Path
    block_count: int
    connection_count: int
    resolution: CandidateResolution


def _emit_progress(callback: ProgressCallback | None, message: str) -> None:
    """Emit optional progress messages."""
    if callback is not None:
        callback(message)


def new_run_id() -> str:
    """Return a sortable, unique run identifier."""
    return f"{datetime.now(tz=UTC).strftime('%Y%m%dT%H%M%SZ')}-{uuid.uuid4().hex[:8]}"


def new_run_manifest(app_config: AppConfig, command: str = "run") -> RunManifestWriter:
    """Create a manifest writer under a fresh run directory."""
    run_id = new_run_id()
    return RunManifestWriter(
        output_dir=app_config.output.artifacts_dir / run_id,
        command=command,
        run_id=run_id,
    )


def build_provider(app_config: AppConfig) -> DataProvider:
    """Build the configured price provider."""
    if app_config.data.provider == "csv":
        assert app_config.data.csv_path is not None
        return CsvDataProvider(app_config.data.csv_path)
    return EODHDProvider()


def load_price_bars(
    app_config: AppConfig,
    provider: DataProvider | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[PriceBar]:
    """
    Fetch bars for the configured symbol and date range.

    EODHD requests go through the parquet cache; CSV files are read directly.

    Raises:
        NoMarketDataError: If the provider returns no bars in range.
    """
    logger = get_logger(_LOGGER_NAME)
    symbol = app_config.data.symbol
    start = app_config.data.start.isoformat()
    end = app_config.data.end.isoformat()
    data_provider = provider or build_provider(app_config)

    logger.info("Loading %s data from %s to %s", symbol, start, end)
    _emit_progress(progress_callback, f"Loading {symbol} data from {start} to {end}")
    if isinstance(data_provider, EODHDProvider):
        cache = ParquetCache(app_config.data.cache_dir)
        frame = cache.get_ohlcv(
            symbol=symbol, start=start, end=end, fetcher=data_provider.fetch_ohlcv
        )
        bars = frame_to_price_bars(frame)
    else:
        bars = data_provider.fetch_bars(symbol, start, end)

    if not bars:
        raise NoMarketDataError(
            f"No data available for the requested range (symbol '{symbol}', "
            f"range {start} to {end})."
        )
    log_price_summary(symbol, bars)
    _emit_progress(
        progress_callback,
        f"{symbol}: bars={len(bars)}, date_range=[{bars[0].date.isoformat()}, "
        f"{bars[-1].date.isoformat()}]",
    )
    return bars


def _write_trades_csv(result: BacktestResult, output_dir: Path, filename: str) -> Path:
    """Persist the trade ledger as CSV."""
    frame = pd.DataFrame(
        [
            {"date": trade.date.isoformat(), "action": trade.action.value, "price": trade.price}
            for trade in result.trades
        ],
        columns=["date", "action", "price"],
    )
    path = output_dir / filename
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        frame.to_csv(path, index=False)
    except OSError as exc:
        raise ArtifactError(f"Failed to write trades CSV at {path}: {exc}") from exc
    return path


def _write_resolved_config(app_config: AppConfig, output_dir: Path) -> Path:
    path = output_dir / "resolved_config.yaml"
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_config_to_yaml(app_config), encoding="utf-8")
    except OSError as exc:
        raise ArtifactError(f"Failed to write resolved config at {path}: {exc}") from exc
    return path


def run_strategy_backtest(
    app_config: AppConfig,
    config_path: Path | None = None,
    provider: DataProvider | None = None,
    progress_callback: ProgressCallback | None = None,
    manifest_writer: RunManifestWriter | None = None,
) -> RunOutcome:
    """
    Run one strategy graph backtest and persist its artifacts.

    A failed run still writes a manifest with ``status=failed`` before the
    exception propagates.

    Args:
        app_config: Validated application config.
        config_path: Optional config file path recorded in the manifest.
        provider: Optional price provider; built from config when omitted.
        progress_callback: Optional sink for human-readable progress lines.
        manifest_writer: Optional pre-built manifest writer; its run id and
            output directory name the run artifacts.

    Returns:
        Completed run outcome.
    """
    if manifest_writer is None:
        manifest_writer = new_run_manifest(app_config)
    resolved_run_id = manifest_writer.run_id
    run_artifact_dir = manifest_writer.output_dir
    manifest_writer.set_inputs(config_path=config_path, graph_path=app_config.strategy.graph_path)
    start = app_config.data.start.isoformat()
    end = app_config.data.end.isoformat()
    manifest_writer.set_context(
        symbol=app_config.data.symbol,
        start=start,
        end=end,
        initial_capital=app_config.backtest.initial_capital,
        price_field=app_config.backtest.price_field,
    )

    try:
        graph = load_strategy_graph(app_config.strategy.graph_path)
        bars = load_price_bars(app_config, provider=provider, progress_callback=progress_callback)
        result = run_backtest(
            graph=graph,
            bars=bars,
            initial_capital=app_config.backtest.initial_capital,
            price_field=app_config.backtest.price_field,
            symbol=app_config.data.symbol,
            start=start,
            end=end,
        )
        metrics = summarize_result(result)
        equity_curve = build_equity_curve(
            bars=bars,
            trades=result.trades,
            initial_capital=app_config.backtest.initial_capital,
            price_field=app_config.backtest.price_field,
        )
        metrics["max_drawdown"] = calculate_max_drawdown(equity_curve)

        artifact_paths = [str(_write_resolved_config(app_config, run_artifact_dir))]
        if app_config.output.save_trades_csv:
            trades_path = _write_trades_csv(
                result, run_artifact_dir, app_config.output.trades_filename
            )
            artifact_paths.append(str(trades_path))

        manifest_writer.mark_success(
            metrics=metrics,
            artifact_paths=artifact_paths,
            warnings=list(result.warnings),
        )
        manifest_path = manifest_writer.write()
    except Exception as exc:
        try:
            manifest_writer.mark_failure(exc)
            manifest_writer.write()
        except Exception as manifest_exc:
            get_logger(_LOGGER_NAME).error(
                "Failed to write failure manifest for run %s: %s", resolved_run_id, manifest_exc
            )
        raise

    _emit_progress(
        progress_callback, f"Run {resolved_run_id} finished with {len(result.trades)} trades"
    )
    return RunOutcome(
        run_id=resolved_run_id,
        symbol=app_config.data.symbol,
        result=result,
        metrics=metrics,
        artifact_paths=artifact_paths,
        manifest_path=manifest_path,
    )


def run_backtest_from_config(
    config_path: Path,
    provider: DataProvider | None = None,
    progress_callback: ProgressCallback | None = None,
) -> RunOutcome:
    """Load config from YAML and run one backtest."""
    app_config = load_config(config_path)
    return run_strategy_backtest(
        app_config=app_config,
        config_path=config_path,
        provider=provider,
        progress_callback=progress_callback,
    )


def inspect_strategy_graph(graph_path: Path) -> GraphInspection:
    """Load a strategy graph and resolve its entry/exit candidates."""
    graph: StrategyGraph = load_strategy_graph(graph_path)
    resolution = resolve_candidates(graph)
    return GraphInspection(
        graph_path=graph_path.expanduser().resolve(),
        block_count=len(graph),
        connection_count=len(graph.connections),
        resolution=resolution,
    )
