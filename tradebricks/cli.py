"""TradeBricks command-line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from tradebricks.core.config import load_config
from tradebricks.core.services.backtest_service import (
    inspect_strategy_graph,
    new_run_manifest,
    run_strategy_backtest,
)
from tradebricks.core.utils.env import load_dotenv
from tradebricks.core.utils.errors import exit_code_for_exception
from tradebricks.core.utils.logging import configure_logging, get_logger
from tradebricks.core.utils.manifest import RunManifestWriter

app = typer.Typer(help="TradeBricks CLI", no_args_is_help=True)

RUN_CONFIG_OPTION = typer.Option(
    ...,
    "--config",
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
    help="Path to YAML configuration file.",
)
INSPECT_GRAPH_OPTION = typer.Option(
    ...,
    "--graph",
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
    help="Path to a strategy graph document (YAML or JSON).",
)

METRIC_ORDER = (
    "initial_capital",
    "final_capital",
    "total_return_pct",
    "trade_count",
    "round_trips",
    "winning_trades",
    "win_rate_pct",
    "average_trade_return_pct",
    "max_drawdown",
)


@app.callback()
def callback() -> None:
    """TradeBricks CLI commands."""


def _print_metrics(metrics: dict[str, float]) -> None:
    """Print backtest metrics in deterministic order."""
    for key in METRIC_ORDER:
        if key in metrics:
            typer.echo(f"{key}={metrics[key]:.6f}")


def _handle_cli_exception(
    logger_name: str,
    context: str,
    exc: Exception,
    manifest_writer: RunManifestWriter | None = None,
) -> None:
    """Log diagnostics, point at any failure manifest, and exit with the typed code."""
    logger = get_logger(logger_name)
    logger.exception("%s failed: %s", context, exc)
    if manifest_writer is not None:
        manifest_path = manifest_writer.output_dir / manifest_writer.manifest_name
        if manifest_path.exists():
            typer.echo(f"manifest={manifest_path}")
    raise typer.Exit(code=exit_code_for_exception(exc)) from None


@app.command("run")
def run(config: Path = RUN_CONFIG_OPTION) -> None:
    """Run a strategy graph backtest from YAML config and write run artifacts."""
    load_dotenv(Path(".env"))
    configure_logging()
    logger_name = __name__
    manifest_writer: RunManifestWriter | None = None

    try:
        app_config = load_config(config)
        manifest_writer = new_run_manifest(app_config)
        outcome = run_strategy_backtest(
            app_config=app_config,
            config_path=config,
            progress_callback=typer.echo,
            manifest_writer=manifest_writer,
        )
    except Exception as exc:
        _handle_cli_exception(
            logger_name=logger_name,
            context="Run command",
            exc=exc,
            manifest_writer=manifest_writer,
        )

    typer.echo(f"run_id={outcome.run_id}")
    typer.echo(f"symbol={outcome.symbol}")
    for trade in outcome.result.trades:
        typer.echo(f"trade={trade.date.isoformat()},{trade.action.value},{trade.price:.6f}")
    _print_metrics(outcome.metrics)
    for message in outcome.result.warnings:
        typer.echo(f"warning={message}")
    typer.echo(f"manifest={outcome.manifest_path}")
    for path in outcome.artifact_paths:
        typer.echo(f"artifact={path}")


@app.command("inspect")
def inspect_graph(graph: Path = INSPECT_GRAPH_OPTION) -> None:
    """Show how a strategy graph's blocks resolve to entry and exit triggers."""
    configure_logging()
    logger_name = __name__

    try:
        inspection = inspect_strategy_graph(graph)
    except Exception as exc:
        _handle_cli_exception(
            logger_name=logger_name,
            context="Inspect command",
            exc=exc,
        )

    resolution = inspection.resolution
    typer.echo(f"graph={inspection.graph_path}")
    typer.echo(f"blocks={inspection.block_count}")
    typer.echo(f"connections={inspection.connection_count}")
    typer.echo(f"entries={','.join(resolution.entry_ids) or '-'}")
    typer.echo(f"exits={','.join(resolution.exit_ids) or '-'}")
    for message in resolution.warnings:
        typer.echo(f"warning={message}")


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
