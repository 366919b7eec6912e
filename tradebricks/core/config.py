"""Configuration models and YAML loading."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from tradebricks.core.utils.errors import ConfigLoadError


class DataConfig(BaseModel):
    """Price data settings for a backtest run."""

    provider: Literal["eodhd", "csv"] = "eodhd"
    symbol: str = Field(min_length=1)
    start: date
    end: date
    cache_dir: Path = Path("../data/cache")
    csv_path: Path | None = None

    @model_validator(mode="after")
    def validate_data(self) -> DataConfig:
        """Ensure date boundaries, symbol and provider inputs are valid."""
        if self.start > self.end:
            raise ValueError("data.start must be before or equal to data.end.")
        self.symbol = self.symbol.strip()
        if not self.symbol:
            raise ValueError("data.symbol must be non-empty.")
        if self.provider == "csv" and self.csv_path is None:
            raise ValueError("data.csv_path is required when data.provider is 'csv'.")
        return self


class StrategyConfig(BaseModel):
    """Strategy graph document location."""

    graph_path: Path


class BacktestConfig(BaseModel):
    """Backtest request parameters."""

    initial_capital: float = 10_000.0
    price_field: Literal["open", "high", "low", "close"] = "close"

    @model_validator(mode="after")
    def validate_backtest(self) -> BacktestConfig:
        if self.initial_capital <= 0:
            raise ValueError("backtest.initial_capital must be > 0.")
        return self


class OutputConfig(BaseModel):
    """Output and artifact settings."""

    artifacts_dir: Path = Path("../artifacts")
    save_trades_csv: bool = True
    trades_filename: str = "trades.csv"

    @model_validator(mode="after")
    def validate_output(self) -> OutputConfig:
        if not self.trades_filename.strip():
            raise ValueError("output.trades_filename must be non-empty.")
        return self


class AppConfig(BaseModel):
    """Top-level application configuration."""

    data: DataConfig
    strategy: StrategyConfig
    backtest: BacktestConfig = Field(default_factory=BacktestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


def _resolve_config_path(path: Path) -> Path:
    """Resolve and validate a config file path."""
    resolved_path = path.expanduser().resolve()
    if not resolved_path.exists():
        raise ConfigLoadError(f"Config file not found: {resolved_path}")
    if not resolved_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {resolved_path}")
    return resolved_path


def _resolve_relative(path: Path, base_dir: Path) -> Path:
    expanded = path.expanduser()
    return expanded.resolve() if expanded.is_absolute() else (base_dir / expanded).resolve()


def _build_config(raw_config: dict[str, Any], base_dir: Path) -> AppConfig:
    """Validate raw config and resolve relative paths against ``base_dir``."""
    try:
        config = AppConfig.model_validate(raw_config)
    except Exception as exc:
        raise ConfigLoadError(f"Config validation failed: {exc}") from exc

    csv_path = config.data.csv_path
    updated_data = config.data.model_copy(
        update={
            "cache_dir": _resolve_relative(config.data.cache_dir, base_dir),
            "csv_path": _resolve_relative(csv_path, base_dir) if csv_path is not None else None,
        }
    )
    updated_strategy = config.strategy.model_copy(
        update={"graph_path": _resolve_relative(config.strategy.graph_path, base_dir)}
    )
    updated_output = config.output.model_copy(
        update={"artifacts_dir": _resolve_relative(config.output.artifacts_dir, base_dir)}
    )
    return config.model_copy(
        update={"data": updated_data, "strategy": updated_strategy, "output": updated_output}
    )


def load_config(path: Path) -> AppConfig:
    """
    Load and validate application config from YAML.

    Relative paths are resolved from the YAML file parent directory.

    Args:
        path: YAML config file path.

    Returns:
        Validated application config.
    """
    config_path = _resolve_config_path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw_config: Any = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigLoadError(f"Failed to read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML in config file {config_path}: {exc}") from exc

    if not isinstance(raw_config, dict):
        raise ConfigLoadError("YAML root must be a mapping/object.")
    return _build_config(raw_config, config_path.parent)


def load_config_from_yaml_text(yaml_text: str, base_dir: Path | None = None) -> AppConfig:
    """Load and validate config from YAML text; relative paths resolve from ``base_dir``."""
    try:
        raw_config: Any = yaml.safe_load(yaml_text) or {}
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"Invalid YAML text: {exc}") from exc
    if not isinstance(raw_config, dict):
        raise ConfigLoadError("YAML root must be a mapping/object.")
    return _build_config(raw_config, (base_dir or Path.cwd()).expanduser().resolve())


def dump_config_to_yaml(config: AppConfig) -> str:
    """Serialize config to canonical YAML for reproducibility."""
    return yaml.safe_dump(config.model_dump(mode="json"), sort_keys=True, default_flow_style=False)
