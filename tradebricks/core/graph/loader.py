"""Build strategy graphs from persisted editor documents (JSON or YAML)."""

from __future__ import annotations

import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tradebricks.core.backtest.types import PRICE_FIELDS
from tradebricks.core.graph.model import (
    PRICE_READING_KINDS,
    Block,
    BlockKind,
    BlockParams,
    BollingerBandsParams,
    ComparisonOperator,
    ComparisonParams,
    ConditionParams,
    Connection,
    MovingAverageParams,
    PassiveParams,
    PriceParams,
    RSIParams,
    StrategyGraph,
)
from tradebricks.core.utils.errors import GraphStructureError

_RESERVED_DATA_KEYS: frozenset[str] = frozenset({"blockType", "data", "label"})


class BlockDocument(BaseModel):
    """One block as stored by the editor, or in compact ``kind``/``params`` form."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    kind: str | None = None
    purpose: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)


class ConnectionDocument(BaseModel):
    """One edge as stored by the editor."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    source_handle: str | None = Field(default=None, alias="sourceHandle")
    target_handle: str | None = Field(default=None, alias="targetHandle")


class StrategyDocument(BaseModel):
    """Top-level persisted strategy."""

    model_config = ConfigDict(extra="ignore")

    blocks: list[BlockDocument] = Field(default_factory=list)
    connections: list[ConnectionDocument] = Field(default_factory=list)


def _coerce_period(raw: Any, default: int) -> int | None:
    """Parse a lookback period; ``None`` marks a non-numeric or non-positive value."""
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        period = raw
    elif isinstance(raw, float):
        if not math.isfinite(raw):
            return None
        period = int(raw)
    elif isinstance(raw, str):
        try:
            period = int(float(raw.strip()))
        except ValueError:
            return None
    else:
        return None
    return period if period > 0 else None


def _coerce_float(raw: Any) -> float | None:
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _first_present(params: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in params and params[key] is not None:
            return params[key]
    return None


def _build_params(kind: BlockKind, params: Mapping[str, Any]) -> BlockParams:
    """Translate loose editor parameters into the typed parameter set for ``kind``."""
    if kind in PRICE_READING_KINDS:
        price_field = str(_first_present(params, "priceType", "price_field") or "close").lower()
        return PriceParams(price_field=price_field if price_field in PRICE_FIELDS else "close")

    if kind is BlockKind.MOVING_AVERAGE:
        return MovingAverageParams(period=_coerce_period(params.get("period"), 20))

    if kind is BlockKind.RSI:
        return RSIParams(period=_coerce_period(params.get("period"), 14))

    if kind is BlockKind.BOLLINGER_BANDS:
        raw_width = _first_present(params, "stdDev", "std_dev", "width")
        output = str(_first_present(params, "outputType", "output") or "middle").lower()
        return BollingerBandsParams(
            period=_coerce_period(params.get("period"), 20),
            width=2.0 if raw_width is None or raw_width == "" else _coerce_float(raw_width),
            output=output if output in ("upper", "lower") else "middle",
        )

    if kind is BlockKind.COMPARISON:
        raw_operator = _first_present(params, "operator", "comparisonType")
        if raw_operator is None:
            raw_operator = ">"
        return ComparisonParams(
            operator=ComparisonOperator.parse(raw_operator),
            raw_operator=str(raw_operator),
            value1=_coerce_float(params.get("value1")),
            value2=_coerce_float(params.get("value2")),
        )

    if kind in (BlockKind.ENTRY_CONDITION, BlockKind.EXIT_CONDITION):
        return ConditionParams()

    return PassiveParams(values=dict(params))


def _block_type_id(document: BlockDocument) -> str:
    if document.kind:
        return document.kind
    block_type = document.data.get("blockType")
    if isinstance(block_type, Mapping):
        return str(block_type.get("id") or "")
    if isinstance(block_type, str):
        return block_type
    return ""


def _merged_params(document: BlockDocument) -> dict[str, Any]:
    """Merge top-level ``data`` keys, nested ``data.data`` and compact ``params``."""
    merged = {key: value for key, value in document.data.items() if key not in _RESERVED_DATA_KEYS}
    nested = document.data.get("data")
    if isinstance(nested, Mapping):
        merged.update(nested)
    merged.update(document.params)
    return merged


def _build_block(document: BlockDocument) -> Block:
    type_name = _block_type_id(document)
    kind = BlockKind.parse(type_name)
    params = _merged_params(document)

    raw_purpose = document.purpose or params.get("purpose")
    purpose = str(raw_purpose).lower() if raw_purpose else None
    return Block(
        id=document.id,
        kind=kind,
        params=_build_params(kind, params),
        purpose=purpose if purpose in ("entry", "exit") else None,
        type_name=type_name,
    )


def graph_from_document(document: Mapping[str, Any]) -> StrategyGraph:
    """
    Build a validated strategy graph from a persisted strategy mapping.

    Args:
        document: Mapping with ``blocks`` and ``connections`` lists.

    Returns:
        Strategy graph.

    Raises:
        GraphStructureError: If the document schema or connection structure is invalid.
    """
    try:
        parsed = StrategyDocument.model_validate(document)
    except ValidationError as exc:
        raise GraphStructureError(f"Invalid strategy document: {exc}") from exc

    blocks = [_build_block(block) for block in parsed.blocks]
    connections = [
        Connection(
            source=connection.source,
            target=connection.target,
            source_port=connection.source_handle,
            target_port=connection.target_handle,
        )
        for connection in parsed.connections
    ]
    return StrategyGraph(blocks, connections)


def load_strategy_graph(path: Path) -> StrategyGraph:
    """
    Load a strategy graph from a JSON or YAML file.

    Args:
        path: Strategy document path.

    Returns:
        Strategy graph.
    """
    resolved_path = path.expanduser().resolve()
    if not resolved_path.is_file():
        raise GraphStructureError(f"Strategy graph file not found: {resolved_path}")
    try:
        with resolved_path.open("r", encoding="utf-8") as handle:
            raw_document: Any = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise GraphStructureError(f"Failed to read strategy graph {resolved_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise GraphStructureError(f"Invalid strategy graph file {resolved_path}: {exc}") from exc

    if not isinstance(raw_document, dict):
        raise GraphStructureError("Strategy graph document root must be a mapping/object.")
    return graph_from_document(raw_document)
