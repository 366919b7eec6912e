"""Tests for strategy graph structure and document loading."""

from __future__ import annotations

import json
import tempfile
import textwrap
import unittest
from pathlib import Path

from tradebricks.core.graph.loader import graph_from_document, load_strategy_graph
from tradebricks.core.graph.model import (
    Block,
    BlockKind,
    BollingerBandsParams,
    ComparisonOperator,
    ComparisonParams,
    Connection,
    MovingAverageParams,
    PassiveParams,
    PriceParams,
    StrategyGraph,
)
from tradebricks.core.utils.errors import GraphStructureError
from tradebricks.tests.helpers import block, edge, make_graph


def _price_block(block_id: str) -> Block:
    return Block(id=block_id, kind=BlockKind.PRICE, params=PriceParams())


class TestStrategyGraph(unittest.TestCase):
    """Validate arena storage and structural checks."""

    def test_duplicate_block_ids_are_rejected(self) -> None:
        with self.assertRaises(GraphStructureError):
            StrategyGraph([_price_block("a"), _price_block("a")])

    def test_dangling_connection_is_rejected(self) -> None:
        with self.assertRaisesRegex(GraphStructureError, "missing"):
            StrategyGraph([_price_block("a")], [Connection(source="a", target="missing")])

    def test_adjacency_keeps_declaration_order(self) -> None:
        graph = StrategyGraph(
            [_price_block("a"), _price_block("b"), _price_block("c")],
            [
                Connection("a", "c", target_port="input2"),
                Connection("b", "c", target_port="input1"),
            ],
        )
        self.assertEqual([conn.source for conn in graph.incoming("c")], ["a", "b"])
        self.assertEqual([conn.target for conn in graph.outgoing("a")], ["c"])
        self.assertTrue(graph.is_terminal("c"))
        self.assertFalse(graph.is_terminal("a"))

    def test_cycles_are_allowed(self) -> None:
        graph = StrategyGraph(
            [_price_block("a"), _price_block("b")],
            [Connection("a", "b"), Connection("b", "a")],
        )
        self.assertEqual(len(graph), 2)

    def test_with_block_leaves_original_untouched(self) -> None:
        graph = StrategyGraph([_price_block("default-entry")])
        new_id = graph.unused_block_id("default-entry")
        extended = graph.with_block(_price_block(new_id))

        self.assertEqual(new_id, "default-entry-1")
        self.assertEqual(len(graph), 1)
        self.assertEqual(len(extended), 2)
        self.assertIn(new_id, extended)
        self.assertNotIn(new_id, graph)


class TestComparisonOperator(unittest.TestCase):
    def test_parse_symbols_and_editor_names(self) -> None:
        self.assertIs(ComparisonOperator.parse(">"), ComparisonOperator.GT)
        self.assertIs(ComparisonOperator.parse("less_than_or_equal"), ComparisonOperator.LE)
        self.assertIs(ComparisonOperator.parse("equal_to"), ComparisonOperator.EQ)
        self.assertIsNone(ComparisonOperator.parse("between"))
        self.assertIsNone(ComparisonOperator.parse(3))

    def test_equality_uses_tolerance(self) -> None:
        self.assertTrue(ComparisonOperator.EQ.apply(1.0, 1.000001))
        self.assertFalse(ComparisonOperator.EQ.apply(1.0, 1.0001))


class TestGraphLoader(unittest.TestCase):
    """Validate editor document parsing into typed blocks."""

    def test_editor_document_shape(self) -> None:
        graph = graph_from_document(
            {
                "blocks": [
                    {
                        "id": "ma",
                        "type": "algoNode",
                        "data": {
                            "blockType": {"id": "moving_average", "name": "Moving Average"},
                            "label": "SMA",
                            "period": "10",
                        },
                    },
                    {
                        "id": "bands",
                        "data": {
                            "blockType": "bollinger_bands",
                            "data": {"stdDev": 1.5, "outputType": "upper"},
                        },
                    },
                ],
                "connections": [
                    {
                        "id": "e1",
                        "source": "ma",
                        "target": "bands",
                        "sourceHandle": "out",
                        "targetHandle": "in",
                    }
                ],
            }
        )

        ma_block = graph.block("ma")
        self.assertIs(ma_block.kind, BlockKind.MOVING_AVERAGE)
        self.assertEqual(ma_block.params, MovingAverageParams(period=10))
        bands = graph.block("bands").params
        self.assertIsInstance(bands, BollingerBandsParams)
        assert isinstance(bands, BollingerBandsParams)
        self.assertEqual((bands.period, bands.width, bands.output), (20, 1.5, "upper"))
        self.assertEqual(graph.connections[0].source_port, "out")
        self.assertEqual(graph.connections[0].target_port, "in")

    def test_invalid_periods_become_none(self) -> None:
        graph = make_graph(
            [
                block("zero", "moving_average", period=0),
                block("negative", "rsi", period=-3),
                block("text", "moving_average", period="abc"),
            ]
        )
        for block_id in ("zero", "negative", "text"):
            params = graph.block(block_id).params
            self.assertIsNone(getattr(params, "period"), msg=block_id)

    def test_comparison_params_and_purpose(self) -> None:
        graph = make_graph(
            [
                block("cmp", "comparison", purpose="Exit", comparisonType="less_than", value2="30"),
                block("odd", "comparison", operator="between"),
            ]
        )
        cmp_block = graph.block("cmp")
        self.assertEqual(cmp_block.purpose, "exit")
        self.assertEqual(
            cmp_block.params,
            ComparisonParams(operator=ComparisonOperator.LT, raw_operator="less_than", value2=30.0),
        )
        odd = graph.block("odd").params
        assert isinstance(odd, ComparisonParams)
        self.assertIsNone(odd.operator)
        self.assertEqual(odd.raw_operator, "between")

    def test_unknown_kind_keeps_raw_type_name(self) -> None:
        graph = make_graph([block("mystery", "Fancy_Signal", threshold=3)])
        mystery = graph.block("mystery")
        self.assertIs(mystery.kind, BlockKind.UNKNOWN)
        self.assertEqual(mystery.label, "Fancy_Signal")
        self.assertEqual(mystery.params, PassiveParams(values={"threshold": 3}))

    def test_trade_signal_keeps_raw_params(self) -> None:
        graph = make_graph([block("signal", "trade_signal", signal_type="sell")])
        signal = graph.block("signal")
        self.assertIs(signal.kind, BlockKind.TRADE_SIGNAL)
        self.assertEqual(signal.params, PassiveParams(values={"signal_type": "sell"}))

    def test_invalid_document_raises_graph_error(self) -> None:
        with self.assertRaises(GraphStructureError):
            graph_from_document({"blocks": [{"kind": "price"}]})
        with self.assertRaises(GraphStructureError):
            make_graph([block("a", "price")], [edge("a", "ghost")])

    def test_load_yaml_and_json_files(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            yaml_path = root / "graph.yaml"
            yaml_path.write_text(
                textwrap.dedent("""
                    blocks:
                      - {id: p, kind: price, params: {priceType: open}}
                    connections: []
                    """).strip() + "\n",
                encoding="utf-8",
            )
            json_path = root / "graph.json"
            json_path.write_text(
                json.dumps({"blocks": [{"id": "p", "kind": "market_data"}], "connections": []}),
                encoding="utf-8",
            )

            self.assertEqual(load_strategy_graph(yaml_path).block("p").params, PriceParams("open"))
            self.assertIs(load_strategy_graph(json_path).block("p").kind, BlockKind.MARKET_DATA)

            with self.assertRaises(GraphStructureError):
                load_strategy_graph(root / "missing.yaml")

    def test_bundled_example_graph_loads(self) -> None:
        example = (
            Path(__file__).resolve().parent.parent / "strategies" / "examples" / "ma_crossover.yaml"
        )
        graph = load_strategy_graph(example)
        self.assertEqual(len(graph), 5)
        self.assertEqual(graph.block("cross-up").purpose, "entry")
        self.assertEqual(graph.block("cross-down").purpose, "exit")


if __name__ == "__main__":
    unittest.main()
