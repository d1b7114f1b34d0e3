"""Tests for the layout engines.

Tests cover:
- NetworkX engine placement per algorithm family and direction
- Determinism of the in-process engine
- ELK graph conversion (no Node.js needed)
- ELK integration (skipped when Node.js or elkjs is missing)
- Engine selection
"""

import itertools

import pytest

from autolayout.config import settings
from autolayout.core.errors import LayoutExecutionError
from autolayout.layout import engines
from autolayout.layout.engines import ENGINES, get_engine, select_engine
from autolayout.layout.engines.base import LayoutEngine
from autolayout.layout.engines.elk import ELKLayoutEngine
from autolayout.layout.engines.networkx_engine import PADDING, NetworkXLayoutEngine
from autolayout.layout.graph_builder import GraphModelBuilder
from autolayout.models.layout_decision import LayoutDecision, Spacing
from autolayout.models.layout_metadata import GraphEdge, GraphModel, GraphNode


def graph_model(algorithm, nodes, edges=(), direction=None, spacing=(100, 60)):
    return GraphModel(
        algorithm=algorithm,
        direction=direction,
        spacing=Spacing(x=spacing[0], y=spacing[1]),
        nodes=[GraphNode(id=i, width=w, height=h) for i, w, h in nodes],
        edges=[GraphEdge(id=f"{s}-{t}", source_id=s, target_id=t) for s, t in edges],
    )


CHAIN = [("a", 100, 50), ("b", 100, 50), ("c", 100, 50)]
CHAIN_EDGES = [("a", "b"), ("b", "c")]


def overlaps(outcome, graph):
    sizes = {n.id: (n.width, n.height) for n in graph.nodes}
    for first, second in itertools.combinations(outcome.positions, 2):
        p, q = outcome.positions[first], outcome.positions[second]
        (pw, ph), (qw, qh) = sizes[first], sizes[second]
        if p.x < q.x + qw and q.x < p.x + pw and p.y < q.y + qh and q.y < p.y + ph:
            return True
    return False


class TestNetworkXLayered:
    """Layered placement."""

    @pytest.mark.asyncio
    async def test_chain_down(self):
        outcome = await NetworkXLayoutEngine().layout(
            graph_model("layered", CHAIN, CHAIN_EDGES, direction="DOWN")
        )

        assert outcome.engine == "networkx"
        assert outcome.positions["a"].to_list() == [PADDING, PADDING]
        assert outcome.positions["b"].to_list() == [PADDING, PADDING + 110]
        assert outcome.positions["c"].to_list() == [PADDING, PADDING + 220]

    @pytest.mark.asyncio
    async def test_branches_are_centered_under_decision(self):
        graph = graph_model(
            "layered",
            [("d", 80, 80), ("l", 100, 50), ("r", 100, 50)],
            [("d", "l"), ("d", "r")],
            direction="DOWN",
        )
        positions = (await NetworkXLayoutEngine().layout(graph)).positions

        decision_center = positions["d"].x + 40
        left_center = positions["l"].x + 50
        right_center = positions["r"].x + 50
        assert positions["l"].y == positions["r"].y
        assert decision_center == pytest.approx((left_center + right_center) / 2)

    @pytest.mark.asyncio
    async def test_right_flows_along_x(self):
        positions = (await NetworkXLayoutEngine().layout(
            graph_model("layered", CHAIN, CHAIN_EDGES, direction="RIGHT")
        )).positions

        assert positions["a"].x < positions["b"].x < positions["c"].x
        assert positions["a"].y == positions["b"].y == positions["c"].y

    @pytest.mark.asyncio
    async def test_up_and_left_mirror(self):
        engine = NetworkXLayoutEngine()
        up = (await engine.layout(graph_model("layered", CHAIN, CHAIN_EDGES, direction="UP"))).positions
        left = (await engine.layout(graph_model("layered", CHAIN, CHAIN_EDGES, direction="LEFT"))).positions

        assert up["a"].y > up["b"].y > up["c"].y
        assert left["a"].x > left["b"].x > left["c"].x

    @pytest.mark.asyncio
    async def test_cycles_share_a_layer(self):
        graph = graph_model("layered", CHAIN, [("a", "b"), ("b", "a"), ("b", "c")], direction="DOWN")
        positions = (await NetworkXLayoutEngine().layout(graph)).positions

        assert positions["a"].y == positions["b"].y
        assert positions["c"].y > positions["a"].y


class TestNetworkXOtherFamilies:
    """Tree, stress, box and grid placement."""

    @pytest.mark.asyncio
    async def test_tree_parent_centered_over_children(self):
        graph = graph_model(
            "mrtree",
            [("root", 100, 50), ("x", 100, 50), ("y", 100, 50), ("z", 100, 50)],
            [("root", "x"), ("root", "y"), ("root", "z")],
            direction="DOWN",
        )
        positions = (await NetworkXLayoutEngine().layout(graph)).positions

        assert positions["root"].x == pytest.approx(positions["y"].x)
        assert positions["x"].y == positions["y"].y == positions["z"].y > positions["root"].y

    @pytest.mark.asyncio
    async def test_tree_handles_forest_and_cycles(self):
        graph = graph_model(
            "mrtree",
            [("a", 50, 50), ("b", 50, 50), ("c", 50, 50), ("d", 50, 50)],
            [("a", "b"), ("b", "a"), ("c", "d")],
        )
        outcome = await NetworkXLayoutEngine().layout(graph)

        assert set(outcome.positions) == {"a", "b", "c", "d"}
        assert not overlaps(outcome, graph)

    @pytest.mark.asyncio
    async def test_grid_cells(self):
        graph = graph_model("grid", [(f"n{i}", 100, 50) for i in range(4)], spacing=(80, 80))
        positions = (await NetworkXLayoutEngine().layout(graph)).positions

        assert positions["n0"].to_list() == [PADDING, PADDING]
        assert positions["n1"].to_list() == [PADDING + 180, PADDING]
        assert positions["n2"].to_list() == [PADDING, PADDING + 130]
        assert positions["n3"].to_list() == [PADDING + 180, PADDING + 130]

    @pytest.mark.asyncio
    async def test_box_packing_has_no_overlap(self):
        sizes = [(f"n{i}", 60 + (i * 37) % 90, 30 + (i * 23) % 70) for i in range(9)]
        graph = graph_model("box", sizes, spacing=(100, 80))
        outcome = await NetworkXLayoutEngine().layout(graph)

        assert len(outcome.positions) == 9
        assert not overlaps(outcome, graph)

    @pytest.mark.asyncio
    async def test_stress_places_every_node(self):
        graph = graph_model(
            "stress",
            [("n1", 100, 50), ("n2", 100, 50), ("n3", 100, 50)],
            [("n1", "n2"), ("n2", "n3"), ("n3", "n1")],
            spacing=(100, 100),
        )
        outcome = await NetworkXLayoutEngine().layout(graph)

        assert set(outcome.positions) == {"n1", "n2", "n3"}
        assert outcome.bounding_box.min_x == pytest.approx(PADDING)
        assert outcome.bounding_box.min_y == pytest.approx(PADDING)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("algorithm", ["box", "layered", "mrtree", "stress", "grid"])
    async def test_deterministic(self, algorithm):
        graph = graph_model(algorithm, CHAIN + [("d", 80, 80)], CHAIN_EDGES + [("a", "d")])
        engine = NetworkXLayoutEngine()

        first = await engine.layout(graph)
        second = await engine.layout(graph)

        assert first.fingerprint == second.fingerprint

    def test_empty_graph(self):
        graph = graph_model("grid", [])
        assert NetworkXLayoutEngine().compute(graph) == {}


class TestELKConversion:
    """ELK JSON in and out, without running Node.js."""

    def test_graph_to_elk(self):
        graph = graph_model("layered", CHAIN, CHAIN_EDGES, direction="DOWN")
        graph = graph.model_copy(update={"options": {"elk.algorithm": "layered"}})

        elk_graph = ELKLayoutEngine.graph_to_elk(graph)

        assert elk_graph["id"] == "root"
        assert elk_graph["layoutOptions"] == {"elk.algorithm": "layered"}
        assert elk_graph["children"][0] == {"id": "a", "width": 100, "height": 50}
        assert elk_graph["edges"][0] == {"id": "a-b", "sources": ["a"], "targets": ["b"]}

    def test_elk_to_outcome(self):
        graph = graph_model("grid", CHAIN)
        result = {"children": [
            {"id": "a", "x": 12, "y": 12},
            {"id": "b", "x": 132, "y": 12},
            {"id": "c"},
        ]}

        outcome = ELKLayoutEngine().elk_to_outcome(result, graph)

        assert outcome.engine == "elk"
        assert set(outcome.positions) == {"a", "b"}
        assert outcome.positions["b"].x == 132

    @pytest.mark.asyncio
    async def test_elk_layout(self):
        engine = ELKLayoutEngine()
        if not await engine.is_available():
            pytest.skip("Node.js with elkjs is not available")

        graph = graph_model("layered", CHAIN, CHAIN_EDGES, direction="DOWN")
        decision = LayoutDecision(
            algorithm="layered", direction="DOWN", spacing=Spacing(x=100, y=60), confidence=1.0
        )
        graph = graph.model_copy(update={"options": GraphModelBuilder().build_options(decision)})
        outcome = await engine.layout(graph)

        assert set(outcome.positions) == {"a", "b", "c"}
        assert outcome.positions["a"].y < outcome.positions["b"].y < outcome.positions["c"].y


class TestEngineSelection:
    """Registry and engine selection."""

    def test_registry(self):
        assert get_engine("elk") is ELKLayoutEngine
        assert get_engine("networkx") is NetworkXLayoutEngine
        assert set(ENGINES) == {"elk", "networkx"}
        assert issubclass(NetworkXLayoutEngine, LayoutEngine)

    def test_unknown_engine(self):
        with pytest.raises(ValueError, match="Unknown layout engine"):
            get_engine("graphviz")

    @pytest.mark.asyncio
    async def test_explicit_networkx(self):
        engine = await select_engine("networkx")
        assert engine.name == "networkx"

    @pytest.mark.asyncio
    async def test_auto_falls_back_when_elk_missing(self, monkeypatch):
        monkeypatch.setattr(engines, "_elk_available", False)
        monkeypatch.setitem(settings.FEATURE_FLAGS, "networkx_fallback", True)

        engine = await select_engine("auto")
        assert engine.name == "networkx"

    @pytest.mark.asyncio
    async def test_no_fallback_raises(self, monkeypatch):
        monkeypatch.setattr(engines, "_elk_available", False)
        monkeypatch.setitem(settings.FEATURE_FLAGS, "networkx_fallback", False)

        with pytest.raises(LayoutExecutionError):
            await select_engine("auto")

    @pytest.mark.asyncio
    async def test_explicit_elk_never_falls_back(self, monkeypatch):
        monkeypatch.setattr(engines, "_elk_available", False)

        with pytest.raises(LayoutExecutionError, match="not available"):
            await select_engine("elk")

    @pytest.mark.asyncio
    async def test_unknown_engine_setting(self):
        with pytest.raises(LayoutExecutionError):
            await select_engine("graphviz")
