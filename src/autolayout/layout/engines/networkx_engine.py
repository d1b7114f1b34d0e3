"""In-process layout engine built on networkx.

Used when Node.js/elkjs is not installed and in tests. Mirrors the ELK
algorithm families closely enough for diagram cleanup:

- layered: longest-path layering over the SCC condensation, one
  barycenter sweep, layers centered on a common axis
- mrtree: spanning tree from the roots, parents centered over children
- stress: seeded spring embedding scaled by the spacing
- box: shelf rectangle packing with uniform spacing
- grid: row-major uniform cells

Results are deterministic for a given graph model and translated so the
bounding box starts at the ELK default padding.
"""

import asyncio
import logging
import math
from collections import deque
from typing import Dict, FrozenSet, List, Tuple

import networkx as nx

from autolayout.layout.engines.base import LayoutEngine
from autolayout.models.layout_metadata import GraphModel, GraphNode, LayoutOutcome, NodePosition

logger = logging.getLogger(__name__)

PADDING = 12.0
SPRING_SEED = 42

# (node id) -> (main-axis start, cross-axis center) before orientation
_AxisPlacement = Dict[str, Tuple[float, float]]


class NetworkXLayoutEngine(LayoutEngine):
    """Deterministic layout engine running inside the Python process."""

    @property
    def name(self) -> str:
        return "networkx"

    @property
    def supported_algorithms(self) -> FrozenSet[str]:
        return frozenset({"box", "layered", "mrtree", "stress", "grid"})

    async def is_available(self) -> bool:
        return True

    async def layout(self, graph: GraphModel) -> LayoutOutcome:
        """Compute layout in a worker thread so the event loop stays free."""
        loop = asyncio.get_running_loop()
        positions = await loop.run_in_executor(None, self.compute, graph)
        return LayoutOutcome(algorithm=graph.algorithm, engine=self.name, positions=positions)

    def compute(self, graph: GraphModel) -> Dict[str, NodePosition]:
        """Synchronous layout; returns top-left positions per node ID."""
        if not graph.nodes:
            return {}

        algorithm = graph.algorithm
        if algorithm == "layered":
            corners = self._orient(graph, self._layered(graph))
        elif algorithm == "mrtree":
            corners = self._orient(graph, self._tree(graph))
        elif algorithm == "stress":
            corners = self._stress(graph)
        elif algorithm == "box":
            corners = self._shelf_pack(graph)
        elif algorithm == "grid":
            corners = self._grid(graph)
        else:
            raise ValueError(f"Unsupported algorithm for networkx engine: {algorithm}")

        logger.debug(f"networkx {algorithm} placed {len(corners)} nodes")
        return _translate_to_padding(corners)

    # ------------------------------------------------------------------
    # Layered
    # ------------------------------------------------------------------

    def _layered(self, graph: GraphModel) -> _AxisPlacement:
        nodes = {node.id: node for node in graph.nodes}
        model_order = {node.id: index for index, node in enumerate(graph.nodes)}
        vertical = _is_vertical(graph)

        digraph = _simple_digraph(graph)
        condensed = nx.condensation(digraph)
        mapping = condensed.graph["mapping"]

        component_layer: Dict[int, int] = {}
        for component in nx.topological_sort(condensed):
            preds = [component_layer[p] for p in condensed.predecessors(component)]
            component_layer[component] = max(preds) + 1 if preds else 0

        layers: Dict[int, List[str]] = {}
        for node_id in model_order:
            layers.setdefault(component_layer[mapping[node_id]], []).append(node_id)

        ordered = [layers[index] for index in sorted(layers)]

        # One downward barycenter sweep against the previous layers
        position_in_layer: Dict[str, int] = {}
        for layer in ordered:
            initial = {node_id: index for index, node_id in enumerate(layer)}

            def barycenter(node_id: str) -> Tuple[float, int]:
                placed = [
                    position_in_layer[p] for p in digraph.predecessors(node_id)
                    if p in position_in_layer
                ]
                if placed:
                    return (sum(placed) / len(placed), model_order[node_id])
                return (float(initial[node_id]), model_order[node_id])

            layer.sort(key=barycenter)
            for index, node_id in enumerate(layer):
                position_in_layer[node_id] = index

        placement: _AxisPlacement = {}
        main_start = 0.0
        for layer in ordered:
            thickness = max(_main_size(nodes[n], vertical) for n in layer)
            sizes = [_cross_size(nodes[n], vertical) for n in layer]
            total = sum(sizes) + graph.spacing.x * (len(layer) - 1)
            cursor = -total / 2
            for node_id, size in zip(layer, sizes):
                offset = (thickness - _main_size(nodes[node_id], vertical)) / 2
                placement[node_id] = (main_start + offset, cursor + size / 2)
                cursor += size + graph.spacing.x
            main_start += thickness + graph.spacing.y

        return placement

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def _tree(self, graph: GraphModel) -> _AxisPlacement:
        nodes = {node.id: node for node in graph.nodes}
        vertical = _is_vertical(graph)
        digraph = _simple_digraph(graph)

        roots = [n.id for n in graph.nodes if digraph.in_degree(n.id) == 0]
        root_set = set(roots)
        candidates = roots + [n.id for n in graph.nodes if n.id not in root_set]

        children: Dict[str, List[str]] = {n.id: [] for n in graph.nodes}
        depth: Dict[str, int] = {}
        forest_roots: List[str] = []
        bfs_order: List[str] = []

        for start in candidates:
            if start in depth:
                continue
            forest_roots.append(start)
            depth[start] = 0
            queue = deque([start])
            while queue:
                current = queue.popleft()
                bfs_order.append(current)
                for child in digraph.successors(current):
                    if child not in depth:
                        depth[child] = depth[current] + 1
                        children[current].append(child)
                        queue.append(child)

        gap = graph.spacing.x
        subtree_width: Dict[str, float] = {}
        for node_id in reversed(bfs_order):
            own = _cross_size(nodes[node_id], vertical)
            kids = children[node_id]
            if kids:
                block = sum(subtree_width[k] for k in kids) + gap * (len(kids) - 1)
                subtree_width[node_id] = max(own, block)
            else:
                subtree_width[node_id] = own

        thickness: Dict[int, float] = {}
        for node_id, level in depth.items():
            thickness[level] = max(thickness.get(level, 0.0), _main_size(nodes[node_id], vertical))
        level_start: Dict[int, float] = {}
        cursor_main = 0.0
        for level in sorted(thickness):
            level_start[level] = cursor_main
            cursor_main += thickness[level] + graph.spacing.y

        # Cross-axis interval [start, start + subtree width) per subtree
        subtree_start: Dict[str, float] = {}
        cursor = 0.0
        for root in forest_roots:
            subtree_start[root] = cursor
            cursor += subtree_width[root] + gap

        cross_center: Dict[str, float] = {}
        for node_id in bfs_order:
            kids = children[node_id]
            start = subtree_start[node_id]
            if kids:
                block = sum(subtree_width[k] for k in kids) + gap * (len(kids) - 1)
                child_cursor = start + (subtree_width[node_id] - block) / 2
                for kid in kids:
                    subtree_start[kid] = child_cursor
                    child_cursor += subtree_width[kid] + gap
            cross_center[node_id] = start + subtree_width[node_id] / 2

        # Parents centered over their first and last child, deepest first
        for node_id in reversed(bfs_order):
            kids = children[node_id]
            if kids:
                first = cross_center[kids[0]]
                last = cross_center[kids[-1]]
                cross_center[node_id] = (first + last) / 2

        placement: _AxisPlacement = {}
        for node_id, level in depth.items():
            offset = (thickness[level] - _main_size(nodes[node_id], vertical)) / 2
            placement[node_id] = (level_start[level] + offset, cross_center[node_id])
        return placement

    # ------------------------------------------------------------------
    # Undirected families
    # ------------------------------------------------------------------

    def _stress(self, graph: GraphModel) -> Dict[str, Tuple[float, float]]:
        undirected = nx.Graph()
        undirected.add_nodes_from(graph.node_ids)
        undirected.add_edges_from(
            (e.source_id, e.target_id) for e in graph.edges if e.source_id != e.target_id
        )

        mean_extent = sum(max(n.width, n.height) for n in graph.nodes) / len(graph.nodes)
        edge_length = graph.spacing.uniform + mean_extent
        scale = edge_length * max(1.0, math.sqrt(len(graph.nodes)))

        pos = nx.spring_layout(undirected, seed=SPRING_SEED, scale=scale)

        corners = {}
        for node in graph.nodes:
            cx, cy = pos[node.id]
            corners[node.id] = (float(cx) - node.width / 2, float(cy) - node.height / 2)
        return corners

    def _shelf_pack(self, graph: GraphModel) -> Dict[str, Tuple[float, float]]:
        """Shelf packing in model order, rows wrapped near a square aspect."""
        gap = graph.spacing.uniform
        area = sum((n.width + gap) * (n.height + gap) for n in graph.nodes)
        widest = max(n.width for n in graph.nodes)
        row_limit = max(widest, math.sqrt(area))

        corners = {}
        x = y = 0.0
        shelf_height = 0.0
        for node in graph.nodes:
            if x > 0 and x + node.width > row_limit:
                x = 0.0
                y += shelf_height + gap
                shelf_height = 0.0
            corners[node.id] = (x, y)
            x += node.width + gap
            shelf_height = max(shelf_height, node.height)
        return corners

    def _grid(self, graph: GraphModel) -> Dict[str, Tuple[float, float]]:
        columns = math.ceil(math.sqrt(len(graph.nodes)))
        cell_w = max(n.width for n in graph.nodes) + graph.spacing.x
        cell_h = max(n.height for n in graph.nodes) + graph.spacing.y

        corners = {}
        for index, node in enumerate(graph.nodes):
            row, column = divmod(index, columns)
            corners[node.id] = (column * cell_w, row * cell_h)
        return corners

    # ------------------------------------------------------------------
    # Orientation
    # ------------------------------------------------------------------

    def _orient(self, graph: GraphModel, placement: _AxisPlacement) -> Dict[str, Tuple[float, float]]:
        """Map (main start, cross center) to top-left corners for the direction."""
        direction = graph.direction or "DOWN"
        corners = {}
        for node in graph.nodes:
            main, cross = placement[node.id]
            if direction in ("DOWN", "UP"):
                x = cross - node.width / 2
                y = main if direction == "DOWN" else -(main + node.height)
            else:
                y = cross - node.height / 2
                x = main if direction == "RIGHT" else -(main + node.width)
            corners[node.id] = (x, y)
        return corners


def _is_vertical(graph: GraphModel) -> bool:
    return (graph.direction or "DOWN") in ("DOWN", "UP")


def _main_size(node: GraphNode, vertical: bool) -> float:
    return node.height if vertical else node.width


def _cross_size(node: GraphNode, vertical: bool) -> float:
    return node.width if vertical else node.height


def _simple_digraph(graph: GraphModel) -> nx.DiGraph:
    """Directed graph without parallel edges or self-loops, in model order."""
    digraph = nx.DiGraph()
    digraph.add_nodes_from(graph.node_ids)
    for edge in graph.edges:
        if edge.source_id != edge.target_id:
            digraph.add_edge(edge.source_id, edge.target_id)
    return digraph


def _translate_to_padding(corners: Dict[str, Tuple[float, float]]) -> Dict[str, NodePosition]:
    min_x = min(x for x, _ in corners.values())
    min_y = min(y for _, y in corners.values())
    return {
        node_id: NodePosition(x=round(x - min_x + PADDING, 6), y=round(y - min_y + PADDING, 6))
        for node_id, (x, y) in corners.items()
    }
