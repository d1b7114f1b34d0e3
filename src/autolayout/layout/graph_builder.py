"""Translation of a resolved selection into a solver graph model.

Nodes carry only ID and size; edges are unlabeled source -> target pairs
built from connector bindings. Solver options are keyed by ELK option
names so the graph model can be handed to elkjs unchanged; other engines
read the typed fields of the graph model instead.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config import settings
from ..config.settings import DEFAULT_THRESHOLDS, HeuristicThresholds
from ..core.errors import ResourceLimitError
from ..models.layout_decision import LayoutDecision
from ..models.layout_metadata import GraphEdge, GraphModel, GraphNode
from ..models.scene import Selection, Shape

logger = logging.getLogger(__name__)

# ELK algorithm ids per algorithm family; grid-like layouts use packing
ELK_ALGORITHM_NAMES: Dict[str, str] = {
    "box": "rectpacking",
    "layered": "layered",
    "mrtree": "mrtree",
    "stress": "stress",
    "grid": "rectpacking",
}

# Layered preset: crossing minimization plus a node placement that favours
# straight edges, so branch children of a decision sit balanced under it.
LAYERED_LAYOUT_OPTIONS: Dict[str, Any] = {
    "elk.layered.crossingMinimization.strategy": "LAYER_SWEEP",
    "elk.layered.crossingMinimization.semiInteractive": True,
    "elk.layered.nodePlacement.strategy": "BRANDES_KOEPF",
    "elk.layered.nodePlacement.favorStraightEdges": True,
    "elk.layered.layering.strategy": "LONGEST_PATH",
    "elk.layered.spacing.baseValue": 20,
    "elk.layered.considerModelOrder.strategy": "NODES_AND_EDGES",
}


class GraphModelBuilder:
    """Builds a GraphModel from a selection and a layout decision."""

    def __init__(
        self,
        max_nodes: Optional[int] = None,
        thresholds: HeuristicThresholds = DEFAULT_THRESHOLDS,
    ):
        self.max_nodes = max_nodes if max_nodes is not None else settings.MAX_LAYOUT_NODES
        self.thresholds = thresholds

    def build(self, selection: Selection, decision: LayoutDecision) -> GraphModel:
        """Build the graph model.

        Raises:
            ResourceLimitError: If the selection has more shapes than the ceiling
        """
        if len(selection.shapes) > self.max_nodes:
            raise ResourceLimitError(len(selection.shapes), self.max_nodes)

        shapes = selection.shapes
        if decision.preserve_groups:
            shapes = _cluster_by_group(shapes)

        nodes = [self._node(shape) for shape in shapes]
        edges = [
            GraphEdge(id=c.id, source_id=c.source_shape_id, target_id=c.target_shape_id)
            for c in selection.connectors
        ]

        graph = GraphModel(
            algorithm=decision.algorithm,
            direction=decision.direction if decision.is_directional else None,
            spacing=decision.spacing,
            nodes=nodes,
            edges=edges,
            options=self.build_options(decision),
        )
        logger.debug(
            f"Built {decision.algorithm} graph: {len(nodes)} nodes, {len(edges)} edges"
        )
        return graph

    def build_options(self, decision: LayoutDecision) -> Dict[str, Any]:
        spacing = decision.spacing
        options: Dict[str, Any] = {
            "elk.algorithm": ELK_ALGORITHM_NAMES[decision.algorithm],
            "elk.spacing.nodeNode": spacing.x,
            "elk.spacing.edgeNode": spacing.y,
        }

        if decision.is_directional and decision.direction:
            options["elk.direction"] = decision.direction

        if decision.algorithm == "layered":
            options["elk.layered.spacing.nodeNodeBetweenLayers"] = spacing.y
            options["elk.layered.spacing.edgeNodeBetweenLayers"] = spacing.x
            options.update(LAYERED_LAYOUT_OPTIONS)
        elif decision.algorithm == "box":
            # Uniform packing: same gap on both axes
            options["elk.spacing.nodeNode"] = spacing.uniform
            options["elk.spacing.edgeNode"] = spacing.uniform
        elif decision.algorithm == "stress":
            options["elk.stress.desiredEdgeLength"] = spacing.uniform

        return options

    def _node(self, shape: Shape) -> GraphNode:
        return GraphNode(
            id=shape.id,
            width=shape.width or self.thresholds.default_node_width,
            height=shape.height or self.thresholds.default_node_height,
            group_id=shape.group_ids[-1] if shape.group_ids else None,
        )


def _cluster_by_group(shapes: List[Shape]) -> List[Shape]:
    """Stable reorder placing members of the same outermost group together.

    Each group is emitted where its first member appears; ungrouped shapes
    keep their relative order.
    """
    order: Dict[Optional[str], int] = {}
    keyed = []
    for index, shape in enumerate(shapes):
        group = shape.group_ids[-1] if shape.group_ids else None
        slot = order.setdefault(group, index) if group is not None else index
        keyed.append((slot, index, shape))
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [shape for _, _, shape in keyed]
