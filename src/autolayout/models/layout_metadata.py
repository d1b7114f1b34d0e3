"""Graph model and layout outcome schemas.

The graph model is the algorithm-agnostic input handed to a layout solver:
sized nodes, directed edges and solver options. The outcome is what comes
back: a top-left position per node ID.

Coordinates follow ELK conventions (top-left origin, y grows downwards).
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .layout_decision import LayoutAlgorithm, LayoutDirection, Spacing

logger = logging.getLogger(__name__)


class NodePosition(BaseModel):
    """Top-left position of a node in layout space.

    Attributes:
        x: Horizontal coordinate
        y: Vertical coordinate
    """

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="Horizontal coordinate")
    y: float = Field(..., description="Vertical coordinate")

    def to_list(self) -> List[float]:
        return [self.x, self.y]


class BoundingBox(BaseModel):
    """Axis-aligned bounding box of laid-out nodes."""

    model_config = ConfigDict(frozen=True)

    min_x: float = Field(..., description="Minimum x coordinate")
    max_x: float = Field(..., description="Maximum x coordinate")
    min_y: float = Field(..., description="Minimum y coordinate")
    max_y: float = Field(..., description="Maximum y coordinate")

    @classmethod
    def from_positions(cls, positions: Dict[str, NodePosition]) -> "BoundingBox":
        """Compute bounding box from node positions.

        Raises:
            ValueError: If positions is empty
        """
        if not positions:
            raise ValueError("Cannot compute bounding box from empty positions")

        x_coords = [pos.x for pos in positions.values()]
        y_coords = [pos.y for pos in positions.values()]

        return cls(
            min_x=min(x_coords),
            max_x=max(x_coords),
            min_y=min(y_coords),
            max_y=max(y_coords)
        )


class GraphNode(BaseModel):
    """A sized node. Position is an output of layout, never an input."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Shape ID")
    width: float = Field(..., gt=0, description="Node width")
    height: float = Field(..., gt=0, description="Node height")
    group_id: Optional[str] = Field(default=None, description="Outermost group of the shape")


class GraphEdge(BaseModel):
    """An unlabeled directed edge between two nodes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Connector ID")
    source_id: str = Field(..., description="Source node ID")
    target_id: str = Field(..., description="Target node ID")


class GraphModel(BaseModel):
    """Algorithm-agnostic graph handed to a layout solver.

    Attributes:
        algorithm: Algorithm family the solver should run
        direction: Flow direction for directional algorithms, else None
        spacing: Node spacing on both axes
        nodes: Sized nodes
        edges: Directed edges between nodes
        options: Solver options keyed by ELK option names
    """

    model_config = ConfigDict(frozen=True)

    algorithm: LayoutAlgorithm
    direction: Optional[LayoutDirection] = None
    spacing: Spacing
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    options: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _edges_reference_nodes(self) -> "GraphModel":
        node_ids = {node.id for node in self.nodes}
        if len(node_ids) != len(self.nodes):
            raise ValueError("Graph node IDs must be unique")
        for edge in self.edges:
            if edge.source_id not in node_ids or edge.target_id not in node_ids:
                raise ValueError(
                    f"Edge {edge.id} references a node outside the graph "
                    f"({edge.source_id} -> {edge.target_id})"
                )
        return self

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def to_networkx(self):
        """Build a networkx MultiDiGraph carrying node sizes."""
        import networkx as nx

        graph = nx.MultiDiGraph()
        for node in self.nodes:
            graph.add_node(node.id, width=node.width, height=node.height, group_id=node.group_id)
        for edge in self.edges:
            graph.add_edge(edge.source_id, edge.target_id, key=edge.id)
        return graph


class LayoutOutcome(BaseModel):
    """New top-left positions computed by a solver.

    Attributes:
        algorithm: Algorithm that produced the positions
        engine: Name of the solver engine
        positions: Node ID -> new top-left position
        bounding_box: Overall bounding box (auto-computed)
        fingerprint: SHA-256 over the canonical positions (auto-computed)
    """

    algorithm: str = Field(..., description="Algorithm that produced the positions")
    engine: str = Field(default="unknown", description="Solver engine name")
    positions: Dict[str, NodePosition] = Field(default_factory=dict)
    bounding_box: Optional[BoundingBox] = Field(default=None)
    fingerprint: Optional[str] = Field(default=None)

    def model_post_init(self, __context) -> None:
        """Compute bounding box and fingerprint if not provided."""
        if self.bounding_box is None and self.positions:
            object.__setattr__(
                self, "bounding_box", BoundingBox.from_positions(self.positions)
            )
        if self.fingerprint is None:
            object.__setattr__(self, "fingerprint", self.compute_fingerprint())

    def compute_fingerprint(self) -> str:
        """SHA-256 of the canonical JSON of algorithm and positions."""
        canonical = {
            "algorithm": self.algorithm,
            "positions": {
                k: v.model_dump() for k, v in sorted(self.positions.items())
            },
        }
        canonical_json = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical_json.encode()).hexdigest()

    def restricted_to(self, node_ids) -> "LayoutOutcome":
        """Copy of the outcome keeping only the given node IDs."""
        wanted = set(node_ids)
        return LayoutOutcome(
            algorithm=self.algorithm,
            engine=self.engine,
            positions={k: v for k, v in self.positions.items() if k in wanted},
        )
