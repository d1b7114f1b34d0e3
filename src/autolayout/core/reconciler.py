"""Post-layout reconciliation of the live scene.

Applies solver positions to shapes, keeps bound labels attached to their
containers and rewrites the geometry of connectors whose endpoints moved.
Element IDs never change; only geometric fields do. Elements that are not
affected are passed through as the very same objects.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from ..config.settings import DEFAULT_THRESHOLDS, HeuristicThresholds
from ..models.layout_metadata import LayoutOutcome
from ..models.scene import Binding, Connector, Shape, label_bindings

logger = logging.getLogger(__name__)

Element = Union[Shape, Connector]

# Binding focus written for recomputed connectors (center of the outline)
RECOMPUTED_FOCUS = 0.5


@dataclass(frozen=True)
class ReconciliationSkip:
    """A connector left untouched because an endpoint no longer exists."""
    connector_id: str
    missing_ids: Tuple[str, ...]
    reason: str = "Bound shape no longer exists in the scene"


@dataclass
class ReconciledScene:
    """Full element collection with the affected subset updated."""
    elements: List[Element]
    moved_ids: List[str] = field(default_factory=list)
    label_ids: List[str] = field(default_factory=list)
    updated_connector_ids: List[str] = field(default_factory=list)
    skipped: List[ReconciliationSkip] = field(default_factory=list)
    dropped_ids: List[str] = field(default_factory=list)

    @property
    def transformations(self) -> int:
        """Number of elements whose geometry changed."""
        return len(self.moved_ids) + len(self.label_ids) + len(self.updated_connector_ids)

    @property
    def affected_ids(self) -> List[str]:
        return self.moved_ids + self.label_ids + self.updated_connector_ids


class ConnectorReconciler:
    """Maps a LayoutOutcome back onto a scene and repairs dependent geometry."""

    def __init__(self, thresholds: HeuristicThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    def reconcile(
        self,
        elements: Sequence[Element],
        outcome: LayoutOutcome,
        original_elements: Optional[Sequence[Element]] = None,
    ) -> ReconciledScene:
        """Apply ``outcome`` to ``elements``.

        Args:
            elements: The live scene at commit time
            outcome: New top-left positions per shape ID
            original_elements: Pre-layout snapshot used for label offsets;
                the live scene when None

        Returns:
            ReconciledScene; positions for IDs missing from the live scene
            are dropped and listed in ``dropped_ids``
        """
        originals = _shapes_by_id(original_elements if original_elements is not None else elements)
        live_shapes = _shapes_by_id(elements)

        positions: Dict[str, Tuple[float, float]] = {}
        dropped: List[str] = []
        for node_id, pos in outcome.positions.items():
            if node_id in live_shapes:
                positions[node_id] = (pos.x, pos.y)
            else:
                dropped.append(node_id)
        if dropped:
            logger.info(f"Dropping {len(dropped)} position(s) for shapes removed before commit")

        label_positions = self._label_positions(elements, positions, originals, live_shapes)

        updated: Dict[str, Element] = {}
        for shape_id, (x, y) in {**positions, **label_positions}.items():
            shape = live_shapes[shape_id]
            if shape.x != x or shape.y != y:
                updated[shape_id] = shape.model_copy(update={"x": x, "y": y})

        moved = set(updated)
        skipped: List[ReconciliationSkip] = []
        connector_ids: List[str] = []
        for element in elements:
            if not isinstance(element, Connector):
                continue
            if not _touches(element, moved):
                continue

            missing = tuple(
                ref for ref in (element.source_shape_id, element.target_shape_id)
                if ref is not None and ref not in live_shapes
            )
            if missing:
                skip = ReconciliationSkip(connector_id=element.id, missing_ids=missing)
                logger.warning(
                    f"Skipping connector {element.id}: bound shape(s) {', '.join(missing)} "
                    f"no longer exist"
                )
                skipped.append(skip)
                continue
            if element.source_shape_id is None or element.target_shape_id is None:
                continue

            source = updated.get(element.source_shape_id, live_shapes[element.source_shape_id])
            target = updated.get(element.target_shape_id, live_shapes[element.target_shape_id])
            rewritten = self.recompute_connector(element, source, target)
            if rewritten is not element:
                updated[element.id] = rewritten
                connector_ids.append(element.id)

        result = [updated.get(element.id, element) for element in elements]

        return ReconciledScene(
            elements=result,
            moved_ids=[i for i in positions if i in updated],
            label_ids=[i for i in label_positions if i in updated],
            updated_connector_ids=connector_ids,
            skipped=skipped,
            dropped_ids=dropped,
        )

    def _label_positions(
        self,
        elements: Sequence[Element],
        positions: Mapping[str, Tuple[float, float]],
        originals: Mapping[str, Shape],
        live_shapes: Mapping[str, Shape],
    ) -> Dict[str, Tuple[float, float]]:
        """New positions for labels whose container moved, keeping the old offset."""
        result: Dict[str, Tuple[float, float]] = {}
        for label_id, container_id in label_bindings(elements).items():
            if container_id not in positions or label_id in positions:
                continue
            label = originals.get(label_id, live_shapes[label_id])
            container = originals.get(container_id, live_shapes[container_id])
            offset_x = label.x - container.x
            offset_y = label.y - container.y
            new_x, new_y = positions[container_id]
            result[label_id] = (new_x + offset_x, new_y + offset_y)
        return result

    def recompute_connector(self, connector: Connector, source: Shape, target: Shape) -> Connector:
        """Straight connector between two shape centers, clamped to their outlines.

        Returns the connector unchanged when both centers coincide.
        """
        gap = self.thresholds.connector_gap
        (sx, sy), (tx, ty) = source.center, target.center
        dx, dy = tx - sx, ty - sy
        distance = math.hypot(dx, dy)
        if distance == 0:
            return connector

        ux, uy = dx / distance, dy / distance
        source_radius = _radius(source) + gap
        target_radius = _radius(target) + gap

        start = (sx + ux * source_radius, sy + uy * source_radius)
        end = (tx - ux * target_radius, ty - uy * target_radius)

        return connector.model_copy(update={
            "x": start[0],
            "y": start[1],
            "points": [(0.0, 0.0), (end[0] - start[0], end[1] - start[1])],
            "start_binding": Binding(element_id=source.id, focus=RECOMPUTED_FOCUS, gap=gap),
            "end_binding": Binding(element_id=target.id, focus=RECOMPUTED_FOCUS, gap=gap),
            "version": connector.version + 1,
        })


def _radius(shape: Shape) -> float:
    """Approximate outline radius, the same for every shape kind."""
    return min(shape.width, shape.height) / 2


def _touches(connector: Connector, moved: Set[str]) -> bool:
    return connector.source_shape_id in moved or connector.target_shape_id in moved


def _shapes_by_id(elements: Sequence[Element]) -> Dict[str, Shape]:
    return {e.id: e for e in elements if isinstance(e, Shape)}
