"""Structural signal extraction from a diagram selection.

Hand-drawn diagrams carry no grammar, so the notation has to be inferred
from loose geometry: how many boxes and connectors there are, how text is
arranged, how connectors run and which markers they end in. Every signal
here is a pure function of the resolved selection.
"""

import logging
import re
from statistics import fmean, pvariance
from typing import List, Optional

import networkx as nx

from ..config.settings import DEFAULT_THRESHOLDS, HeuristicThresholds
from ..models.layout_decision import StructuralSignals
from ..models.scene import Connector, Selection, Shape

logger = logging.getLogger(__name__)

# Condition-like wording in English and Chinese; whole words only so that
# "node" or "notes" are not read as "no".
DECISION_TEXT_PATTERN = re.compile(
    r"[?？]|\b(?:if|else|yes|no|true|false)\b|如果|否则|是否",
    re.IGNORECASE,
)

CLASS_TEXT_PATTERN = re.compile(r"class|interface|struct|enum", re.IGNORECASE)


class ElementAnalyzer:
    """Computes StructuralSignals for a resolved selection."""

    def __init__(self, thresholds: HeuristicThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    def analyze(self, selection: Selection) -> StructuralSignals:
        shapes = selection.shapes
        connectors = selection.connectors

        boxes = [s for s in shapes if s.kind == "box"]
        texts = [s for s in shapes if s.kind == "text"]

        total = len(shapes)
        rectangle_count = len(boxes)
        connection_count = len(connectors)

        signals = StructuralSignals(
            total_elements=total,
            rectangle_count=rectangle_count,
            text_count=len(texts),
            connection_count=connection_count,
            box_to_arrow_ratio=(
                rectangle_count / connection_count if connection_count > 0 else float(rectangle_count)
            ),
            connection_density=connection_count / total if total > 0 else 0.0,
            has_decision_nodes=self.has_decision_nodes(shapes, selection),
            has_linear_flow=self.has_linear_flow(connectors),
            has_horizontal_actors=self.has_horizontal_actors(texts, shapes),
            has_vertical_messages=self.has_vertical_messages(connectors),
            has_class_structure=self.has_class_structure(boxes, selection),
            has_inheritance_connections=self.has_inheritance_connections(connectors),
            has_lifeline_pattern=self.has_lifeline_pattern(texts, boxes),
        )

        logger.debug(f"Structural signals: {signals.model_dump()}")
        return signals

    # ------------------------------------------------------------------
    # Pattern flags
    # ------------------------------------------------------------------

    def has_decision_nodes(self, shapes: List[Shape], selection: Selection) -> bool:
        """A diamond, or condition wording in a text shape or a bound label."""
        for shape in shapes:
            if shape.kind == "diamond":
                return True
            own_text = shape.text if shape.kind == "text" else None
            for content in (own_text, selection.label_text(shape.id)):
                if content and DECISION_TEXT_PATTERN.search(content):
                    return True
        return False

    def has_linear_flow(self, connectors: List[Connector]) -> bool:
        """Most touched nodes have at most two connector endpoints."""
        if len(connectors) < self.thresholds.linear_flow_min_connections:
            return False

        graph = nx.MultiGraph()
        for connector in connectors:
            graph.add_edge(connector.source_shape_id, connector.target_shape_id, key=connector.id)

        degrees = [degree for _, degree in graph.degree()]
        if not degrees:
            return False
        linear = sum(1 for degree in degrees if degree <= 2)
        return linear / len(degrees) > self.thresholds.linear_flow_share

    def has_horizontal_actors(self, texts: List[Shape], shapes: List[Shape]) -> bool:
        """Text shapes form a row, either tightly aligned or along the top.

        The two checks are OR-ed on purpose: hand alignment is imprecise.
        """
        if len(texts) < 2:
            return False

        y_positions = [t.y for t in texts]
        if pvariance(y_positions) < self.thresholds.actor_y_variance:
            return True

        top = min(s.y for s in shapes)
        bottom = max(s.y + s.height for s in shapes)
        cutoff = top + (bottom - top) / 3
        in_top_third = sum(1 for y in y_positions if y <= cutoff)
        return in_top_third / len(texts) >= self.thresholds.actor_top_share

    def has_vertical_messages(self, connectors: List[Connector]) -> bool:
        vectors = [c.direction_vector for c in connectors if c.direction_vector is not None]
        if not vectors:
            return False
        vertical = sum(1 for _, dy in vectors if abs(dy) > self.thresholds.message_min_dy)
        return vertical / len(vectors) >= self.thresholds.message_vertical_ratio

    def has_class_structure(self, boxes: List[Shape], selection: Selection) -> bool:
        for box in boxes:
            text = _box_text(box, selection)
            if text and CLASS_TEXT_PATTERN.search(text):
                return True
        return False

    def has_inheritance_connections(self, connectors: List[Connector]) -> bool:
        return any(c.end_arrowhead == "triangle" for c in connectors)

    def has_lifeline_pattern(self, texts: List[Shape], boxes: List[Shape]) -> bool:
        """Actors (text) sit above the boxes and are spread across the page."""
        if len(texts) < 2 or len(boxes) < 2:
            return False

        avg_text_y = fmean(t.y for t in texts)
        avg_box_y = fmean(b.y for b in boxes)
        separated = avg_text_y <= avg_box_y - self.thresholds.lifeline_min_separation

        x_positions = [s.x for s in texts + boxes]
        spread = max(x_positions) - min(x_positions)
        return separated and spread > self.thresholds.lifeline_min_spread


def _box_text(box: Shape, selection: Selection) -> Optional[str]:
    """Text of a box: its own text, else the text of its bound label."""
    return box.text or selection.label_text(box.id)
