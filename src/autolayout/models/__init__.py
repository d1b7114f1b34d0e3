"""Pydantic models for scenes, structural signals, decisions and layouts."""

from .scene import (
    AppState,
    Binding,
    Connector,
    Selection,
    Shape,
    SceneElement,
    dump_elements,
    label_bindings,
    parse_elements,
    resolve_selection,
)
from .layout_decision import (
    ALGORITHMS,
    DIRECTIONS,
    LayoutDecision,
    Spacing,
    StructuralSignals,
)
from .layout_metadata import (
    BoundingBox,
    GraphEdge,
    GraphModel,
    GraphNode,
    LayoutOutcome,
    NodePosition,
)

__all__ = [
    # Scene
    "AppState",
    "Binding",
    "Connector",
    "Selection",
    "Shape",
    "SceneElement",
    "dump_elements",
    "label_bindings",
    "parse_elements",
    "resolve_selection",

    # Decisions
    "ALGORITHMS",
    "DIRECTIONS",
    "LayoutDecision",
    "Spacing",
    "StructuralSignals",

    # Graph model and outcome
    "BoundingBox",
    "GraphEdge",
    "GraphModel",
    "GraphNode",
    "LayoutOutcome",
    "NodePosition",
]
