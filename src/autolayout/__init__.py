"""Pattern-aware automatic layout for hand-drawn diagram selections."""

__version__ = "0.1.0"

from .models import Connector, LayoutDecision, Shape, Spacing, StructuralSignals
from .core import InMemorySceneEditor, SceneEditor
from .orchestrator import LayoutOrchestrator, LayoutResult

__all__ = [
    "Connector",
    "LayoutDecision",
    "Shape",
    "Spacing",
    "StructuralSignals",
    "InMemorySceneEditor",
    "SceneEditor",
    "LayoutOrchestrator",
    "LayoutResult",
]
