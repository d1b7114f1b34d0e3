"""Public layout operations."""

from .layout_orchestrator import (
    LayoutOrchestrator,
    LayoutPreview,
    LayoutResult,
    LayoutSelectionRequest,
)

__all__ = [
    "LayoutOrchestrator",
    "LayoutPreview",
    "LayoutResult",
    "LayoutSelectionRequest",
]
