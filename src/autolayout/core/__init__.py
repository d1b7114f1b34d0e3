"""
Core layer: error types, editor access and post-layout reconciliation.
"""

from .errors import (
    LayoutBusyError,
    LayoutError,
    LayoutExecutionError,
    NoOpError,
    ResourceLimitError,
    SceneNotFoundError,
    UnknownAlgorithmError,
)
from .editor import InMemorySceneEditor, SceneEditor, SceneRegistry
from .reconciler import ConnectorReconciler, ReconciledScene, ReconciliationSkip

__all__ = [
    # Errors
    "LayoutBusyError",
    "LayoutError",
    "LayoutExecutionError",
    "NoOpError",
    "ResourceLimitError",
    "SceneNotFoundError",
    "UnknownAlgorithmError",

    # Editor access
    "InMemorySceneEditor",
    "SceneEditor",
    "SceneRegistry",

    # Reconciliation
    "ConnectorReconciler",
    "ReconciledScene",
    "ReconciliationSkip",
]
