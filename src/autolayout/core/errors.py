"""Exceptions raised by the auto-layout pipeline.

Only the solver boundary is expected to fail for well-formed input; the
remaining errors are precondition failures that leave the scene untouched.
"""

from typing import Iterable, Optional


class LayoutError(Exception):
    """Base exception for layout errors."""

    code = "LAYOUT_ERROR"


class NoOpError(LayoutError):
    """Raised when the selection cannot be laid out (usually empty)."""

    code = "NO_SELECTION"

    def __init__(self, message: str = "Please select at least one element"):
        super().__init__(message)


class LayoutBusyError(LayoutError):
    """Raised when a layout is already in flight for the document."""

    code = "LAYOUT_BUSY"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(
            f"A layout operation is already running for document {document_id}"
        )


class ResourceLimitError(LayoutError):
    """Raised when a selection has more nodes than the solver ceiling."""

    code = "RESOURCE_LIMIT"

    def __init__(self, node_count: int, limit: int):
        self.node_count = node_count
        self.limit = limit
        super().__init__(
            f"Selection has {node_count} shapes, above the layout limit of {limit}"
        )


class LayoutExecutionError(LayoutError):
    """Raised when the layout solver fails or returns partial output.

    Not retried automatically; the caller may retry with another algorithm.
    """

    code = "LAYOUT_EXECUTION_FAILED"

    def __init__(self, message: str, algorithm: Optional[str] = None):
        self.algorithm = algorithm
        super().__init__(message)


class UnknownAlgorithmError(LayoutError, ValueError):
    """Raised for an algorithm name outside the supported set."""

    code = "UNKNOWN_ALGORITHM"

    def __init__(self, algorithm: str, available: Iterable[str]):
        self.algorithm = algorithm
        super().__init__(
            f"Unknown layout algorithm: '{algorithm}'. "
            f"Available algorithms: {', '.join(available)}"
        )


class SceneNotFoundError(LayoutError, KeyError):
    """Raised when a scene ID is not registered."""

    code = "NOT_FOUND"

    def __init__(self, scene_id: str):
        self.scene_id = scene_id
        super().__init__(f"Scene {scene_id} not found")

    def __str__(self) -> str:
        return self.args[0]
