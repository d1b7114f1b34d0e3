"""Base layout engine protocol.

Defines the interface that all layout solvers must implement.
"""

from abc import ABC, abstractmethod
from typing import FrozenSet

from autolayout.models.layout_metadata import GraphModel, LayoutOutcome


class LayoutEngine(ABC):
    """Abstract base class for layout engines.

    An engine takes sized nodes, edges and a named algorithm with options
    and returns a top-left position per node ID.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine name (e.g., 'elk', 'networkx')."""
        ...

    @property
    @abstractmethod
    def supported_algorithms(self) -> FrozenSet[str]:
        """Algorithm families the engine can run."""
        ...

    @abstractmethod
    async def layout(self, graph: GraphModel) -> LayoutOutcome:
        """Compute positions for a graph model.

        Args:
            graph: Graph model with sized nodes, edges and options

        Returns:
            LayoutOutcome with a position for every node
        """
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        """Check if engine is available (dependencies installed).

        Returns:
            True if engine can be used
        """
        ...
