"""Structural signals and layout decisions.

Both are ephemeral: computed fresh per invocation and discarded once the
scene is committed.
"""

from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

LayoutAlgorithm = Literal["box", "layered", "mrtree", "stress", "grid"]
LayoutDirection = Literal["UP", "DOWN", "LEFT", "RIGHT"]

ALGORITHMS: Tuple[str, ...] = ("box", "layered", "mrtree", "stress", "grid")
DIRECTIONS: Tuple[str, ...] = ("UP", "DOWN", "LEFT", "RIGHT")

# Algorithms whose placement follows a flow direction
DIRECTIONAL_ALGORITHMS: Tuple[str, ...] = ("layered", "mrtree")


class Spacing(BaseModel):
    """Spacing between nodes on both axes."""

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., ge=0, description="Horizontal spacing")
    y: float = Field(..., ge=0, description="Vertical spacing")

    @property
    def uniform(self) -> float:
        """Single spacing value for algorithms that take one."""
        return min(self.x, self.y)


class StructuralSignals(BaseModel):
    """Counts, ratios and pattern flags computed from a selection."""

    model_config = ConfigDict(frozen=True)

    total_elements: int = Field(default=0, ge=0)
    rectangle_count: int = Field(default=0, ge=0)
    text_count: int = Field(default=0, ge=0)
    connection_count: int = Field(default=0, ge=0)
    box_to_arrow_ratio: float = Field(default=0.0, ge=0)
    connection_density: float = Field(default=0.0, ge=0)
    has_decision_nodes: bool = False
    has_linear_flow: bool = False
    has_horizontal_actors: bool = False
    has_vertical_messages: bool = False
    has_class_structure: bool = False
    has_inheritance_connections: bool = False
    has_lifeline_pattern: bool = False


class LayoutDecision(BaseModel):
    """The algorithm, direction and spacing chosen for one invocation.

    Attributes:
        algorithm: Solver algorithm family
        direction: Flow direction, only meaningful for directional algorithms
        spacing: Node spacing on both axes
        preserve_groups: Keep grouped shapes together where the solver allows
        confidence: How sure the classifier is, 1.0 for a user choice
        reason: Human-readable explanation
        rule: Name of the classifier rule that produced the decision
    """

    model_config = ConfigDict(frozen=True)

    algorithm: LayoutAlgorithm
    direction: Optional[LayoutDirection] = None
    spacing: Spacing
    preserve_groups: bool = False
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""
    rule: Optional[str] = None

    @property
    def is_directional(self) -> bool:
        return self.algorithm in DIRECTIONAL_ALGORITHMS

    @classmethod
    def manual(
        cls,
        algorithm: str,
        spacing: Spacing,
        direction: Optional[str] = None,
    ) -> "LayoutDecision":
        """Decision for an explicit user choice."""
        return cls(
            algorithm=algorithm,
            direction=direction,
            spacing=spacing,
            preserve_groups=algorithm in ("box", "mrtree"),
            confidence=1.0,
            reason=f"User selected {algorithm} layout",
            rule="manual",
        )
