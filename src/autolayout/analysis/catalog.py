"""
Layout Catalogue

The five fixed layout choices offered for manual selection, each with its
own default spacing and direction. A catalogue entry feeds the graph model
builder directly, bypassing the pattern classifier.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.errors import UnknownAlgorithmError
from ..models.layout_decision import ALGORITHMS, LayoutDecision, Spacing


@dataclass(frozen=True)
class CatalogueEntry:
    """One manually selectable layout."""
    id: str                          # algorithm id: box, layered, mrtree, stress, grid
    name: str
    description: str
    spacing: Spacing
    direction: Optional[str] = None
    best_for: List[str] = field(default_factory=list)

    def to_decision(self) -> LayoutDecision:
        return LayoutDecision.manual(self.id, self.spacing, self.direction)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "spacing": {"x": self.spacing.x, "y": self.spacing.y},
            "direction": self.direction,
            "best_for": list(self.best_for),
        }


LAYOUT_CATALOGUE: List[CatalogueEntry] = [
    CatalogueEntry(
        id="mrtree",
        name="Symmetric Flowchart Layout",
        description="Designed for flowcharts with symmetric branching and balanced decision nodes",
        spacing=Spacing(x=120, y=100),
        direction="DOWN",
        best_for=["Flowcharts", "Decision Trees", "Branch Logic", "Conditional Flows"],
    ),
    CatalogueEntry(
        id="layered",
        name="Sequential Steps Layout",
        description="Arrange elements in logical vertical sequence for clear step-by-step flows",
        spacing=Spacing(x=150, y=80),
        direction="DOWN",
        best_for=["Process Steps", "Sequence Diagrams", "Workflows", "Linear Flows"],
    ),
    CatalogueEntry(
        id="box",
        name="Compact Architecture Layout",
        description="Tight component arrangement to save space and show complex system relationships",
        spacing=Spacing(x=100, y=80),
        best_for=["System Architecture", "Component Relations", "Module Diagrams", "Microservices"],
    ),
    CatalogueEntry(
        id="stress",
        name="Network Relations Layout",
        description="Optimize connections intelligently to minimize crossings in complex networks",
        spacing=Spacing(x=100, y=100),
        best_for=["Relation Networks", "Dependency Graphs", "Complex Connections", "Web Structures"],
    ),
    CatalogueEntry(
        id="grid",
        name="Clean Grid Layout",
        description="Neat grid arrangement for simple and organized element display",
        spacing=Spacing(x=80, y=80),
        best_for=["Card Displays", "Icon Arrays", "Simple Grouping", "Regular Display"],
    ),
]

_BY_ID: Dict[str, CatalogueEntry] = {entry.id: entry for entry in LAYOUT_CATALOGUE}


def get_entry(algorithm: str) -> CatalogueEntry:
    """Look up a catalogue entry by algorithm id.

    Raises:
        UnknownAlgorithmError: If the algorithm is not in the catalogue
    """
    if algorithm not in _BY_ID:
        raise UnknownAlgorithmError(algorithm, ALGORITHMS)
    return _BY_ID[algorithm]
