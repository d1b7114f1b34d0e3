"""Scene element models for freeform diagrams.

A scene is a flat list of elements. Shapes (box, ellipse, diamond, text)
are positioned and sized; connectors (arrow, line) carry a local point list
relative to their own origin and may be bound to a shape at either end.

Elements are immutable: layout code derives updated copies with
``model_copy(update=...)`` and passes untouched elements through as the
same objects.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ShapeKind = Literal["box", "ellipse", "diamond", "text"]
ConnectorKind = Literal["arrow", "line"]
Arrowhead = Literal["arrow", "bar", "dot", "triangle"]

SHAPE_KINDS: Tuple[str, ...] = ("box", "ellipse", "diamond", "text")
CONNECTOR_KINDS: Tuple[str, ...] = ("arrow", "line")


class Binding(BaseModel):
    """Attachment of a connector end to a shape."""

    model_config = ConfigDict(frozen=True)

    element_id: str = Field(..., description="ID of the bound shape")
    focus: float = Field(default=0.0, description="Focus point along the outline (-1..1)")
    gap: float = Field(default=0.0, description="Gap between tip and outline")


class Shape(BaseModel):
    """A positioned, sized diagram element that is not a connector."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique element ID")
    kind: ShapeKind = Field(..., description="Shape kind")
    x: float = Field(..., description="Top-left x coordinate")
    y: float = Field(..., description="Top-left y coordinate")
    width: float = Field(default=0.0, ge=0, description="Width")
    height: float = Field(default=0.0, ge=0, description="Height")
    text: Optional[str] = Field(default=None, description="Text content")
    group_ids: List[str] = Field(default_factory=list, description="Enclosing groups, innermost first")
    bound_label_id: Optional[str] = Field(
        default=None, description="Text shape attached to this container"
    )
    container_id: Optional[str] = Field(
        default=None, description="Container this text shape is attached to"
    )
    extra: Dict[str, Any] = Field(
        default_factory=dict, description="Foreign keys preserved on round trip"
    )

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


class Connector(BaseModel):
    """An arrow or line, optionally bound to a source and a target shape."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique element ID")
    kind: ConnectorKind = Field(..., description="Connector kind")
    x: float = Field(default=0.0, description="Origin x coordinate")
    y: float = Field(default=0.0, description="Origin y coordinate")
    points: List[Tuple[float, float]] = Field(
        default_factory=list, description="Points relative to the origin, start first"
    )
    start_binding: Optional[Binding] = Field(default=None, description="Source binding")
    end_binding: Optional[Binding] = Field(default=None, description="Target binding")
    stroke_style: Literal["solid", "dashed", "dotted"] = Field(
        default="solid", description="Stroke style"
    )
    start_arrowhead: Optional[Arrowhead] = Field(default=None, description="Start marker")
    end_arrowhead: Optional[Arrowhead] = Field(default=None, description="End marker")
    version: int = Field(default=0, description="Change marker, bumped on geometry rewrite")
    extra: Dict[str, Any] = Field(
        default_factory=dict, description="Foreign keys preserved on round trip"
    )

    @property
    def source_shape_id(self) -> Optional[str]:
        return self.start_binding.element_id if self.start_binding else None

    @property
    def target_shape_id(self) -> Optional[str]:
        return self.end_binding.element_id if self.end_binding else None

    @property
    def direction_vector(self) -> Optional[Tuple[float, float]]:
        """End point minus start point, or None without two points."""
        if len(self.points) < 2:
            return None
        (sx, sy), (ex, ey) = self.points[0], self.points[-1]
        return (ex - sx, ey - sy)


SceneElement = Annotated[Union[Shape, Connector], Field(discriminator="kind")]

_elements_adapter = TypeAdapter(List[SceneElement])


def parse_elements(data: Sequence[Dict[str, Any]]) -> List[Union[Shape, Connector]]:
    """Validate a list of element dicts into scene elements.

    Raises:
        pydantic.ValidationError: If an element is malformed or of unknown kind
    """
    return _elements_adapter.validate_python(list(data))


def dump_elements(elements: Sequence[Union[Shape, Connector]]) -> List[Dict[str, Any]]:
    """Serialize scene elements to JSON-compatible dicts."""
    return [element.model_dump(mode="json") for element in elements]


class AppState(BaseModel):
    """View state of the editor that layout cares about."""

    selected_element_ids: List[str] = Field(
        default_factory=list, description="IDs chosen by the user"
    )


def label_bindings(elements: Sequence[Union[Shape, Connector]]) -> Dict[str, str]:
    """Map each bound text label ID to its container ID.

    A binding may be recorded on either side (``container_id`` on the label or
    ``bound_label_id`` on the container); both are honoured.
    """
    shapes = {e.id: e for e in elements if isinstance(e, Shape)}
    bindings: Dict[str, str] = {}

    for shape in shapes.values():
        if shape.kind == "text" and shape.container_id and shape.container_id in shapes:
            bindings[shape.id] = shape.container_id

    for shape in shapes.values():
        label = shapes.get(shape.bound_label_id) if shape.bound_label_id else None
        if label is not None and label.kind == "text" and label.id not in bindings:
            bindings[label.id] = shape.id

    return bindings


class Selection(BaseModel):
    """A resolved selection, ready for analysis and graph building.

    Attributes:
        shapes: Layoutable shapes, in scene order. Bound labels whose
            container is selected are folded into the container.
        connectors: Candidate connectors, both ends bound inside ``shapes``
        labels: Container ID -> bound label shape, for containers in ``shapes``
    """

    model_config = ConfigDict(frozen=True)

    shapes: List[Shape] = Field(default_factory=list)
    connectors: List[Connector] = Field(default_factory=list)
    labels: Dict[str, Shape] = Field(default_factory=dict)

    @property
    def node_ids(self) -> List[str]:
        return [shape.id for shape in self.shapes]

    @property
    def is_empty(self) -> bool:
        return not self.shapes

    @property
    def element_count(self) -> int:
        """Selected shapes plus the connectors between them."""
        return len(self.shapes) + len(self.connectors)

    def label_text(self, container_id: str) -> Optional[str]:
        label = self.labels.get(container_id)
        return label.text if label is not None else None


def resolve_selection(
    elements: Sequence[Union[Shape, Connector]],
    selected_ids: Sequence[str],
) -> Selection:
    """Resolve selected IDs against a scene.

    Unknown IDs are ignored. Selected connectors are never nodes; the
    candidate connector set is every connector in the scene whose source and
    target are both layoutable selected shapes.
    """
    wanted = set(selected_ids)
    bindings = label_bindings(elements)

    selected_shapes = [e for e in elements if isinstance(e, Shape) and e.id in wanted]
    selected_shape_ids = {s.id for s in selected_shapes}

    shapes = [
        shape for shape in selected_shapes
        if bindings.get(shape.id) not in selected_shape_ids
    ]
    node_ids = {s.id for s in shapes}

    labels: Dict[str, Shape] = {}
    for element in elements:
        container_id = bindings.get(element.id)
        if container_id in node_ids:
            labels[container_id] = element

    connectors = [
        e for e in elements
        if isinstance(e, Connector)
        and e.source_shape_id in node_ids
        and e.target_shape_id in node_ids
    ]

    return Selection(shapes=shapes, connectors=connectors, labels=labels)
