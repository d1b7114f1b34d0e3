"""Excalidraw scene interchange.

Converts Excalidraw element dicts to scene elements and back. Keys the
scene model does not know about are kept in ``extra`` and written back
unchanged, so a load/layout/save cycle only touches geometry.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from ..models.scene import Binding, Connector, Shape

logger = logging.getLogger(__name__)

Element = Union[Shape, Connector]

SHAPE_TYPES: Dict[str, str] = {
    "rectangle": "box",
    "ellipse": "ellipse",
    "diamond": "diamond",
    "text": "text",
}
CONNECTOR_TYPES = ("arrow", "line")

_SHAPE_KEYS = {"id", "type", "x", "y", "width", "height", "text", "groupIds", "containerId"}
_CONNECTOR_KEYS = {
    "id", "type", "x", "y", "points", "strokeStyle",
}

# Excalidraw arrowheads folded onto the scene markers; outlined and circle
# variants keep their raw value in ``extra`` for the way back
ARROWHEADS: Dict[str, str] = {
    "arrow": "arrow",
    "bar": "bar",
    "dot": "dot",
    "circle": "dot",
    "circle_outline": "dot",
    "triangle": "triangle",
    "triangle_outline": "triangle",
}


def from_excalidraw(data: Sequence[Dict[str, Any]]) -> List[Element]:
    """Convert Excalidraw elements to scene elements.

    Deleted elements and element types outside the supported set
    (rectangle, ellipse, diamond, text, arrow, line) are left out.
    """
    elements: List[Element] = []
    skipped = 0
    for raw in data:
        if raw.get("isDeleted"):
            continue
        kind = raw.get("type")
        if kind in SHAPE_TYPES:
            elements.append(_shape_from_excalidraw(raw))
        elif kind in CONNECTOR_TYPES:
            elements.append(_connector_from_excalidraw(raw))
        else:
            skipped += 1
    if skipped:
        logger.debug(f"Ignored {skipped} unsupported Excalidraw element(s)")
    return elements


def to_excalidraw(elements: Sequence[Element]) -> List[Dict[str, Any]]:
    """Convert scene elements back to Excalidraw element dicts."""
    result = []
    for element in elements:
        if isinstance(element, Shape):
            result.append(_shape_to_excalidraw(element))
        else:
            result.append(_connector_to_excalidraw(element))
    return result


def is_excalidraw(data: Sequence[Dict[str, Any]]) -> bool:
    """True when the dicts look like Excalidraw elements rather than scene elements."""
    return any("type" in raw and "kind" not in raw for raw in data)


def _shape_from_excalidraw(raw: Dict[str, Any]) -> Shape:
    bound_label = next(
        (b.get("id") for b in raw.get("boundElements") or [] if b.get("type") == "text"),
        None,
    )
    kind = SHAPE_TYPES[raw["type"]]
    return Shape(
        id=raw["id"],
        kind=kind,
        x=raw.get("x", 0.0),
        y=raw.get("y", 0.0),
        width=raw.get("width", 0.0),
        height=raw.get("height", 0.0),
        text=raw.get("text") if kind == "text" else None,
        group_ids=list(raw.get("groupIds") or []),
        bound_label_id=bound_label,
        container_id=raw.get("containerId"),
        extra={k: v for k, v in raw.items() if k not in _SHAPE_KEYS},
    )


def _connector_from_excalidraw(raw: Dict[str, Any]) -> Connector:
    return Connector(
        id=raw["id"],
        kind=raw["type"],
        x=raw.get("x", 0.0),
        y=raw.get("y", 0.0),
        points=[tuple(p) for p in raw.get("points") or []],
        start_binding=_binding(raw.get("startBinding")),
        end_binding=_binding(raw.get("endBinding")),
        stroke_style=raw.get("strokeStyle") or "solid",
        start_arrowhead=ARROWHEADS.get(raw.get("startArrowhead")),
        end_arrowhead=ARROWHEADS.get(raw.get("endArrowhead")),
        version=raw.get("version", 0),
        extra={k: v for k, v in raw.items() if k not in _CONNECTOR_KEYS},
    )


def _binding(raw: Optional[Dict[str, Any]]) -> Optional[Binding]:
    if not raw or not raw.get("elementId"):
        return None
    return Binding(
        element_id=raw["elementId"],
        focus=raw.get("focus", 0.0),
        gap=raw.get("gap", 0.0),
    )


def _shape_to_excalidraw(shape: Shape) -> Dict[str, Any]:
    out = dict(shape.extra)
    out.update({
        "id": shape.id,
        "type": "rectangle" if shape.kind == "box" else shape.kind,
        "x": shape.x,
        "y": shape.y,
        "width": shape.width,
        "height": shape.height,
        "groupIds": list(shape.group_ids),
    })
    if shape.kind == "text":
        out["text"] = shape.text or ""
        out["containerId"] = shape.container_id
    return out


def _connector_to_excalidraw(connector: Connector) -> Dict[str, Any]:
    out = dict(connector.extra)
    previous_version = out.get("version")
    out.update({
        "id": connector.id,
        "type": connector.kind,
        "x": connector.x,
        "y": connector.y,
        "points": [list(p) for p in connector.points],
        "startBinding": _binding_dict(connector.start_binding, out.get("startBinding")),
        "endBinding": _binding_dict(connector.end_binding, out.get("endBinding")),
        "strokeStyle": connector.stroke_style,
        "startArrowhead": _arrowhead(connector.start_arrowhead, out.get("startArrowhead")),
        "endArrowhead": _arrowhead(connector.end_arrowhead, out.get("endArrowhead")),
        "version": connector.version,
    })
    if previous_version != connector.version and "versionNonce" in out:
        # Geometry was rewritten; a new nonce makes Excalidraw re-render it
        out["versionNonce"] = out["versionNonce"] + 1
    return out


def _binding_dict(
    binding: Optional[Binding], raw: Optional[Dict[str, Any]]
) -> Optional[Dict[str, Any]]:
    """Binding fields written over the original Excalidraw binding dict."""
    if binding is None:
        return None
    out = dict(raw or {})
    out.update({"elementId": binding.element_id, "focus": binding.focus, "gap": binding.gap})
    return out


def _arrowhead(marker: Optional[str], raw: Optional[str]) -> Optional[str]:
    """Original Excalidraw arrowhead when it still maps to ``marker``."""
    if raw is not None and ARROWHEADS.get(raw) == marker:
        return raw
    return marker
