"""MCP tools for pattern-aware diagram layout.

Provides tools to:
- Load a diagram scene (native or Excalidraw elements) and select shapes
- Analyze the selection and propose a layout from the catalogue
- Apply, preview and undo layouts
"""

import logging
from typing import Any, Dict, List, Optional

from mcp import Tool
from pydantic import ValidationError

from ..analysis.catalog import LAYOUT_CATALOGUE
from ..converters.excalidraw import from_excalidraw, is_excalidraw, to_excalidraw
from ..core.editor import SceneRegistry
from ..core.errors import LayoutError
from ..models.layout_decision import ALGORITHMS, DIRECTIONS, Spacing
from ..models.scene import dump_elements, parse_elements
from ..orchestrator.layout_orchestrator import LayoutOrchestrator, LayoutPreview, LayoutResult
from ..utils.response import error_response, layout_error_response, success_response

logger = logging.getLogger(__name__)

_SCENE_ID = {"type": "string", "description": "ID of a loaded scene"}
_ALGORITHM = {
    "type": "string",
    "enum": list(ALGORITHMS),
    "description": "Layout algorithm",
}
_DIRECTION = {
    "type": "string",
    "enum": list(DIRECTIONS),
    "description": "Flow direction (layered and mrtree only; catalogue default if omitted)",
}
_SPACING_X = {"type": "number", "description": "Horizontal spacing (catalogue default if omitted)"}
_SPACING_Y = {"type": "number", "description": "Vertical spacing (catalogue default if omitted)"}


class LayoutTools:
    """Provides auto-layout tools over an in-memory scene registry."""

    def __init__(
        self,
        scenes: Optional[SceneRegistry] = None,
        orchestrator: Optional[LayoutOrchestrator] = None,
    ):
        """Initialize with a scene registry and an orchestrator.

        Args:
            scenes: Registry of open scenes (created if not provided)
            orchestrator: Layout orchestrator (created if not provided)
        """
        self.scenes = scenes or SceneRegistry()
        self.orchestrator = orchestrator or LayoutOrchestrator()
        self._previews: Dict[str, LayoutPreview] = {}

    def get_tools(self) -> List[Tool]:
        """Return layout MCP tools."""
        return [
            Tool(
                name="layout_scene_load",
                description="Load a diagram scene. Accepts native scene elements or Excalidraw elements.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "elements": {
                            "type": "array",
                            "items": {"type": "object"},
                            "description": "Scene elements (native 'kind' or Excalidraw 'type' form)"
                        },
                        "selected_ids": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Initially selected element IDs"
                        },
                        "scene_id": {
                            "type": "string",
                            "description": "Optional scene ID (generated if omitted)"
                        }
                    },
                    "required": ["elements"]
                }
            ),
            Tool(
                name="layout_scene_get",
                description="Get the elements and selection of a loaded scene",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "scene_id": _SCENE_ID,
                        "format": {
                            "type": "string",
                            "enum": ["native", "excalidraw"],
                            "description": "Element format of the response",
                            "default": "native"
                        }
                    },
                    "required": ["scene_id"]
                }
            ),
            Tool(
                name="layout_select",
                description="Set the selected element IDs of a scene",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "scene_id": _SCENE_ID,
                        "element_ids": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Element IDs to select"
                        }
                    },
                    "required": ["scene_id", "element_ids"]
                }
            ),
            Tool(
                name="layout_analyze",
                description="Analyze the selection and propose a layout. Returns structural signals, the proposed decision and the layout catalogue.",
                inputSchema={
                    "type": "object",
                    "properties": {"scene_id": _SCENE_ID},
                    "required": ["scene_id"]
                }
            ),
            Tool(
                name="layout_apply",
                description="Apply a layout algorithm to the selection. Connectors and bound labels follow their shapes.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "scene_id": _SCENE_ID,
                        "algorithm": _ALGORITHM,
                        "spacing_x": _SPACING_X,
                        "spacing_y": _SPACING_Y,
                        "direction": _DIRECTION,
                    },
                    "required": ["scene_id", "algorithm"]
                }
            ),
            Tool(
                name="layout_auto",
                description="Detect the diagram type of the selection and apply the matching layout in one step",
                inputSchema={
                    "type": "object",
                    "properties": {"scene_id": _SCENE_ID},
                    "required": ["scene_id"]
                }
            ),
            Tool(
                name="layout_preview",
                description="Compute a layout without changing the scene. Use layout_preview_commit to apply it.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "scene_id": _SCENE_ID,
                        "algorithm": _ALGORITHM,
                        "spacing_x": _SPACING_X,
                        "spacing_y": _SPACING_Y,
                        "direction": _DIRECTION,
                    },
                    "required": ["scene_id", "algorithm"]
                }
            ),
            Tool(
                name="layout_preview_commit",
                description="Apply the last preview computed for a scene",
                inputSchema={
                    "type": "object",
                    "properties": {"scene_id": _SCENE_ID},
                    "required": ["scene_id"]
                }
            ),
            Tool(
                name="layout_undo",
                description="Undo the last committed change to a scene",
                inputSchema={
                    "type": "object",
                    "properties": {"scene_id": _SCENE_ID},
                    "required": ["scene_id"]
                }
            ),
            Tool(
                name="layout_catalog",
                description="List the manually selectable layouts with their default spacing and direction",
                inputSchema={"type": "object", "properties": {}}
            ),
        ]

    async def handle_tool(self, name: str, arguments: dict) -> dict:
        """Route tool call to appropriate handler.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Standardized response
        """
        handlers = {
            "layout_scene_load": self._load_scene,
            "layout_scene_get": self._get_scene,
            "layout_select": self._select,
            "layout_analyze": self._analyze,
            "layout_apply": self._apply,
            "layout_auto": self._auto,
            "layout_preview": self._preview,
            "layout_preview_commit": self._commit_preview,
            "layout_undo": self._undo,
            "layout_catalog": self._catalog,
        }

        handler = handlers.get(name)
        if not handler:
            return error_response(f"Unknown layout tool: {name}", code="UNKNOWN_TOOL")

        try:
            return await handler(arguments)
        except LayoutError as e:
            logger.info(f"{name} rejected: {e}")
            return layout_error_response(e)
        except Exception as e:
            logger.error(f"Error in {name}: {e}", exc_info=True)
            return error_response(str(e), code="TOOL_ERROR")

    async def _load_scene(self, args: dict) -> dict:
        raw = args["elements"]
        try:
            elements = from_excalidraw(raw) if is_excalidraw(raw) else parse_elements(raw)
        except ValidationError as e:
            return error_response(
                "Invalid scene elements",
                code="INVALID_ELEMENTS",
                details={"errors": e.errors(include_url=False, include_context=False)},
            )

        editor = self.scenes.create(elements, args.get("selected_ids"), args.get("scene_id"))
        return success_response({
            "scene_id": editor.document_id,
            "element_count": len(elements),
            "selected_ids": editor.get_app_state().selected_element_ids,
        })

    async def _get_scene(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        elements = editor.get_scene_elements()
        if args.get("format", "native") == "excalidraw":
            data = to_excalidraw(elements)
        else:
            data = dump_elements(elements)
        return success_response({
            "scene_id": editor.document_id,
            "elements": data,
            "selected_ids": editor.get_app_state().selected_element_ids,
            "history_depth": editor.history_depth,
            "busy": self.orchestrator.is_busy(editor),
        })

    async def _select(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        editor.select(args["element_ids"])
        return success_response({
            "scene_id": editor.document_id,
            "selected_ids": editor.get_app_state().selected_element_ids,
        })

    async def _analyze(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        request = await self.orchestrator.auto_layout(editor)
        return success_response(request.to_dict(), warnings=request.warnings)

    async def _apply(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        result = await self.orchestrator.apply_layout(
            editor, args["algorithm"], _spacing(args), args.get("direction")
        )
        return _result_response(result)

    async def _auto(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        result = await self.orchestrator.auto_layout(editor, direct=True)
        return _result_response(result)

    async def _preview(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        preview = await self.orchestrator.preview_layout(
            editor, args["algorithm"], _spacing(args), args.get("direction")
        )
        self._previews[editor.document_id] = preview
        return success_response({
            "scene_id": editor.document_id,
            "algorithm": preview.decision.algorithm,
            "direction": preview.decision.direction,
            "elements": preview.positions(),
            "fingerprint": preview.outcome.fingerprint,
            "execution_time_ms": round(preview.execution_time_ms, 2),
        }, warnings=preview.warnings)

    async def _commit_preview(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        preview = self._previews.pop(editor.document_id, None)
        if preview is None:
            return error_response(
                f"No pending preview for scene {editor.document_id}", code="NO_PREVIEW"
            )
        return _result_response(self.orchestrator.commit_preview(editor, preview))

    async def _undo(self, args: dict) -> dict:
        editor = self.scenes.get(args["scene_id"])
        if not editor.undo():
            return error_response(
                f"Nothing to undo in scene {editor.document_id}", code="NOTHING_TO_UNDO"
            )
        return success_response({
            "scene_id": editor.document_id,
            "history_depth": editor.history_depth,
        })

    async def _catalog(self, args: dict) -> dict:
        return success_response({"layouts": [entry.to_dict() for entry in LAYOUT_CATALOGUE]})


def _spacing(args: dict) -> Optional[Spacing]:
    """Spacing from the arguments; None lets the catalogue default apply."""
    x, y = args.get("spacing_x"), args.get("spacing_y")
    if x is None and y is None:
        return None
    if x is None or y is None:
        raise ValueError("spacing_x and spacing_y must be given together")
    return Spacing(x=x, y=y)


def _result_response(result: LayoutResult) -> Dict[str, Any]:
    if not result.success:
        return error_response(
            result.message or "Layout failed",
            code=result.error_code,
            details={"algorithm": result.algorithm},
        )
    return success_response(result.to_dict(), warnings=result.warnings)
