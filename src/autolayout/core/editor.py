"""
Editor access for the layout pipeline.

The orchestrator never reaches for a process-wide editor; callers pass a
SceneEditor into each operation. This module defines that interface and an
in-memory implementation with one-step-per-commit undo history, plus a
registry of open scenes used by the MCP tool layer.

Usage:
    from autolayout.core.editor import InMemorySceneEditor

    editor = InMemorySceneEditor("doc-1", elements, selected_ids=["a", "b"])
    result = await orchestrator.apply_layout(editor, "grid", Spacing(x=80, y=80))
    editor.undo()  # the whole layout is one step
"""

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..models.scene import AppState, Connector, Shape
from .errors import SceneNotFoundError

logger = logging.getLogger(__name__)

Element = Union[Shape, Connector]


class SceneEditor(ABC):
    """What the layout pipeline needs from a canvas/editor."""

    @property
    @abstractmethod
    def document_id(self) -> str:
        """Identity used for the one-layout-in-flight rule."""
        ...

    @abstractmethod
    def get_scene_elements(self) -> List[Element]:
        """Current elements of the scene."""
        ...

    @abstractmethod
    def get_app_state(self) -> AppState:
        """Current view/selection state."""
        ...

    @abstractmethod
    def update_scene(
        self,
        elements: Sequence[Element],
        app_state: Optional[AppState] = None,
        commit_to_history: bool = True,
    ) -> None:
        """Replace the whole element collection in one step."""
        ...

    @abstractmethod
    def scroll_to_content(self, element_ids: Sequence[str]) -> None:
        """Cosmetic: frame the given elements in the viewport."""
        ...


@dataclass
class HistoryEntry:
    """Scene state before one committed replace."""
    elements: Tuple[Element, ...]
    app_state: AppState
    timestamp: datetime = field(default_factory=datetime.now)


class InMemorySceneEditor(SceneEditor):
    """Thread-safe in-memory scene with undo history.

    Elements are immutable models, so history entries hold references to
    the previous element tuples instead of deep copies.
    """

    def __init__(
        self,
        document_id: Optional[str] = None,
        elements: Optional[Sequence[Element]] = None,
        selected_ids: Optional[Sequence[str]] = None,
        max_history: int = 50,
    ):
        self._document_id = document_id or f"scene_{uuid.uuid4().hex[:8]}"
        self._elements: Tuple[Element, ...] = tuple(elements or ())
        self._app_state = AppState(selected_element_ids=list(selected_ids or []))
        self._history: List[HistoryEntry] = []
        self._max_history = max_history
        self._lock = threading.RLock()
        self.framed: List[List[str]] = []

    @property
    def document_id(self) -> str:
        return self._document_id

    def get_scene_elements(self) -> List[Element]:
        with self._lock:
            return list(self._elements)

    def get_app_state(self) -> AppState:
        with self._lock:
            return self._app_state.model_copy(deep=True)

    def update_scene(
        self,
        elements: Sequence[Element],
        app_state: Optional[AppState] = None,
        commit_to_history: bool = True,
    ) -> None:
        with self._lock:
            if commit_to_history:
                self._history.append(HistoryEntry(self._elements, self._app_state))
                if len(self._history) > self._max_history:
                    self._history.pop(0)
            self._elements = tuple(elements)
            if app_state is not None:
                self._app_state = app_state
            logger.debug(f"Scene {self._document_id} replaced with {len(self._elements)} elements")

    def scroll_to_content(self, element_ids: Sequence[str]) -> None:
        self.framed.append(list(element_ids))

    def select(self, element_ids: Sequence[str]) -> None:
        """Set the selection without touching history."""
        with self._lock:
            self._app_state = AppState(selected_element_ids=list(element_ids))

    def undo(self) -> bool:
        """Restore the scene before the last committed replace.

        Returns:
            False when there is nothing to undo
        """
        with self._lock:
            if not self._history:
                return False
            entry = self._history.pop()
            self._elements = entry.elements
            self._app_state = entry.app_state
            logger.info(f"Scene {self._document_id} restored to {entry.timestamp.isoformat()}")
            return True

    @property
    def history_depth(self) -> int:
        with self._lock:
            return len(self._history)


class SceneRegistry:
    """Open scenes by ID, for callers that address scenes remotely."""

    def __init__(self):
        self._scenes: Dict[str, InMemorySceneEditor] = {}
        self._lock = threading.RLock()

    def create(
        self,
        elements: Sequence[Element],
        selected_ids: Optional[Sequence[str]] = None,
        scene_id: Optional[str] = None,
    ) -> InMemorySceneEditor:
        editor = InMemorySceneEditor(scene_id, elements, selected_ids)
        with self._lock:
            self._scenes[editor.document_id] = editor
        logger.info(f"Loaded scene {editor.document_id} with {len(elements)} elements")
        return editor

    def get(self, scene_id: str) -> InMemorySceneEditor:
        """
        Raises:
            SceneNotFoundError: If the scene is not registered
        """
        with self._lock:
            if scene_id not in self._scenes:
                raise SceneNotFoundError(scene_id)
            return self._scenes[scene_id]

    def delete(self, scene_id: str) -> bool:
        with self._lock:
            return self._scenes.pop(scene_id, None) is not None

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._scenes.keys())

    def __contains__(self, scene_id: str) -> bool:
        with self._lock:
            return scene_id in self._scenes

    def __len__(self) -> int:
        with self._lock:
            return len(self._scenes)
