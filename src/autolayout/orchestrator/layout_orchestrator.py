"""
Layout Orchestrator

Public entry point of the auto-layout pipeline:

    selection -> ElementAnalyzer -> PatternClassifier -> GraphModelBuilder
              -> LayoutExecutor -> ConnectorReconciler -> one scene replace

The editor is passed into every operation, so several documents can be laid
out side by side. Only one layout may be in flight per document; a second
request is rejected with LayoutBusyError instead of being queued, because
the result depends on a before/after snapshot of the selection.

Usage:
    orchestrator = LayoutOrchestrator()

    request = await orchestrator.auto_layout(editor)   # proposal only
    result = await request.apply("layered", Spacing(x=150, y=80), "DOWN")

    result = await orchestrator.auto_layout(editor, direct=True)  # one shot
"""

import asyncio
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Set, Tuple, Union

from ..analysis.catalog import LAYOUT_CATALOGUE, CatalogueEntry, get_entry
from ..analysis.element_analyzer import ElementAnalyzer
from ..analysis.pattern_classifier import PatternClassifier
from ..config import settings
from ..config.settings import DEFAULT_THRESHOLDS, HeuristicThresholds
from ..core.editor import SceneEditor
from ..core.errors import LayoutBusyError, LayoutExecutionError, NoOpError
from ..core.reconciler import ConnectorReconciler, ReconciledScene
from ..layout.executor import LayoutExecutor
from ..layout.graph_builder import GraphModelBuilder
from ..models.layout_decision import (
    DIRECTIONAL_ALGORITHMS,
    DIRECTIONS,
    LayoutDecision,
    Spacing,
    StructuralSignals,
)
from ..models.layout_metadata import LayoutOutcome
from ..models.scene import Connector, Selection, Shape, resolve_selection

logger = logging.getLogger(__name__)

Element = Union[Shape, Connector]


@dataclass
class LayoutResult:
    """Outcome of one layout operation, reported back to the caller."""
    success: bool
    algorithm: Optional[str] = None
    direction: Optional[str] = None
    elements: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    reason: str = ""
    warnings: List[str] = field(default_factory=list)
    message: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "algorithm": self.algorithm,
            "direction": self.direction,
            "elements": self.elements,
            "metadata": self.metadata,
            "reason": self.reason,
            "warnings": self.warnings,
            "message": self.message,
            "error_code": self.error_code,
        }


@dataclass
class LayoutSelectionRequest:
    """A proposed decision awaiting the user's confirmation.

    ``apply`` runs the chosen catalogue entry (or the proposal itself) on
    the same editor.
    """
    element_count: int
    proposed: LayoutDecision
    signals: StructuralSignals
    catalogue: List[CatalogueEntry]
    warnings: List[str]
    apply: Callable[..., Awaitable[LayoutResult]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "element_count": self.element_count,
            "proposed": self.proposed.model_dump(),
            "signals": self.signals.model_dump(),
            "catalogue": [entry.to_dict() for entry in self.catalogue],
            "warnings": list(self.warnings),
        }


@dataclass
class LayoutPreview:
    """A computed but uncommitted layout. Discarding it has no side effects."""
    document_id: str
    decision: LayoutDecision
    outcome: LayoutOutcome
    snapshot: Tuple[Element, ...]
    reconciled: ReconciledScene
    warnings: List[str]
    execution_time_ms: float

    def positions(self) -> List[Dict[str, Any]]:
        by_id = {e.id: e for e in self.reconciled.elements}
        return [
            {"id": i, "x": by_id[i].x, "y": by_id[i].y}
            for i in self.reconciled.moved_ids + self.reconciled.label_ids
        ]


class LayoutOrchestrator:
    """Sequences analysis, classification, solving and reconciliation."""

    def __init__(
        self,
        analyzer: Optional[ElementAnalyzer] = None,
        classifier: Optional[PatternClassifier] = None,
        builder: Optional[GraphModelBuilder] = None,
        executor: Optional[LayoutExecutor] = None,
        reconciler: Optional[ConnectorReconciler] = None,
        thresholds: HeuristicThresholds = DEFAULT_THRESHOLDS,
    ):
        self.thresholds = thresholds
        self.analyzer = analyzer or ElementAnalyzer(thresholds)
        self.classifier = classifier or PatternClassifier(thresholds=thresholds)
        self.builder = builder or GraphModelBuilder(thresholds=thresholds)
        self.executor = executor or LayoutExecutor()
        self.reconciler = reconciler or ConnectorReconciler(thresholds)
        self._busy: Set[str] = set()
        self._busy_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def resolve(self, editor: SceneEditor) -> Selection:
        elements = editor.get_scene_elements()
        selected = editor.get_app_state().selected_element_ids
        return resolve_selection(elements, selected)

    def analyze(self, editor: SceneEditor) -> Tuple[Selection, StructuralSignals, LayoutDecision]:
        """Signals and the classifier's decision for the current selection.

        Raises:
            NoOpError: If nothing layoutable is selected
        """
        selection = self.resolve(editor)
        if selection.is_empty:
            raise NoOpError()
        signals = self.analyzer.analyze(selection)
        decision = self.classifier.classify(signals)
        logger.debug(
            f"Selection of {len(selection.shapes)} shapes classified as "
            f"{decision.algorithm} ({decision.rule}, confidence {decision.confidence:.2f})"
        )
        return selection, signals, decision

    def is_busy(self, editor: SceneEditor) -> bool:
        with self._busy_lock:
            return editor.document_id in self._busy

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def auto_layout(
        self, editor: SceneEditor, direct: bool = False
    ) -> Union[LayoutSelectionRequest, LayoutResult]:
        """Classify the selection; apply right away when ``direct``.

        Raises:
            NoOpError: If nothing layoutable is selected
        """
        selection, signals, decision = self.analyze(editor)
        if direct:
            return await self._run(editor, decision)

        return LayoutSelectionRequest(
            element_count=selection.element_count,
            proposed=decision,
            signals=signals,
            catalogue=list(LAYOUT_CATALOGUE),
            warnings=self._warnings(selection, decision),
            apply=partial(self.apply_layout, editor),
        )

    async def apply_layout(
        self,
        editor: SceneEditor,
        algorithm: str,
        spacing: Optional[Spacing] = None,
        direction: Optional[str] = None,
    ) -> LayoutResult:
        """Lay out the selection with an explicit algorithm.

        Spacing and direction default to the catalogue entry of the
        algorithm.

        Raises:
            UnknownAlgorithmError: If ``algorithm`` is not supported
            NoOpError: If nothing layoutable is selected
            LayoutBusyError: If a layout is already running for the document
            ResourceLimitError: If the selection exceeds the node ceiling
        """
        decision = self.manual_decision(algorithm, spacing, direction)
        return await self._run(editor, decision)

    async def preview_layout(
        self,
        editor: SceneEditor,
        algorithm: str,
        spacing: Optional[Spacing] = None,
        direction: Optional[str] = None,
    ) -> LayoutPreview:
        """Compute a layout without touching the scene.

        Raises:
            LayoutExecutionError: If the solver fails
        """
        decision = self.manual_decision(algorithm, spacing, direction)
        with self._in_flight(editor):
            snapshot, selection = self._snapshot(editor)
            started = time.perf_counter()
            outcome = await self.executor.execute(self.builder.build(selection, decision))
            reconciled = self.reconciler.reconcile(list(snapshot), outcome, snapshot)
            elapsed = (time.perf_counter() - started) * 1000

        return LayoutPreview(
            document_id=editor.document_id,
            decision=decision,
            outcome=outcome,
            snapshot=snapshot,
            reconciled=reconciled,
            warnings=self._warnings(selection, decision),
            execution_time_ms=elapsed,
        )

    def commit_preview(self, editor: SceneEditor, preview: LayoutPreview) -> LayoutResult:
        """Apply a previously computed preview to the current scene.

        The scene is re-read, so shapes deleted since the preview are dropped.
        """
        if preview.document_id != editor.document_id:
            raise ValueError(
                f"Preview belongs to document {preview.document_id}, not {editor.document_id}"
            )
        with self._in_flight(editor):
            return self._commit(
                editor,
                preview.decision,
                preview.outcome,
                preview.snapshot,
                preview.warnings,
                preview.execution_time_ms,
            )

    async def grid_align(self, editor: SceneEditor) -> LayoutResult:
        return await self.apply_layout(editor, "grid")

    async def smart_group(self, editor: SceneEditor) -> LayoutResult:
        return await self.apply_layout(editor, "box")

    async def vertical_flow(self, editor: SceneEditor) -> LayoutResult:
        return await self.apply_layout(editor, "layered", direction="DOWN")

    async def horizontal_flow(self, editor: SceneEditor) -> LayoutResult:
        return await self.apply_layout(editor, "layered", direction="RIGHT")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def manual_decision(
        self,
        algorithm: str,
        spacing: Optional[Spacing] = None,
        direction: Optional[str] = None,
    ) -> LayoutDecision:
        entry = get_entry(algorithm)
        if algorithm not in DIRECTIONAL_ALGORITHMS:
            direction = None
        elif direction is None:
            direction = entry.direction
        elif direction not in DIRECTIONS:
            raise ValueError(
                f"Unknown layout direction: '{direction}'. "
                f"Available directions: {', '.join(DIRECTIONS)}"
            )
        return LayoutDecision.manual(algorithm, spacing or entry.spacing, direction)

    async def _run(self, editor: SceneEditor, decision: LayoutDecision) -> LayoutResult:
        with self._in_flight(editor):
            snapshot, selection = self._snapshot(editor)
            started = time.perf_counter()
            graph = self.builder.build(selection, decision)
            try:
                outcome = await self.executor.execute(graph)
            except LayoutExecutionError as e:
                logger.warning(f"{decision.algorithm} layout failed, scene left untouched: {e}")
                return LayoutResult(
                    success=False,
                    algorithm=decision.algorithm,
                    direction=decision.direction,
                    reason=decision.reason,
                    message=str(e),
                    error_code=e.code,
                )
            elapsed = (time.perf_counter() - started) * 1000
            return self._commit(
                editor, decision, outcome, snapshot, self._warnings(selection, decision), elapsed
            )

    def _snapshot(self, editor: SceneEditor) -> Tuple[Tuple[Element, ...], Selection]:
        snapshot = tuple(editor.get_scene_elements())
        selection = resolve_selection(snapshot, editor.get_app_state().selected_element_ids)
        if selection.is_empty:
            raise NoOpError()
        return snapshot, selection

    def _commit(
        self,
        editor: SceneEditor,
        decision: LayoutDecision,
        outcome: LayoutOutcome,
        snapshot: Tuple[Element, ...],
        warnings: List[str],
        execution_time_ms: float,
    ) -> LayoutResult:
        current = editor.get_scene_elements()
        reconciled = self.reconciler.reconcile(current, outcome, snapshot)

        if reconciled.transformations:
            editor.update_scene(reconciled.elements, commit_to_history=True)
            self._frame(editor, reconciled.moved_ids + reconciled.label_ids)

        by_id = {e.id: e for e in reconciled.elements}
        moved = [
            {"id": i, "x": by_id[i].x, "y": by_id[i].y}
            for i in reconciled.moved_ids + reconciled.label_ids
        ]
        logger.info(
            f"Applied {decision.algorithm} layout to {len(reconciled.moved_ids)} shapes "
            f"({reconciled.transformations} transformations) in {editor.document_id}"
        )

        return LayoutResult(
            success=True,
            algorithm=decision.algorithm,
            direction=decision.direction,
            elements=moved,
            metadata={
                "execution_time_ms": round(execution_time_ms, 2),
                "transformations": reconciled.transformations,
                "confidence": decision.confidence,
                "engine": outcome.engine,
                "fingerprint": outcome.fingerprint,
                "skipped_connectors": [s.connector_id for s in reconciled.skipped],
                "dropped_ids": list(reconciled.dropped_ids),
            },
            reason=decision.reason,
            warnings=list(warnings),
        )

    def _warnings(self, selection: Selection, decision: LayoutDecision) -> List[str]:
        warnings = []
        if self.classifier.is_low_confidence(decision):
            warnings.append(
                f"Low confidence ({decision.confidence:.2f}) in {decision.algorithm} layout: "
                f"{decision.reason}"
            )
        if len(selection.shapes) > settings.WARN_LAYOUT_NODES:
            warnings.append(
                f"Large selection ({len(selection.shapes)} elements) may take longer to lay out"
            )
        for warning in warnings:
            logger.warning(warning)
        return warnings

    def _frame(self, editor: SceneEditor, element_ids: List[str]) -> None:
        """Schedule the cosmetic "frame the result" action without waiting on it."""
        if not element_ids or not settings.is_enabled("frame_after_commit"):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _frame_in_view(editor, element_ids)
            return
        loop.call_soon(_frame_in_view, editor, element_ids)

    @contextmanager
    def _in_flight(self, editor: SceneEditor) -> Iterator[None]:
        """Mark the document busy for the duration of the block."""
        document_id = editor.document_id
        with self._busy_lock:
            if document_id in self._busy:
                raise LayoutBusyError(document_id)
            self._busy.add(document_id)
        try:
            yield
        finally:
            with self._busy_lock:
                self._busy.discard(document_id)


def _frame_in_view(editor: SceneEditor, element_ids: List[str]) -> None:
    try:
        editor.scroll_to_content(element_ids)
    except Exception as e:
        logger.warning(f"Could not frame layout result in {editor.document_id}: {e}")
