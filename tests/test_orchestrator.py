"""Tests for the layout orchestrator.

The in-process networkx engine is used throughout so the tests do not
depend on Node.js.

Tests cover:
- Preconditions (empty selection, busy document, unknown algorithm)
- Atomic commit and single-step undo
- Solver failure leaving the scene untouched
- Preview and commit
- Dangling connectors at commit time
- Fire-and-forget framing
"""

import asyncio

import pytest

from autolayout.config import settings
from autolayout.core.editor import InMemorySceneEditor
from autolayout.core.errors import LayoutBusyError, NoOpError, UnknownAlgorithmError
from autolayout.layout.engines.networkx_engine import NetworkXLayoutEngine
from autolayout.layout.executor import LayoutExecutor
from autolayout.models.layout_decision import Spacing
from autolayout.orchestrator import LayoutOrchestrator, LayoutResult, LayoutSelectionRequest
from tests.fixtures.engines import SpyEngine
from tests.fixtures.scenes import arrow, box, flowchart, labelled_containers, linear_chain


class BrokenViewport(InMemorySceneEditor):
    def scroll_to_content(self, element_ids):
        raise RuntimeError("viewport detached")


def make_orchestrator(engine=None):
    return LayoutOrchestrator(executor=LayoutExecutor(engine or NetworkXLayoutEngine()))


def make_editor(scene, document_id="doc-1", cls=InMemorySceneEditor):
    elements, selected = scene
    return cls(document_id, elements, selected)


class TestPreconditions:
    """Checks that run before the solver."""

    @pytest.mark.asyncio
    async def test_empty_selection_is_a_no_op(self):
        engine = SpyEngine()
        editor = make_editor((linear_chain()[0], []))

        with pytest.raises(NoOpError, match="select at least one"):
            await make_orchestrator(engine).apply_layout(editor, "grid")

        assert engine.calls == 0
        assert editor.history_depth == 0

    @pytest.mark.asyncio
    async def test_connector_only_selection_is_a_no_op(self):
        editor = make_editor((linear_chain()[0], ["a-b"]))

        with pytest.raises(NoOpError):
            await make_orchestrator().auto_layout(editor)

    @pytest.mark.asyncio
    async def test_unknown_algorithm(self):
        editor = make_editor(linear_chain())

        with pytest.raises(UnknownAlgorithmError):
            await make_orchestrator().apply_layout(editor, "radial")

    @pytest.mark.asyncio
    async def test_unknown_direction(self):
        editor = make_editor(linear_chain())

        with pytest.raises(ValueError, match="Unknown layout direction"):
            await make_orchestrator().apply_layout(editor, "layered", direction="SIDEWAYS")

    @pytest.mark.asyncio
    async def test_second_layout_on_same_document_is_rejected(self):
        gate = asyncio.Event()
        orchestrator = make_orchestrator(SpyEngine(gate=gate))
        editor = make_editor(linear_chain())

        first = asyncio.create_task(orchestrator.apply_layout(editor, "grid"))
        await asyncio.sleep(0)
        assert orchestrator.is_busy(editor)

        with pytest.raises(LayoutBusyError):
            await orchestrator.apply_layout(editor, "layered")

        gate.set()
        result = await first
        assert result.success is True
        assert not orchestrator.is_busy(editor)

    @pytest.mark.asyncio
    async def test_other_documents_are_not_blocked(self):
        gate = asyncio.Event()
        orchestrator = make_orchestrator(SpyEngine(gate=gate))
        busy = make_editor(linear_chain(), "doc-1")
        other = make_editor(linear_chain(), "doc-2")

        first = asyncio.create_task(orchestrator.apply_layout(busy, "grid"))
        await asyncio.sleep(0)
        second = asyncio.create_task(orchestrator.apply_layout(other, "grid"))
        await asyncio.sleep(0)
        gate.set()

        assert (await first).success is True
        assert (await second).success is True

    @pytest.mark.asyncio
    async def test_busy_flag_released_after_no_op(self):
        orchestrator = make_orchestrator()
        editor = make_editor((linear_chain()[0], []))

        with pytest.raises(NoOpError):
            await orchestrator.apply_layout(editor, "grid")

        assert not orchestrator.is_busy(editor)


class TestApplyLayout:
    """Commit semantics."""

    @pytest.mark.asyncio
    async def test_grid_commit(self):
        editor = make_editor(linear_chain())
        result = await make_orchestrator().apply_layout(editor, "grid")

        assert isinstance(result, LayoutResult)
        assert result.success is True
        assert result.algorithm == "grid"
        assert result.direction is None
        assert [e["id"] for e in result.elements] == ["a", "b", "c"]
        assert result.metadata["engine"] == "networkx"
        assert result.metadata["confidence"] == 1.0
        assert result.metadata["transformations"] == 5
        assert result.reason == "User selected grid layout"

        scene = {e.id: e for e in editor.get_scene_elements()}
        assert (scene["a"].x, scene["a"].y) == (12, 12)
        assert scene["a-b"].version == 1

    @pytest.mark.asyncio
    async def test_one_undo_step_restores_everything(self):
        elements, selected = linear_chain()
        editor = InMemorySceneEditor("doc-1", elements, selected)

        await make_orchestrator().apply_layout(editor, "layered", direction="RIGHT")
        assert editor.history_depth == 1

        assert editor.undo() is True
        restored = editor.get_scene_elements()
        assert all(a is b for a, b in zip(restored, elements))
        assert editor.undo() is False

    @pytest.mark.asyncio
    async def test_repeat_layout_adds_no_history(self):
        editor = make_editor(linear_chain())
        orchestrator = make_orchestrator()

        await orchestrator.apply_layout(editor, "grid")
        again = await orchestrator.apply_layout(editor, "grid")

        assert again.success is True
        assert again.metadata["transformations"] == 0
        assert editor.history_depth == 1

    @pytest.mark.asyncio
    async def test_explicit_spacing(self):
        editor = make_editor(linear_chain())
        await make_orchestrator().apply_layout(editor, "grid", spacing=Spacing(x=10, y=10))

        scene = {e.id: e for e in editor.get_scene_elements()}
        assert scene["b"].x - scene["a"].x == 110

    @pytest.mark.asyncio
    async def test_labels_follow_containers(self):
        editor = make_editor(labelled_containers())
        result = await make_orchestrator().apply_layout(editor, "layered", direction="RIGHT")

        scene = {e.id: e for e in editor.get_scene_elements()}
        assert scene["left-label"].x - scene["left"].x == 20
        assert scene["right-label"].y - scene["right"].y == 20
        assert scene["bystander"].x == 900
        assert {e["id"] for e in result.elements} == {"left", "right", "left-label", "right-label"}

    @pytest.mark.asyncio
    async def test_solver_failure_leaves_scene_untouched(self):
        elements, selected = linear_chain()
        editor = InMemorySceneEditor("doc-1", elements, selected)
        engine = SpyEngine(error=RuntimeError("solver crashed"))

        result = await make_orchestrator(engine).apply_layout(editor, "layered")

        assert result.success is False
        assert result.error_code == "LAYOUT_EXECUTION_FAILED"
        assert "solver crashed" in result.message
        assert editor.history_depth == 0
        assert all(a is b for a, b in zip(editor.get_scene_elements(), elements))
        assert editor.framed == []

    @pytest.mark.asyncio
    async def test_dangling_connector_does_not_block_commit(self):
        elements = [
            box("a", 0, 0), box("b", 0, 200),
            arrow("a-b", "a", "b"),
            arrow("stale", "a", "ghost"),
        ]
        editor = InMemorySceneEditor("doc-1", elements, ["a", "b"])

        result = await make_orchestrator().apply_layout(editor, "grid")

        assert result.success is True
        assert result.metadata["skipped_connectors"] == ["stale"]
        scene = {e.id: e for e in editor.get_scene_elements()}
        assert scene["stale"] is elements[3]
        assert scene["a-b"].version == 1

    @pytest.mark.asyncio
    async def test_shortcuts(self):
        orchestrator = make_orchestrator()

        vertical = await orchestrator.vertical_flow(make_editor(linear_chain(), "v"))
        horizontal = await orchestrator.horizontal_flow(make_editor(linear_chain(), "h"))
        grid = await orchestrator.grid_align(make_editor(linear_chain(), "g"))
        grouped = await orchestrator.smart_group(make_editor(linear_chain(), "s"))

        assert (vertical.algorithm, vertical.direction) == ("layered", "DOWN")
        assert (horizontal.algorithm, horizontal.direction) == ("layered", "RIGHT")
        assert grid.algorithm == "grid"
        assert grouped.algorithm == "box"


class TestAutoLayout:
    """Classifier-driven entry point."""

    @pytest.mark.asyncio
    async def test_proposal_without_apply(self):
        editor = make_editor(linear_chain())
        request = await make_orchestrator().auto_layout(editor)

        assert isinstance(request, LayoutSelectionRequest)
        assert request.proposed.algorithm == "grid"
        assert request.element_count == 5
        assert len(request.catalogue) == 5
        assert any("Low confidence" in w for w in request.warnings)
        assert editor.history_depth == 0

        payload = request.to_dict()
        assert payload["proposed"]["algorithm"] == "grid"
        assert payload["catalogue"][0]["id"] == "mrtree"

    @pytest.mark.asyncio
    async def test_apply_from_proposal(self):
        editor = make_editor(linear_chain())
        request = await make_orchestrator().auto_layout(editor)

        result = await request.apply("layered")

        assert result.success is True
        assert result.direction == "DOWN"
        assert editor.history_depth == 1

    @pytest.mark.asyncio
    async def test_direct(self):
        editor = make_editor(flowchart())
        result = await make_orchestrator().auto_layout(editor, direct=True)

        assert result.success is True
        assert result.algorithm == "layered"
        assert result.direction == "DOWN"
        assert result.metadata["confidence"] == 0.70
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_large_selection_warning(self, monkeypatch):
        monkeypatch.setattr(settings, "WARN_LAYOUT_NODES", 2)
        request = await make_orchestrator().auto_layout(make_editor(linear_chain()))

        assert any("Large selection" in w for w in request.warnings)


class TestPreview:
    """Preview, then commit."""

    @pytest.mark.asyncio
    async def test_preview_does_not_touch_scene(self):
        elements, selected = linear_chain()
        editor = InMemorySceneEditor("doc-1", elements, selected)

        preview = await make_orchestrator().preview_layout(editor, "grid")

        assert [p["id"] for p in preview.positions()] == ["a", "b", "c"]
        assert editor.history_depth == 0
        assert all(a is b for a, b in zip(editor.get_scene_elements(), elements))

    @pytest.mark.asyncio
    async def test_commit_preview(self):
        editor = make_editor(linear_chain())
        orchestrator = make_orchestrator()
        preview = await orchestrator.preview_layout(editor, "grid")

        result = orchestrator.commit_preview(editor, preview)

        assert result.success is True
        assert result.metadata["fingerprint"] == preview.outcome.fingerprint
        assert editor.history_depth == 1

    @pytest.mark.asyncio
    async def test_commit_after_deletion_drops_missing_shape(self):
        editor = make_editor(linear_chain())
        orchestrator = make_orchestrator()
        preview = await orchestrator.preview_layout(editor, "grid")

        remaining = [e for e in editor.get_scene_elements() if e.id != "b"]
        editor.update_scene(remaining, commit_to_history=False)
        result = orchestrator.commit_preview(editor, preview)

        assert result.success is True
        assert result.metadata["dropped_ids"] == ["b"]
        assert result.metadata["skipped_connectors"] == ["a-b", "b-c"]
        assert "b" not in {e.id for e in editor.get_scene_elements()}

    @pytest.mark.asyncio
    async def test_commit_on_other_document(self):
        orchestrator = make_orchestrator()
        preview = await orchestrator.preview_layout(make_editor(linear_chain(), "doc-1"), "grid")

        with pytest.raises(ValueError, match="belongs to document"):
            orchestrator.commit_preview(make_editor(linear_chain(), "doc-2"), preview)


class TestFraming:
    """Fire-and-forget viewport action."""

    @pytest.mark.asyncio
    async def test_frame_runs_after_commit_returns(self):
        editor = make_editor(linear_chain())
        await make_orchestrator().apply_layout(editor, "grid")

        assert editor.framed == []
        await asyncio.sleep(0)
        assert editor.framed == [["a", "b", "c"]]

    @pytest.mark.asyncio
    async def test_frame_failure_is_harmless(self):
        editor = make_editor(linear_chain(), cls=BrokenViewport)
        result = await make_orchestrator().apply_layout(editor, "grid")
        await asyncio.sleep(0)

        assert result.success is True
        assert editor.history_depth == 1

    @pytest.mark.asyncio
    async def test_frame_can_be_disabled(self, monkeypatch):
        monkeypatch.setitem(settings.FEATURE_FLAGS, "frame_after_commit", False)
        editor = make_editor(linear_chain())

        await make_orchestrator().apply_layout(editor, "grid")
        await asyncio.sleep(0)

        assert editor.framed == []

    def test_frame_without_running_loop(self):
        editor = make_editor(linear_chain())
        make_orchestrator()._frame(editor, ["a"])

        assert editor.framed == [["a"]]
