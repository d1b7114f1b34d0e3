"""Tests for post-layout reconciliation."""

import math

import pytest

from autolayout.core.reconciler import ConnectorReconciler, RECOMPUTED_FOCUS
from autolayout.models.layout_metadata import LayoutOutcome, NodePosition
from tests.fixtures.scenes import arrow, box, labelled_containers


def outcome(**positions):
    return LayoutOutcome(
        algorithm="grid",
        positions={k: NodePosition(x=x, y=y) for k, (x, y) in positions.items()},
    )


def by_id(elements):
    return {e.id: e for e in elements}


class TestShapesAndLabels:
    """Shape positions and bound labels."""

    def test_positions_applied_and_labels_follow(self):
        elements, _ = labelled_containers()
        result = ConnectorReconciler().reconcile(
            elements, outcome(left=(100, 100), right=(100, 300))
        )
        scene = by_id(result.elements)

        assert (scene["left"].x, scene["left"].y) == (100, 100)
        assert (scene["right"].x, scene["right"].y) == (100, 300)
        assert (scene["left-label"].x, scene["left-label"].y) == (120, 120)
        assert (scene["right-label"].x, scene["right-label"].y) == (120, 320)
        assert result.moved_ids == ["left", "right"]
        assert sorted(result.label_ids) == ["left-label", "right-label"]

    def test_untouched_elements_are_the_same_objects(self):
        elements, _ = labelled_containers()
        result = ConnectorReconciler().reconcile(
            elements, outcome(left=(100, 100), right=(100, 300))
        )

        assert result.elements[4] is elements[4]
        assert [e.id for e in result.elements] == [e.id for e in elements]

    def test_label_offset_taken_from_snapshot(self):
        original, _ = labelled_containers()
        live = [
            e.model_copy(update={"x": 50, "y": 50}) if e.id == "left-label" else e
            for e in original
        ]
        result = ConnectorReconciler().reconcile(live, outcome(left=(100, 100)), original)

        label = by_id(result.elements)["left-label"]
        assert (label.x, label.y) == (120, 120)

    def test_unchanged_positions_are_not_transformations(self):
        elements, _ = labelled_containers()
        result = ConnectorReconciler().reconcile(elements, outcome(left=(0, 0), right=(400, 200)))

        assert result.transformations == 0
        assert all(a is b for a, b in zip(result.elements, elements))

    def test_positions_for_removed_shapes_are_dropped(self):
        elements = [box("a", 0, 0)]
        result = ConnectorReconciler().reconcile(elements, outcome(a=(10, 10), gone=(50, 50)))

        assert result.dropped_ids == ["gone"]
        assert result.moved_ids == ["a"]
        assert [e.id for e in result.elements] == ["a"]


class TestConnectors:
    """Connector geometry rewrite."""

    def test_connector_is_clamped_to_both_outlines(self):
        elements, _ = labelled_containers()
        result = ConnectorReconciler().reconcile(
            elements, outcome(left=(100, 100), right=(100, 300))
        )
        link = by_id(result.elements)["link"]

        # left center (160, 130), right center (160, 330), radius 30 + gap 2
        assert (link.x, link.y) == pytest.approx((160, 162))
        assert link.points[0] == (0.0, 0.0)
        assert link.points[1] == pytest.approx((0, 136))
        assert link.version == 1
        assert link.start_binding.element_id == "left"
        assert link.end_binding.element_id == "right"
        assert link.start_binding.focus == RECOMPUTED_FOCUS
        assert link.end_binding.gap == 2
        assert result.updated_connector_ids == ["link"]

    def test_endpoint_distance_matches_radius_plus_gap(self):
        elements = [
            box("a", 0, 0, 80, 40),
            box("b", 500, 300, 60, 60),
            arrow("e", "a", "b"),
        ]
        result = ConnectorReconciler().reconcile(elements, outcome(a=(10, 20), b=(310, 220)))
        scene = by_id(result.elements)
        a, b, e = scene["a"], scene["b"], scene["e"]

        start = (e.x, e.y)
        end = (e.x + e.points[-1][0], e.y + e.points[-1][1])
        assert math.dist(start, a.center) == pytest.approx(20 + 2)
        assert math.dist(end, b.center) == pytest.approx(30 + 2)

    def test_connector_to_unmoved_shape_is_rewritten(self):
        elements = [box("a", 0, 0), box("b", 0, 300), arrow("e", "a", "b")]
        result = ConnectorReconciler().reconcile(elements, outcome(a=(200, 0)))

        assert result.updated_connector_ids == ["e"]
        assert by_id(result.elements)["b"] is elements[1]

    def test_unrelated_connector_untouched(self):
        elements = [
            box("a", 0, 0), box("x", 500, 0), box("y", 500, 300),
            arrow("xy", "x", "y"),
        ]
        result = ConnectorReconciler().reconcile(elements, outcome(a=(100, 100)))

        assert by_id(result.elements)["xy"] is elements[3]

    def test_dangling_connector_is_skipped(self):
        """A bound shape deleted before commit: the connector is left as is."""
        elements = [box("a", 0, 0), arrow("dangle", "a", "ghost")]
        result = ConnectorReconciler().reconcile(elements, outcome(a=(200, 200)))

        assert by_id(result.elements)["dangle"] is elements[1]
        assert len(result.skipped) == 1
        assert result.skipped[0].connector_id == "dangle"
        assert result.skipped[0].missing_ids == ("ghost",)
        assert result.moved_ids == ["a"]

    def test_half_bound_connector_left_alone(self):
        elements = [box("a", 0, 0), arrow("loose", "a", None)]
        result = ConnectorReconciler().reconcile(elements, outcome(a=(200, 200)))

        assert by_id(result.elements)["loose"] is elements[1]
        assert result.skipped == []

    def test_coincident_centers_leave_connector_unchanged(self):
        elements = [box("a", 0, 0), box("b", 0, 300), arrow("e", "a", "b")]
        result = ConnectorReconciler().reconcile(elements, outcome(a=(50, 50), b=(50, 50)))

        assert by_id(result.elements)["e"] is elements[2]
        assert result.updated_connector_ids == []

    def test_affected_ids(self):
        elements, _ = labelled_containers()
        result = ConnectorReconciler().reconcile(elements, outcome(left=(100, 100)))

        assert result.affected_ids == ["left", "left-label", "link"]
        assert result.transformations == 3
