"""Pattern classification: structural signals -> one layout decision.

The classifier is a decision list. Rules are evaluated top to bottom and
the first matching predicate wins; the last rule always matches, so every
invocation yields exactly one decision.

Rule order matters. Sequence-diagram rules come first, so a multi-actor,
richly connected selection is read as a sequence diagram even when it
would also satisfy a later rule.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..config.settings import DEFAULT_THRESHOLDS, HeuristicThresholds
from ..models.layout_decision import LayoutDecision, Spacing, StructuralSignals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassificationRule:
    """A predicate over signals paired with the decision it produces."""
    name: str
    predicate: Callable[[StructuralSignals], bool]
    decision: LayoutDecision


def _decision(rule: str, algorithm: str, spacing: Spacing, confidence: float, reason: str,
              direction: Optional[str] = None, preserve_groups: bool = False) -> LayoutDecision:
    return LayoutDecision(
        algorithm=algorithm,
        direction=direction,
        spacing=spacing,
        preserve_groups=preserve_groups,
        confidence=confidence,
        reason=reason,
        rule=rule,
    )


SEQUENCE_SPACING = Spacing(x=150, y=80)

DEFAULT_RULES: List[ClassificationRule] = [
    ClassificationRule(
        name="sequence_actors_messages",
        predicate=lambda s: s.has_horizontal_actors and s.has_vertical_messages,
        decision=_decision(
            "sequence_actors_messages", "layered", SEQUENCE_SPACING, 0.95,
            "Detected sequence diagram: horizontal actors with vertical message flow",
            direction="DOWN",
        ),
    ),
    ClassificationRule(
        name="sequence_lifelines",
        predicate=lambda s: (
            s.text_count >= 2 and s.rectangle_count >= 2
            and s.connection_count > 0 and s.has_lifeline_pattern
        ),
        decision=_decision(
            "sequence_lifelines", "layered", SEQUENCE_SPACING, 0.90,
            "Detected sequence diagram: lifeline pattern with actors",
            direction="DOWN",
        ),
    ),
    ClassificationRule(
        name="sequence_rich_messages",
        predicate=lambda s: (
            s.text_count >= 2 and s.connection_count >= 3
            and s.connection_count >= s.text_count * 0.5
        ),
        decision=_decision(
            "sequence_rich_messages", "layered", SEQUENCE_SPACING, 0.85,
            "Detected sequence diagram: multiple actors with rich message flow",
            direction="DOWN",
        ),
    ),
    ClassificationRule(
        name="architecture",
        predicate=lambda s: (
            s.box_to_arrow_ratio > 3 and s.rectangle_count > 5
            and not s.has_horizontal_actors and s.connection_density < 1
        ),
        decision=_decision(
            "architecture", "box", Spacing(x=120, y=100), 0.90,
            "Detected architecture diagram: many components, few connections",
            preserve_groups=True,
        ),
    ),
    ClassificationRule(
        name="class_hierarchy",
        predicate=lambda s: s.has_class_structure and s.has_inheritance_connections,
        decision=_decision(
            "class_hierarchy", "mrtree", Spacing(x=100, y=120), 0.80,
            "Detected class diagram: hierarchical inheritance structure",
            direction="DOWN", preserve_groups=True,
        ),
    ),
    ClassificationRule(
        name="dense_network",
        predicate=lambda s: s.connection_density > 2,
        decision=_decision(
            "dense_network", "stress", Spacing(x=100, y=100), 0.75,
            "Detected complex network: high connection density",
        ),
    ),
    ClassificationRule(
        name="flowchart",
        predicate=lambda s: s.has_decision_nodes and s.has_linear_flow,
        decision=_decision(
            "flowchart", "layered", Spacing(x=100, y=60), 0.70,
            "Detected business flowchart: decision nodes with linear flow",
            direction="DOWN", preserve_groups=True,
        ),
    ),
    ClassificationRule(
        name="default_grid",
        predicate=lambda s: True,
        decision=_decision(
            "default_grid", "grid", Spacing(x=80, y=80), 0.60,
            "Default smart grid: no specific pattern detected",
            preserve_groups=True,
        ),
    ),
]


class PatternClassifier:
    """Maps StructuralSignals to a LayoutDecision via an ordered rule list."""

    def __init__(
        self,
        rules: Optional[List[ClassificationRule]] = None,
        thresholds: HeuristicThresholds = DEFAULT_THRESHOLDS,
    ):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)
        self.thresholds = thresholds
        if not self.rules:
            raise ValueError("PatternClassifier needs at least one rule")

    def classify(self, signals: StructuralSignals) -> LayoutDecision:
        for rule in self.rules:
            if rule.predicate(signals):
                logger.debug(f"Classifier rule '{rule.name}' matched: {rule.decision.reason}")
                return rule.decision
        # Custom rule lists may omit the catch-all
        fallback = DEFAULT_RULES[-1]
        logger.debug(f"No classifier rule matched, using '{fallback.name}'")
        return fallback.decision

    def is_low_confidence(self, decision: LayoutDecision) -> bool:
        return decision.confidence < self.thresholds.low_confidence
