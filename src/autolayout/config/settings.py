"""
Configuration, Heuristic Thresholds and Feature Flags

This module hoists every empirically tuned constant used by the pattern
heuristics into one place, together with the environment-driven limits
of the layout pipeline and a small set of feature flags.

Usage:
    from autolayout.config.settings import DEFAULT_THRESHOLDS, is_enabled

    analyzer = ElementAnalyzer(thresholds=DEFAULT_THRESHOLDS)

    if is_enabled('frame_after_commit'):
        editor.scroll_to_content(moved)

Environment Variables:
    AUTOLAYOUT_MAX_NODES=1000          - Node ceiling; larger selections fail fast
    AUTOLAYOUT_WARN_NODES=100          - Soft "large selection" warning threshold
    AUTOLAYOUT_ENGINE=auto|elk|networkx - Solver selection
    AUTOLAYOUT_ELK_TIMEOUT=30          - ELK request timeout in seconds
    AUTOLAYOUT_NODE_PATH=/usr/bin/node - Explicit Node.js executable for ELK
    AUTOLAYOUT_FRAME_RESULT=true/false - Frame the moved subset after commit
    AUTOLAYOUT_NETWORKX_FALLBACK=true/false - Use the in-process solver when ELK is missing
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, 'true' if default else 'false').lower() == 'true'


@dataclass(frozen=True)
class HeuristicThresholds:
    """Tuned constants behind the structural signals and reconciliation.

    The values were tuned against hand-drawn diagrams, which are rarely
    aligned precisely, so most comparisons are lenient.

    Attributes:
        actor_y_variance: Text shapes whose vertical-position variance is
            below this (squared units) are treated as a row of actors
        actor_top_share: Share of text shapes that must sit in the top
            third of the selection for the alternative actor-row check
        message_min_dy: Vertical displacement a connector needs to count
            as a vertical message
        message_vertical_ratio: Share of direction-carrying connectors
            that must be vertical messages
        lifeline_min_separation: How far the average text position must
            sit above the average box position
        lifeline_min_spread: Horizontal spread required across actors
        linear_flow_share: Share of touched nodes with degree <= 2 above
            which the connections read as a linear flow
        linear_flow_min_connections: Fewer connectors never form a flow
        low_confidence: Decisions below this confidence carry a warning
        connector_gap: Gap between a connector tip and its shape outline
        default_node_width: Width used for shapes drawn without a size
        default_node_height: Height used for shapes drawn without a size
    """
    actor_y_variance: float = 200.0
    actor_top_share: float = 0.6
    message_min_dy: float = 30.0
    message_vertical_ratio: float = 0.3
    lifeline_min_separation: float = 50.0
    lifeline_min_spread: float = 200.0
    linear_flow_share: float = 0.7
    linear_flow_min_connections: int = 2
    low_confidence: float = 0.65
    connector_gap: float = 2.0
    default_node_width: float = 100.0
    default_node_height: float = 50.0


DEFAULT_THRESHOLDS = HeuristicThresholds()

# Pipeline limits
MAX_LAYOUT_NODES: int = _env_int('AUTOLAYOUT_MAX_NODES', 1000)
WARN_LAYOUT_NODES: int = _env_int('AUTOLAYOUT_WARN_NODES', 100)

# Solver selection
LAYOUT_ENGINE: str = os.getenv('AUTOLAYOUT_ENGINE', 'auto').lower()
ELK_TIMEOUT_SECONDS: int = _env_int('AUTOLAYOUT_ELK_TIMEOUT', 30)
NODE_PATH: Optional[str] = os.getenv('AUTOLAYOUT_NODE_PATH') or None


# Feature flags with environment variable overrides
FEATURE_FLAGS: Dict[str, bool] = {
    # Fire-and-forget "frame the moved subset" after a commit
    'frame_after_commit': _env_flag('AUTOLAYOUT_FRAME_RESULT', True),

    # In-process networkx solver when Node.js/elkjs is not installed
    'networkx_fallback': _env_flag('AUTOLAYOUT_NETWORKX_FALLBACK', True),
}


def is_enabled(flag: str) -> bool:
    """
    Check if a feature flag is enabled.

    Args:
        flag: Feature flag name (e.g., 'frame_after_commit')

    Returns:
        True if flag is enabled, False otherwise

    Raises:
        KeyError: If flag name is not recognized
    """
    if flag not in FEATURE_FLAGS:
        available = ', '.join(FEATURE_FLAGS.keys())
        raise KeyError(
            f"Unknown feature flag: '{flag}'. "
            f"Available flags: {available}"
        )

    return FEATURE_FLAGS[flag]


def get_all_flags() -> Dict[str, bool]:
    """Get all feature flags and their current state."""
    return FEATURE_FLAGS.copy()


def set_flag(flag: str, enabled: bool) -> None:
    """
    Programmatically set a feature flag (for testing only).

    Args:
        flag: Feature flag name
        enabled: True to enable, False to disable

    Warning:
        This is for testing only. In production, use environment variables.
    """
    if flag not in FEATURE_FLAGS:
        available = ', '.join(FEATURE_FLAGS.keys())
        raise KeyError(
            f"Unknown feature flag: '{flag}'. "
            f"Available flags: {available}"
        )

    FEATURE_FLAGS[flag] = enabled
