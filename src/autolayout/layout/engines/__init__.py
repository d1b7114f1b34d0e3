"""Layout engines registry.

Available engines:
- elk: ELK via elkjs (layered, mrtree, stress, rectpacking)
- networkx: in-process deterministic solver (fallback)
"""

import logging
from typing import Optional

from autolayout.config import settings
from autolayout.core.errors import LayoutExecutionError
from autolayout.layout.engines.base import LayoutEngine
from autolayout.layout.engines.elk import ELKLayoutEngine
from autolayout.layout.engines.networkx_engine import NetworkXLayoutEngine

logger = logging.getLogger(__name__)

# Engine registry
ENGINES = {
    "elk": ELKLayoutEngine,
    "networkx": NetworkXLayoutEngine,
}

# Result of the (slow) Node.js probe, kept for the process lifetime
_elk_available: Optional[bool] = None


def get_engine(name: str) -> type:
    """Get layout engine class by name.

    Args:
        name: Engine name ('elk', 'networkx')

    Returns:
        Layout engine class

    Raises:
        ValueError: If engine not found
    """
    if name not in ENGINES:
        raise ValueError(f"Unknown layout engine: {name}. Available: {list(ENGINES.keys())}")
    return ENGINES[name]


async def select_engine(name: Optional[str] = None) -> LayoutEngine:
    """Pick the engine to run according to ``AUTOLAYOUT_ENGINE``.

    ``auto`` prefers ELK and falls back to the networkx engine when the
    ``networkx_fallback`` flag is on.

    Raises:
        LayoutExecutionError: If no usable engine is available
    """
    global _elk_available
    choice = (name or settings.LAYOUT_ENGINE).lower()

    if choice == "networkx":
        return NetworkXLayoutEngine()

    if choice not in ("auto", "elk"):
        raise LayoutExecutionError(
            f"Unknown layout engine: {choice}. Available: auto, {', '.join(ENGINES)}"
        )

    elk = ELKLayoutEngine()
    if _elk_available is None:
        _elk_available = await elk.is_available()
        logger.info(f"ELK engine available: {_elk_available}")
    if _elk_available:
        return elk

    if choice == "auto" and settings.is_enabled("networkx_fallback"):
        logger.warning("ELK not available, using networkx layout engine")
        return NetworkXLayoutEngine()

    raise LayoutExecutionError(
        "ELK layout engine is not available. Install Node.js and run 'npm install' "
        "to add elkjs, or enable the networkx fallback."
    )


__all__ = [
    "LayoutEngine",
    "ELKLayoutEngine",
    "NetworkXLayoutEngine",
    "ENGINES",
    "get_engine",
    "select_engine",
]
