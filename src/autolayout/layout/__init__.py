"""Graph model construction and layout solving."""

from .graph_builder import ELK_ALGORITHM_NAMES, GraphModelBuilder, LAYERED_LAYOUT_OPTIONS
from .executor import LayoutExecutor
from .engines import ELKLayoutEngine, LayoutEngine, NetworkXLayoutEngine, get_engine, select_engine

__all__ = [
    "ELK_ALGORITHM_NAMES",
    "GraphModelBuilder",
    "LAYERED_LAYOUT_OPTIONS",
    "LayoutExecutor",
    "ELKLayoutEngine",
    "LayoutEngine",
    "NetworkXLayoutEngine",
    "get_engine",
    "select_engine",
]
