"""Solver boundary: graph model in, one position per node out.

This is the only fallible step of the pipeline for well-formed input.
Any engine failure is surfaced as a LayoutExecutionError and no partial
output is ever returned.
"""

import logging
import time
from typing import Optional

from ..core.errors import LayoutError, LayoutExecutionError
from ..models.layout_metadata import GraphModel, LayoutOutcome
from .engines import select_engine
from .engines.base import LayoutEngine

logger = logging.getLogger(__name__)


class LayoutExecutor:
    """Runs a graph model through a layout engine."""

    def __init__(self, engine: Optional[LayoutEngine] = None):
        """
        Args:
            engine: Engine to use; picked per ``AUTOLAYOUT_ENGINE`` if None
        """
        self.engine = engine

    async def resolve_engine(self) -> LayoutEngine:
        if self.engine is None:
            self.engine = await select_engine()
        return self.engine

    async def execute(self, graph: GraphModel) -> LayoutOutcome:
        """Compute positions for every node of ``graph``.

        Raises:
            LayoutExecutionError: If the solver fails or misses a node
        """
        if not graph.nodes:
            return LayoutOutcome(algorithm=graph.algorithm, engine="none")

        engine = await self.resolve_engine()
        if graph.algorithm not in engine.supported_algorithms:
            raise LayoutExecutionError(
                f"Engine {engine.name} does not support algorithm {graph.algorithm}",
                algorithm=graph.algorithm,
            )

        started = time.perf_counter()
        try:
            outcome = await engine.layout(graph)
        except LayoutExecutionError:
            raise
        except LayoutError as e:
            raise LayoutExecutionError(str(e), algorithm=graph.algorithm) from e
        except Exception as e:
            logger.error(f"{engine.name} layout failed for {graph.algorithm}: {e}")
            raise LayoutExecutionError(
                f"Layout solver failed: {e}", algorithm=graph.algorithm
            ) from e

        missing = [node_id for node_id in graph.node_ids if node_id not in outcome.positions]
        if missing:
            preview = ", ".join(missing[:5])
            raise LayoutExecutionError(
                f"Layout solver returned no position for {len(missing)} node(s): {preview}",
                algorithm=graph.algorithm,
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"{engine.name} {graph.algorithm} layout of {len(graph.nodes)} nodes "
            f"took {elapsed_ms:.1f} ms"
        )
        return outcome.restricted_to(graph.node_ids)
