"""Layout engine doubles for orchestrator and tool tests."""

import asyncio
from typing import FrozenSet, Optional

from autolayout.layout.engines.base import LayoutEngine
from autolayout.layout.engines.networkx_engine import NetworkXLayoutEngine
from autolayout.models.layout_metadata import GraphModel, LayoutOutcome


class SpyEngine(LayoutEngine):
    """Wraps the networkx engine, counting calls and optionally blocking or failing."""

    def __init__(self, gate: Optional[asyncio.Event] = None, error: Optional[Exception] = None):
        self.inner = NetworkXLayoutEngine()
        self.gate = gate
        self.error = error
        self.calls = 0

    @property
    def name(self) -> str:
        return "spy"

    @property
    def supported_algorithms(self) -> FrozenSet[str]:
        return self.inner.supported_algorithms

    async def layout(self, graph: GraphModel) -> LayoutOutcome:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return LayoutOutcome(
            algorithm=graph.algorithm, engine=self.name, positions=self.inner.compute(graph)
        )

    async def is_available(self) -> bool:
        return True
