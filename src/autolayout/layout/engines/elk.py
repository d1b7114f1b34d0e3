"""ELK layout engine via elkjs.

Layouts run in one long-lived Node.js process (``elk_worker.js``) so the
elkjs start-up cost is paid once per server process, not once per layout.

Wire format, one JSON document per line:
    request  (stdin):  {"id": ..., "graph": <ELK JSON graph>}
    response (stdout): {"id": ..., "result": <laid-out graph>}
                   or  {"id": ..., "error": "..."}

Coordinates come back in ELK convention: top-left corner, y downwards.
"""

import asyncio
import atexit
import glob
import json
import logging
import os
import shutil
import subprocess
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

from autolayout.config import settings
from autolayout.layout.engines.base import LayoutEngine
from autolayout.models.layout_metadata import GraphModel, LayoutOutcome, NodePosition

logger = logging.getLogger(__name__)

# Attempts per request when the worker pipe turns out to be dead
_SEND_ATTEMPTS = 2


class ELKWorkerManager:
    """Owns the Node.js worker and serialises requests to it.

    The worker answers requests in the order it receives them, so holding
    ``_pipe_lock`` across one write and one read pairs every request with
    its response. ``_process_lock`` guards starting and stopping.
    """

    def __init__(
        self,
        node_path: str,
        worker_script: Path,
        timeout: int = 30,
        modules_dir: Optional[Path] = None,
    ):
        self.node_path = node_path
        self.worker_script = worker_script
        self.timeout = timeout
        self.modules_dir = modules_dir or Path.cwd()
        self._process: Optional[subprocess.Popen] = None
        self._process_lock = threading.Lock()
        self._pipe_lock = threading.Lock()

    def _alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def _spawn(self) -> subprocess.Popen:
        """Return the running worker, starting a new one if needed."""
        with self._process_lock:
            if not self._alive():
                self._process = subprocess.Popen(
                    [self.node_path, str(self.worker_script)],
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.DEVNULL,
                    text=True,
                    bufsize=1,
                    cwd=self.modules_dir,
                    env=node_environment(self.modules_dir),
                )
                logger.info(f"ELK worker started (PID: {self._process.pid})")
            if self._process.poll() is not None:
                raise RuntimeError("ELK worker exited right after start")
            return self._process

    def _exchange(self, line: str) -> Dict[str, Any]:
        """Blocking write of one request line and read of one response line."""
        with self._pipe_lock:
            for attempt in range(1, _SEND_ATTEMPTS + 1):
                process = self._spawn()
                try:
                    process.stdin.write(line)
                    process.stdin.flush()
                    break
                except OSError as e:
                    logger.warning(f"ELK worker pipe broken ({e}), attempt {attempt}")
                    self._discard()
            else:
                raise RuntimeError("Could not send request to ELK worker")

            reply = process.stdout.readline()
        if not reply:
            raise RuntimeError("ELK worker closed its output")
        return json.loads(reply)

    async def request(self, graph: Dict[str, Any]) -> Dict[str, Any]:
        """Lay out one ELK graph.

        Raises:
            RuntimeError: If the worker reports an error, answers out of
                order or does not answer within the timeout
        """
        request_id = uuid.uuid4().hex
        line = json.dumps({"id": request_id, "graph": graph}) + "\n"

        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, self._exchange, line),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"ELK request {request_id} timed out after {self.timeout}s")
            # A stuck worker would block every later request
            self.shutdown()
            raise RuntimeError(f"ELK layout timed out after {self.timeout}s")

        if "error" in response:
            raise RuntimeError(f"ELK layout failed: {response['error']}")
        if response.get("id") != request_id:
            raise RuntimeError(
                f"ELK answered request {response.get('id')} while waiting for {request_id}"
            )
        return response.get("result") or {}

    def _discard(self) -> None:
        with self._process_lock:
            self._process = None

    def shutdown(self) -> None:
        """Stop the worker; the next request starts a new one."""
        with self._process_lock:
            process, self._process = self._process, None
        if process is None:
            return
        try:
            process.stdin.close()
            process.terminate()
            process.wait(timeout=5)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"ELK worker did not stop cleanly, killing it: {e}")
            process.kill()
        logger.debug("ELK worker stopped")


def node_environment(modules_dir: Path) -> Dict[str, str]:
    """Environment letting Node resolve elkjs from ``modules_dir``."""
    env = dict(os.environ)
    node_modules = str(Path(modules_dir) / "node_modules")
    existing = env.get("NODE_PATH")
    env["NODE_PATH"] = os.pathsep.join([node_modules, existing]) if existing else node_modules
    return env


def find_node() -> str:
    """Locate a Node.js executable on PATH or in an nvm install.

    Raises:
        RuntimeError: If no Node.js executable is found
    """
    found = shutil.which("node")
    if found:
        return found
    nvm_installs = sorted(glob.glob(os.path.expanduser("~/.nvm/versions/node/*/bin/node")))
    if nvm_installs:
        return nvm_installs[-1]
    raise RuntimeError("Node.js not found. Install Node.js to use ELK layout.")


# One worker for the whole process, shared by every ELKLayoutEngine
_worker_manager: Optional[ELKWorkerManager] = None
_worker_lock = threading.Lock()


@atexit.register
def _stop_shared_worker() -> None:
    if _worker_manager is not None:
        _worker_manager.shutdown()


class ELKLayoutEngine(LayoutEngine):
    """The external solver: elkjs running in the shared Node.js worker."""

    def __init__(
        self,
        node_path: Optional[str] = None,
        worker_script: Optional[Path] = None,
        timeout: Optional[int] = None,
        modules_dir: Optional[Path] = None,
    ):
        """
        Args:
            node_path: Node.js executable; ``AUTOLAYOUT_NODE_PATH`` or PATH lookup if None
            worker_script: Worker script; the bundled ``elk_worker.js`` if None
            timeout: Seconds per layout request; ``AUTOLAYOUT_ELK_TIMEOUT`` if None
            modules_dir: Directory whose ``node_modules`` holds elkjs; cwd if None
        """
        self._node_path = node_path or settings.NODE_PATH
        self._worker_script = worker_script or Path(__file__).parent.parent / "elk_worker.js"
        self._timeout = timeout if timeout is not None else settings.ELK_TIMEOUT_SECONDS
        self._modules_dir = modules_dir or Path.cwd()

    @property
    def name(self) -> str:
        return "elk"

    @property
    def supported_algorithms(self) -> FrozenSet[str]:
        return frozenset({"box", "layered", "mrtree", "stress", "grid"})

    @property
    def node_path(self) -> str:
        if self._node_path is None:
            self._node_path = find_node()
        return self._node_path

    async def is_available(self) -> bool:
        """True when Node.js starts and can ``require('elkjs')``."""
        probe = "try { require('elkjs'); console.log('ok'); } catch (e) { console.log('missing'); }"
        try:
            result = subprocess.run(
                [self.node_path, "-e", probe],
                capture_output=True,
                text=True,
                timeout=5,
                cwd=self._modules_dir,
                env=node_environment(self._modules_dir),
            )
        except (RuntimeError, OSError, subprocess.SubprocessError) as e:
            logger.warning(f"ELK availability check failed: {e}")
            return False
        return result.returncode == 0 and result.stdout.strip() == "ok"

    async def layout(self, graph: GraphModel) -> LayoutOutcome:
        result = await self._shared_worker().request(self.graph_to_elk(graph))
        return self.elk_to_outcome(result, graph)

    def _shared_worker(self) -> ELKWorkerManager:
        global _worker_manager
        with _worker_lock:
            if _worker_manager is None:
                _worker_manager = ELKWorkerManager(
                    self.node_path, self._worker_script, self._timeout, self._modules_dir
                )
            return _worker_manager

    @staticmethod
    def graph_to_elk(graph: GraphModel) -> Dict[str, Any]:
        """ELK JSON for a graph model: one child per node, one edge per connector."""
        return {
            "id": "root",
            "layoutOptions": dict(graph.options),
            "children": [
                {"id": node.id, "width": node.width, "height": node.height}
                for node in graph.nodes
            ],
            "edges": [
                {"id": edge.id, "sources": [edge.source_id], "targets": [edge.target_id]}
                for edge in graph.edges
            ],
        }

    def elk_to_outcome(self, elk_result: Dict[str, Any], graph: GraphModel) -> LayoutOutcome:
        """Top-left positions from a laid-out ELK graph.

        Children without coordinates are left out; the executor rejects
        outcomes that miss a node.
        """
        positions = {
            child["id"]: NodePosition(x=child["x"], y=child["y"])
            for child in elk_result.get("children", [])
            if child.get("x") is not None and child.get("y") is not None
        }
        return LayoutOutcome(algorithm=graph.algorithm, engine=self.name, positions=positions)

    def shutdown(self) -> None:
        """Stop the shared worker."""
        global _worker_manager
        with _worker_lock:
            if _worker_manager is not None:
                _worker_manager.shutdown()
                _worker_manager = None
