"""MCP server exposing pattern-aware diagram auto-layout over stdio.

Scenes live in memory for the lifetime of the server process; every tool
addresses a scene by the ID returned from ``layout_scene_load``.
"""

import asyncio
import json
import logging

from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.types import TextContent, Tool

from . import __version__
from .core.editor import SceneRegistry
from .orchestrator.layout_orchestrator import LayoutOrchestrator
from .tools.layout_tools import LayoutTools
from .utils.response import error_response

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVER_NAME = "autolayout-mcp"


class AutoLayoutMCPServer:
    """Binds the layout tools to an MCP server instance."""

    def __init__(self):
        self.scenes = SceneRegistry()
        self.orchestrator = LayoutOrchestrator()
        self.layout_tools = LayoutTools(self.scenes, self.orchestrator)
        self.server = Server(SERVER_NAME)
        self._tool_names = {tool.name for tool in self.layout_tools.get_tools()}
        self._register_handlers()

    def _register_handlers(self):

        @self.server.list_tools()
        async def handle_list_tools() -> list[Tool]:
            return self.layout_tools.get_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
            if name in self._tool_names:
                result = await self.layout_tools.handle_tool(name, arguments or {})
            else:
                logger.warning(f"Call to unknown tool {name}")
                result = error_response(f"Unknown tool: {name}", code="UNKNOWN_TOOL")
            return [TextContent(type="text", text=json.dumps(result, indent=2))]

    async def run(self):
        """Serve over stdin/stdout until the client disconnects."""
        from mcp.server.stdio import stdio_server

        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=self.server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={}
                    )
                )
            )


def main():
    """Console entry point."""
    asyncio.run(AutoLayoutMCPServer().run())


if __name__ == "__main__":
    main()
