"""
MCP Server Implementation
========================

Model Context Protocol server providing the generate_image tool, which renders
Mermaid markup to a PNG file through the Mermaid CLI.

Each tools/call request runs an independent pipeline: validate arguments,
acquire a temporary input file, invoke the CLI, map the outcome to content or
a typed error, and release the temporary file.
"""

import asyncio
import logging
import os
import signal
import sys
import uuid
from typing import Any, Dict, List, Optional

from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.types import (
    CallToolRequest,
    CallToolResult,
    ServerResult,
    TextContent,
    Tool,
)

from mermaid_mcp.config.logging import get_logger, setup_logging
from mermaid_mcp.config.settings import ConfigurationError, Settings, load_settings
from mermaid_mcp.core.rendering.mermaid_cli import MermaidCLIRenderer
from mermaid_mcp.core.rendering.temp_files import temp_input_file
from mermaid_mcp.core.validation import ArgumentError, parse_generate_image_args
from mermaid_mcp.mcp_server.results import (
    check_invocation,
    invalid_params_error,
    to_internal_error,
    unknown_tool_error,
)
from mermaid_mcp.models.schemas import GENERATE_IMAGE_INPUT_SCHEMA, TOOL_DESCRIPTION, TOOL_NAME

logger = get_logger(__name__)

# Seconds allowed for the stdio transport to close after a shutdown signal
SHUTDOWN_GRACE = 2.0


class MermaidCLIMCPServer:
    """MCP Server wrapping the Mermaid CLI."""

    def __init__(self, settings: Settings, renderer: Optional[MermaidCLIRenderer] = None) -> None:
        self.settings = settings
        self.logger: Any = logger.bind(component="mcp_server")  # structlog.BoundLoggerBase
        self.renderer = renderer or MermaidCLIRenderer(settings)
        self.server: Server = Server(settings.app_name, version=settings.app_version)
        self._setup_tools()

    def _setup_tools(self) -> None:
        """Setup MCP tools."""

        @self.server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            """List available MCP tools."""
            return self.get_tools()

        # Registered directly so McpError reaches the client as a JSON-RPC error
        # instead of being folded into an isError tool result.
        async def handle_call_tool(request: CallToolRequest) -> ServerResult:
            name = request.params.name
            arguments = request.params.arguments
            self.logger.info("Tool called", tool=name)

            if name != TOOL_NAME:
                self.logger.warning("Tool not found", tool=name)
                raise unknown_tool_error(name)

            content = await self.generate_image(arguments)
            return ServerResult(CallToolResult(content=content, isError=False))

        self.server.request_handlers[CallToolRequest] = handle_call_tool

    def get_tools(self) -> List[Tool]:
        """Get list of available MCP tools."""
        return [
            Tool(
                name=TOOL_NAME,
                description=TOOL_DESCRIPTION,
                inputSchema=GENERATE_IMAGE_INPUT_SCHEMA,
            )
        ]

    async def generate_image(self, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """
        Handle generate_image tool execution.

        Args:
            arguments: Raw tool arguments

        Returns:
            A single text item holding the absolute path of the PNG

        Raises:
            McpError: INVALID_PARAMS for malformed arguments, INTERNAL_ERROR
                for any failure once rendering has started
        """
        parsed = parse_generate_image_args(arguments)
        if isinstance(parsed, ArgumentError):
            self.logger.warning("Invalid tool arguments", tool=TOOL_NAME, fields=parsed.fields)
            raise invalid_params_error(parsed)

        log = self.logger.bind(request_id=uuid.uuid4().hex, image_name=parsed.name)

        try:
            async with temp_input_file(self.settings.temp_dir) as input_path:
                log.debug("Temporary input acquired", input_path=str(input_path))
                target, result = await self.renderer.render(parsed, input_path)
                content = check_invocation(result, target)
        except Exception as e:
            raise to_internal_error(e) from e

        log.info("Image generated", output=str(target.path))
        return content

    def initialization_options(self) -> InitializationOptions:
        return InitializationOptions(
            server_name=self.settings.app_name,
            server_version=self.settings.app_version,
            capabilities=self.server.get_capabilities(
                notification_options=NotificationOptions(), experimental_capabilities={}
            ),
        )

    async def run(self) -> None:
        """Run the MCP server over stdio until the input stream closes."""
        from mcp.server.stdio import stdio_server

        async with stdio_server() as (read_stream, write_stream):
            self.logger.info("Mermaid CLI MCP server running on stdio")
            await self.server.run(read_stream, write_stream, self.initialization_options())


async def main(settings: Settings) -> None:
    """
    Main entry point for MCP server.

    Serves until the client closes stdin or SIGINT/SIGTERM arrives. On a signal
    the transport is cancelled; if the blocked stdin reader keeps it from
    closing within SHUTDOWN_GRACE, the process exits directly with status 0.
    """
    mcp_server = MermaidCLIMCPServer(settings)
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; KeyboardInterrupt is handled in run()
            pass

    serve_task = asyncio.create_task(mcp_server.run())
    shutdown_task = asyncio.create_task(shutdown_event.wait())
    done, _ = await asyncio.wait(
        {serve_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
    )

    if serve_task in done:
        shutdown_task.cancel()
        serve_task.result()
        return

    logger.info("Received shutdown signal, closing MCP server")
    serve_task.cancel()
    await asyncio.wait({serve_task}, timeout=SHUTDOWN_GRACE)
    if not serve_task.done():
        logger.info("Transport still blocked on stdin, exiting")
        logging.shutdown()
        os._exit(0)
    logger.info("MCP server stopped")


def run() -> None:
    """Console entry point: load configuration, then serve until interrupted."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        # Logging is configured from settings, so report on stderr directly.
        raise SystemExit(f"Configuration error: {e}")

    setup_logging(settings)

    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, MCP server shutting down")
        sys.exit(0)


if __name__ == "__main__":
    run()
