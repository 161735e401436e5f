"""MCP server wiring for gitlab-mcp.

Lists the tools visible under the configured access mode and forwards calls to the
dispatcher. Runs over stdio by default, or over SSE when asked to.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

try:
    from mcp.server import Server
    from mcp.types import TextContent, Tool
except ImportError as exc:  # pragma: no cover
    raise ImportError("MCP library not installed. Install with: pip install mcp") from exc

from . import __version__
from .catalog import OperationDescriptor
from .errors import ErrorKind, GatewayError
from .tools import CATALOG, dispatch_tool, initialize_runtime_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

SSE_HOST = "0.0.0.0"

server = Server("gitlab-mcp", version=__version__)


def _to_tool(descriptor: OperationDescriptor) -> Tool:
    return Tool(
        name=descriptor.name,
        description=descriptor.description,
        inputSchema=descriptor.input_schema,
    )


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List the tools visible under the current access mode."""
    runtime = initialize_runtime_from_env()
    tools = [_to_tool(d) for d in runtime.access.list_visible()]
    if runtime.access.read_only:
        logger.info("Listed %s tools (read-only mode)", len(tools))
    else:
        logger.info("Listed %s tools", len(tools))
    return tools


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
    """Execute a tool and return MCP-compliant TextContent.

    Failures are re-raised so the SDK reports them as error results carrying the message.
    """
    logger.info("Tool called: %s", name)

    try:
        blocks = await dispatch_tool(name, arguments)
    except GatewayError as err:
        logger.error("Tool %s failed (%s): %s", name, err.kind.value, err.message)
        raise
    return [TextContent(type="text", text=block["text"]) for block in blocks]


async def _run_stdio() -> None:
    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def _run_sse(port: int) -> None:
    import uvicorn
    from mcp.server.sse import SseServerTransport
    from starlette.applications import Starlette
    from starlette.requests import Request
    from starlette.responses import Response
    from starlette.routing import Mount, Route

    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(
            request.scope, request.receive, request._send  # pylint: disable=protected-access
        ) as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
        return Response()

    app = Starlette(
        routes=[
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse.handle_post_message),
        ]
    )
    config = uvicorn.Config(app, host=SSE_HOST, port=port, log_level="info")
    await uvicorn.Server(config).serve()


async def run_server(*, use_sse: bool | None = None, port: int | None = None) -> None:
    """Run the server over stdio, or over SSE when enabled by flag or environment."""
    # Fail fast on invalid/missing host configuration.
    try:
        runtime = initialize_runtime_from_env()
    except GatewayError as exc:
        if exc.kind is ErrorKind.CONFIG:
            logger.error("Startup configuration error: %s", exc.message)
        raise

    sse_enabled = runtime.config.use_sse if use_sse is None else use_sse
    if runtime.access.read_only:
        logger.info("Read-only mode enabled: mutating tools are hidden")

    if sse_enabled:
        sse_port = port or runtime.config.port
        logger.info("GitLab MCP Server running with SSE transport on port %s", sse_port)
        await _run_sse(sse_port)
    else:
        logger.info("GitLab MCP Server running with stdio transport")
        await _run_stdio()


async def test_server() -> None:
    """Lightweight self-test to ensure tool listing works without configuration."""
    # Avoid calling decorated handlers directly; just validate we can construct Tool objects.
    tools = [_to_tool(d) for d in CATALOG.list()]
    read_only = [d.name for d in CATALOG.list() if d.read_only]
    print(f"gitlab-mcp {__version__}: {len(tools)} tools ({len(read_only)} read-only)", file=sys.stderr)
