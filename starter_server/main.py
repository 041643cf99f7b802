"""
MCP Server Entry Point using Official SDK

This module provides the main entry point: it parses the command line,
loads the configuration and runs the starter server over stdio, streamable
HTTP or SSE.
"""

import argparse
import contextlib
import signal
import sys
from typing import Optional, Sequence

import anyio
import uvicorn
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Mount, Route

from capability_registry import ConfigurationError, get_logger, setup_logging
from starter_server.config import LOG_LEVELS, TRANSPORTS, ServerConfig
from starter_server.server import StarterServer, create_server_app

CORS_METHODS = ["OPTIONS", "GET", "POST", "DELETE"]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MCP Python Starter server (using official SDK)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Transport Options:
  stdio             Standard I/O transport (default)
  streamable-http   HTTP streaming transport, endpoint /mcp
  sse               Server-Sent Events transport, endpoints /sse and /messages/

Environment Variables:
  PORT                Server port number for HTTP transports (default: 3000)
  MCP_SERVER_HOST     Server host address for HTTP transports (default: 0.0.0.0)
  MCP_ENABLE_CORS     Enable CORS support for HTTP transports (default: true)
  MCP_TRANSPORT       Default transport (default: stdio)
  MCP_LOG_LEVEL       Logging level (default: INFO)

Examples:
  python -m starter_server.main
  python -m starter_server.main --transport streamable-http --port 9000
  python -m starter_server.main --transport sse --host 127.0.0.1 --disable-cors
        """,
    )

    parser.add_argument(
        "--transport",
        choices=list(TRANSPORTS),
        default=None,
        help="Transport type (overrides MCP_TRANSPORT, default: stdio)",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Server host address for HTTP transports (overrides MCP_SERVER_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Server port number for HTTP transports (overrides PORT)",
    )

    cors = parser.add_mutually_exclusive_group()
    cors.add_argument(
        "--enable-cors",
        dest="enable_cors",
        action="store_true",
        default=None,
        help="Enable CORS support for HTTP transports (overrides MCP_ENABLE_CORS)",
    )
    cors.add_argument(
        "--disable-cors",
        dest="enable_cors",
        action="store_false",
        help="Disable CORS support for HTTP transports (overrides MCP_ENABLE_CORS)",
    )

    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        default=None,
        help="Set logging level (overrides MCP_LOG_LEVEL, default: INFO)",
    )

    return parser.parse_args(argv)


def get_server_config(args: argparse.Namespace) -> ServerConfig:
    """Get server configuration from environment, then apply command line overrides."""
    return ServerConfig.from_env().with_overrides(
        host=args.host,
        port=args.port,
        enable_cors=args.enable_cors,
        transport=args.transport,
        log_level=args.log_level,
    )


def setup_cleanup_handlers():
    """Setup cleanup handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        """Signal handler for graceful shutdown."""
        print(f"Received signal {signum}, shutting down...", file=sys.stderr)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def add_cors(app: Starlette, config: ServerConfig) -> Starlette:
    if config.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=CORS_METHODS,
            allow_headers=["*"],
            expose_headers=["Mcp-Session-Id"],
        )
    return app


def build_http_app(starter: StarterServer, config: ServerConfig) -> Starlette:
    """Starlette app serving the streamable HTTP transport at /mcp."""
    session_manager = StreamableHTTPSessionManager(app=starter.server)

    async def handle_streamable_http(scope, receive, send):
        await session_manager.handle_request(scope, receive, send)

    @contextlib.asynccontextmanager
    async def app_lifespan(app: Starlette):
        async with session_manager.run():
            try:
                yield
            finally:
                await starter.shutdown()

    app = Starlette(
        routes=[
            Mount("/mcp", app=handle_streamable_http),
        ],
        lifespan=app_lifespan,
    )
    return add_cors(app, config)


def build_sse_app(starter: StarterServer, config: ServerConfig) -> Starlette:
    """Starlette app serving the SSE transport at /sse and /messages/."""
    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(request.scope, request.receive, request._send) as streams:
            await starter.server.run(
                streams[0],
                streams[1],
                starter.create_initialization_options(),
            )
        return Response()

    @contextlib.asynccontextmanager
    async def app_lifespan(app: Starlette):
        try:
            yield
        finally:
            await starter.shutdown()

    app = Starlette(
        routes=[
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse.handle_post_message),
        ],
        lifespan=app_lifespan,
    )
    return add_cors(app, config)


async def run_stdio_server(starter: StarterServer) -> None:
    """Serve a single client over standard input/output."""
    try:
        async with stdio_server() as (read_stream, write_stream):
            await starter.server.run(
                read_stream,
                write_stream,
                starter.create_initialization_options(),
            )
    finally:
        await starter.shutdown()


def run_http_server(app: Starlette, config: ServerConfig) -> None:
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower()
    )


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = get_server_config(args)
    except ConfigurationError as e:
        print(e.get_user_friendly_message(), file=sys.stderr)
        sys.exit(1)

    # Console logging goes to stderr so it never interleaves with stdio protocol traffic
    setup_logging(level=config.log_level)
    logger = get_logger('main')

    setup_cleanup_handlers()

    try:
        starter = create_server_app()

        if config.transport == "stdio":
            logger.debug("Serving MCP over stdio")
            anyio.run(run_stdio_server, starter)
        elif config.transport == "streamable-http":
            logger.info(f"Starting MCP HTTP server on http://{config.host}:{config.port}/mcp")
            run_http_server(build_http_app(starter, config), config)
        else:
            logger.info(f"Starting MCP SSE server, connect via http://{config.host}:{config.port}/sse")
            run_http_server(build_sse_app(starter, config), config)

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
