"""Command-line entry point for the file-system MCP server."""

from __future__ import annotations

import argparse
import json
import logging

import anyio

from linemcp import __version__
from linemcp.config import ServerOptions
from linemcp.errors import TransportError
from linemcp.log import configure_logging
from linemcp.server import MCPServer
from linemcp.transport import LineTransport
from linemcp_server.fastmcp_adapter import build_fastmcp_app
from linemcp_server.tools import build_tools

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description="Serve file-system tools over the Model Context Protocol."
    )
    parser.add_argument(
        "--allowed-dir",
        dest="allowed_dirs",
        action="append",
        default=[],
        metavar="PATH",
        help="Directory the tools may access (repeatable, default: current directory).",
    )
    parser.add_argument("--name", default="linemcp", help="Server name to advertise.")
    parser.add_argument(
        "--server-version", default=__version__, help="Server version to advertise."
    )
    parser.add_argument(
        "--enable-resources",
        action="store_true",
        help="Advertise the resources capability.",
    )
    parser.add_argument(
        "--enable-prompts", action="store_true", help="Advertise the prompts capability."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Verbosity of the stderr log.",
    )
    parser.add_argument(
        "--catalog",
        action="store_true",
        help="Print the available tool catalog as JSON and exit.",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport to serve on.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="HTTP bind host.")
    parser.add_argument("--port", type=int, default=8000, help="HTTP bind port.")
    parser.add_argument("--path", default="/mcp", help="HTTP endpoint path.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    options = ServerOptions(
        name=args.name,
        version=args.server_version,
        enable_resources=args.enable_resources,
        enable_prompts=args.enable_prompts,
    )

    if args.catalog:
        server = MCPServer(options)
        server.register_tools(*build_tools(args.allowed_dirs))
        print(json.dumps(server.to_catalog(), indent=2))
        return 0

    if args.transport == "http":
        app, _ = build_fastmcp_app(args.allowed_dirs, name=options.name)
        app.run(transport="http", host=args.host, port=args.port, path=args.path)
        return 0

    server = MCPServer(options)
    server.register_tools(*build_tools(args.allowed_dirs))
    try:
        anyio.run(server.run, LineTransport.stdio())
    except TransportError as error:
        logger.error("Connection lost: %s", error)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
