#!/usr/bin/env python3
"""gitlab-mcp MCP Server entry point.

Run:
  uvx python -m gitlab_mcp                  # start server (stdio)
  uvx python -m gitlab_mcp --sse --port 3000
  uvx python -m gitlab_mcp --test           # run lightweight self-tests then exit
"""

import argparse
import asyncio
import sys

from gitlab_mcp.server import run_server, test_server


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(prog="gitlab_mcp", add_help=True)
    parser.add_argument(
        "--test",
        action="store_true",
        help="Run built-in server self tests (tool listing) then exit.",
    )
    parser.add_argument(
        "--sse",
        action="store_true",
        default=None,
        help="Serve over SSE instead of stdio (overrides USE_SSE).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the SSE transport (overrides PORT).",
    )
    return parser.parse_args(argv)


def main() -> None:
    """CLI dispatcher for the MCP server."""
    args = parse_args(sys.argv[1:])
    try:
        if args.test:
            asyncio.run(test_server())
        else:
            asyncio.run(run_server(use_sse=args.sse, port=args.port))
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        print(f"Server error: {exc}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
