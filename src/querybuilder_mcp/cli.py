"""Command-line entrypoint for the querybuilder-mcp FastMCP server.

Running `querybuilder-mcp` starts the server with FastMCP's default transport.
"""

from __future__ import annotations

from fastmcp.utilities.logging import get_logger

from querybuilder_mcp.server import mcp

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)


def main() -> None:
    """Start the querybuilder-mcp FastMCP server via CLI."""
    try:
        mcp.run()
    except KeyboardInterrupt:
        _logger.info("Interrupted by user. Exiting cleanly.")


if __name__ == "__main__":
    # Delegate to main() so behavior is consistent across execution paths.
    main()
