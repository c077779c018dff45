"""FastMCP server implementation for querybuilder-mcp."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from starlette.requests import Request
from starlette.responses import JSONResponse

from querybuilder_mcp.mcp_tools import register_query_builder_tools
from querybuilder_mcp.services.config_service import ConfigService
from querybuilder_mcp.services.session_manager import WizardSessionManager

# Load environment variables
dotenv.load_dotenv()

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)


# -- Lifespan: close the shared backend client on shutdown ------------------
@asynccontextmanager
async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None]:
    """FastMCP lifespan context manager for wizard sessions."""
    manager = WizardSessionManager.get_instance()
    _logger.info("Query builder backend: %s", ConfigService.get_backend_url())
    try:
        yield
    finally:
        _logger.info("Closing query builder sessions during lifespan shutdown")
        await manager.shutdown()


# Create the main MCP server instance with lifespan
mcp = FastMCP(
    instructions=(
        "This provides a step-by-step visual SQL query builder. Open a session for a "
        "connection, pick tables, columns and aggregations, review joins, add filters "
        "and a date range, then advance to generate SQL through the backend."
    ),
    lifespan=lifespan,
)

# -- Tool Registration -------------------------------------------------------
register_query_builder_tools(mcp)


# -- Health Check ----------------------------------------------------------
@mcp.custom_route("/health", methods=["GET"])
async def health_check(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "healthy", "service": "querybuilder-mcp"})
