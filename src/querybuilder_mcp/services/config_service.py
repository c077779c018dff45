"""Configuration service for querybuilder-mcp.

This module centralizes environment variable handling for the backend
connection, request timeouts, and the SQL dialect used for previews.
"""

from __future__ import annotations

import os

from querybuilder_mcp.exceptions import ConfigurationError
from querybuilder_mcp.preview import Dialect, normalize_dialect

DEFAULT_BACKEND_URL = "http://localhost:5000/api/query-builder"


class ConfigService:
    """Service for managing configuration."""

    @staticmethod
    def get_backend_url() -> str:
        """Get the query-builder backend base URL.

        Returns:
            Base URL without a trailing slash
        """
        url = os.getenv("QUERYBUILDER_MCP_BACKEND_URL", DEFAULT_BACKEND_URL).strip()
        if not url:
            error_msg = "QUERYBUILDER_MCP_BACKEND_URL is set but empty"
            raise ConfigurationError(error_msg)
        return url.rstrip("/")

    @staticmethod
    def get_auth_token() -> str:
        """Return the bearer credential for backend calls.

        Token storage is owned by an external auth collaborator; this process
        only reads what it was handed through the environment.
        """
        return os.getenv("QUERYBUILDER_MCP_AUTH_TOKEN", "")

    @staticmethod
    def http_timeout() -> float | None:
        """Per-request timeout in seconds, or None for no timeout."""
        val = os.getenv("QUERYBUILDER_MCP_HTTP_TIMEOUT")
        if not val:
            return None
        try:
            seconds = float(val)
        except ValueError:
            return None
        return seconds if seconds > 0 else None

    @staticmethod
    def sql_dialect() -> Dialect:
        """Dialect used to format generated SQL in the preview step."""
        return normalize_dialect(os.getenv("QUERYBUILDER_MCP_SQL_DIALECT", "sql"))
