"""Custom exception hierarchy for the query builder.

Exception Categories:
- Base exception for all query builder errors
- Backend errors for failed calls to the query-builder HTTP service
- Configuration errors for missing or malformed settings
"""

from __future__ import annotations


class QueryBuilderError(Exception):
    """Base exception for query builder operations."""


class BackendError(QueryBuilderError):
    """Raised when a call to the query-builder backend fails.

    This covers transport failures, HTTP error statuses, and response bodies
    whose ``status`` is not ``"success"``. When the backend supplied a
    ``message`` it becomes the exception text.
    """

    def __init__(self, message: str, *, endpoint: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class ConfigurationError(QueryBuilderError):
    """Raised when required configuration is missing or invalid."""
