"""Wizard session manager for querybuilder-mcp.

Provides a process-wide registry of `QueryBuilder` sessions keyed by
connection id, all sharing one `BackendClient`. Sessions live in memory only
and are never persisted.
"""

from __future__ import annotations

import asyncio
import threading
from typing import ClassVar

from fastmcp.utilities.logging import get_logger

from querybuilder_mcp.client import BackendClient
from querybuilder_mcp.preview import SqlPreviewService
from querybuilder_mcp.services.config_service import ConfigService
from querybuilder_mcp.wizard import QueryBuilder


class WizardSessionManager:
    """Singleton registry of wizard sessions.

    The backend client is created lazily from `ConfigService` on first use
    and closed on `shutdown()`.
    """

    _instance: ClassVar[WizardSessionManager | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, client: BackendClient | None = None) -> None:
        """Initialize the session manager.

        Args:
            client: Optional pre-built backend client (tests inject one)
        """
        self._client = client
        self._sessions: dict[str, QueryBuilder] = {}
        self._last_sql: dict[str, str] = {}
        self._session_lock = asyncio.Lock()
        self._logger = get_logger(__name__)

    @classmethod
    def get_instance(cls) -> WizardSessionManager:
        """Get the singleton instance of WizardSessionManager."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (primarily for testing)."""
        with cls._lock:
            cls._instance = None

    def _backend(self) -> BackendClient:
        if self._client is None:
            self._client = BackendClient(
                ConfigService.get_backend_url(),
                ConfigService.get_auth_token,
                timeout=ConfigService.http_timeout(),
            )
        return self._client

    async def open(self, connection_id: str) -> QueryBuilder:
        """Return the session for ``connection_id``, creating it on first use.

        A new session fetches the table catalog and patterns once.
        """
        async with self._session_lock:
            session = self._sessions.get(connection_id)
            if session is not None:
                return session
            session = QueryBuilder(
                connection_id,
                self._backend(),
                on_query_generated=lambda sql: self._record_sql(connection_id, sql),
                previewer=SqlPreviewService(ConfigService.sql_dialect(), self._logger),
            )
            self._sessions[connection_id] = session
        self._logger.info("Opened query builder session for connection %s", connection_id)
        await session.load_catalog()
        return session

    def get(self, connection_id: str) -> QueryBuilder:
        """Return an open session.

        Raises:
            ValueError: If no session was opened for ``connection_id``
        """
        session = self._sessions.get(connection_id)
        if session is None:
            msg = f"No query builder session for connection '{connection_id}'; call open first"
            raise ValueError(msg)
        return session

    def close(self, connection_id: str) -> bool:
        self._last_sql.pop(connection_id, None)
        return self._sessions.pop(connection_id, None) is not None

    def last_generated_sql(self, connection_id: str) -> str | None:
        return self._last_sql.get(connection_id)

    def _record_sql(self, connection_id: str, sql: str) -> None:
        self._last_sql[connection_id] = sql
        self._logger.info("Query generated for connection %s", connection_id)

    async def shutdown(self) -> None:
        self._sessions.clear()
        self._last_sql.clear()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
