"""HTTP client for the query-builder backend.

Thin async wrapper over the five endpoints the wizard consumes. Every call
attaches a bearer token from an injected provider and raises `BackendError`
for transport failures, HTTP error statuses, and non-success bodies.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from fastmcp.utilities.logging import get_logger
import httpx
from pydantic import ValidationError

from querybuilder_mcp.exceptions import BackendError
from querybuilder_mcp.models import (
    ColumnInfo,
    QueryParams,
    QueryPattern,
    Relationship,
    RelationshipAnalysis,
    RelationshipKind,
    TableCatalogEntry,
)

_logger = get_logger(__name__)

TokenProvider = Callable[[], str]
_Model = TypeVar("_Model", TableCatalogEntry, ColumnInfo, QueryPattern)


def _error_detail(response: httpx.Response) -> str | None:
    """Pull the backend's ``message`` out of an error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def _with_kind(items: object, kind: RelationshipKind) -> list[dict[str, Any]]:
    """Fill in ``relationship_type`` from the list an item arrived in."""
    if not isinstance(items, list):
        return []
    out: list[dict[str, Any]] = []
    for item in items:
        if isinstance(item, dict):
            out.append({"relationship_type": kind.value, **item})
    return out


class BackendClient:
    """Async client for the query-builder endpoints.

    The client owns its `httpx.AsyncClient` unless one is injected (tests pass
    one built on `httpx.MockTransport`).
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/", timeout=timeout
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    # ---- transport ------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token_provider()}"}

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, object] | None = None,
    ) -> dict[str, Any]:
        _logger.info("backend %s %s", method, endpoint)
        try:
            response = await self._http.request(
                method, endpoint, params=params, json=json, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            _logger.warning("backend %s %s failed: %s", method, endpoint, exc)
            raise BackendError(str(exc) or type(exc).__name__, endpoint=endpoint) from exc

        if response.is_error:
            detail = _error_detail(response) or f"HTTP {response.status_code}"
            _logger.warning("backend %s %s returned %s", method, endpoint, response.status_code)
            raise BackendError(detail, endpoint=endpoint, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            msg = "Backend returned a non-JSON response"
            raise BackendError(msg, endpoint=endpoint, status_code=response.status_code) from exc
        if not isinstance(body, dict) or body.get("status") != "success":
            detail = _error_detail(response) or f"Request to {endpoint} was not successful"
            raise BackendError(detail, endpoint=endpoint, status_code=response.status_code)
        return body

    # ---- endpoints ------------------------------------------------------
    async def list_tables(self, connection_id: str) -> list[TableCatalogEntry]:
        body = await self._request("GET", "tables", params={"connection_id": connection_id})
        return self._parse_list(body.get("tables"), TableCatalogEntry, "tables")

    async def list_columns(self, connection_id: str, table_name: str) -> list[ColumnInfo]:
        body = await self._request(
            "GET",
            "columns",
            params={"connection_id": connection_id, "table_name": table_name},
        )
        return self._parse_list(body.get("columns"), ColumnInfo, "columns")

    async def list_patterns(self, connection_id: str) -> list[QueryPattern]:
        body = await self._request("GET", "patterns", params={"connection_id": connection_id})
        return self._parse_list(body.get("patterns"), QueryPattern, "patterns", skip_invalid=True)

    async def analyze_relationships(
        self, connection_id: str, tables: list[str]
    ) -> RelationshipAnalysis:
        """Return defined (foreign key) and suggested (naming heuristic) joins."""
        body = await self._request(
            "POST",
            "relationships",
            json={"connection_id": connection_id, "tables": tables},
        )
        try:
            return RelationshipAnalysis(
                defined_relationships=[
                    Relationship.model_validate(item)
                    for item in _with_kind(
                        body.get("defined_relationships"), RelationshipKind.DEFINED
                    )
                ],
                suggested_relationships=[
                    Relationship.model_validate(item)
                    for item in _with_kind(
                        body.get("suggested_relationships"), RelationshipKind.SUGGESTED
                    )
                ],
            )
        except ValidationError as exc:
            msg = f"Malformed relationships response: {exc.error_count()} invalid field(s)"
            raise BackendError(msg, endpoint="relationships") from exc

    async def build_sql(self, connection_id: str, query_params: QueryParams) -> str:
        body = await self._request(
            "POST",
            "build",
            json={"connection_id": connection_id, "query_params": query_params.to_payload()},
        )
        sql = body.get("sql")
        if not isinstance(sql, str):
            msg = "Build response did not include SQL text"
            raise BackendError(msg, endpoint="build")
        return sql

    @staticmethod
    def _parse_list(
        items: object, model: type[_Model], endpoint: str, *, skip_invalid: bool = False
    ) -> list[_Model]:
        """Validate a list of records.

        With ``skip_invalid`` a malformed record is logged and dropped instead
        of failing the whole list.
        """
        if items is None:
            return []
        if not isinstance(items, list):
            msg = f"Expected a list in {endpoint} response"
            raise BackendError(msg, endpoint=endpoint)
        if skip_invalid:
            parsed: list[_Model] = []
            for idx, item in enumerate(items):
                try:
                    parsed.append(model.model_validate(item))
                except ValidationError as exc:
                    _logger.warning(
                        "Skipping malformed %s entry %d: %d invalid field(s)",
                        endpoint,
                        idx,
                        exc.error_count(),
                    )
            return parsed
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as exc:
            msg = f"Malformed {endpoint} response: {exc.error_count()} invalid field(s)"
            raise BackendError(msg, endpoint=endpoint) from exc
