"""Shared fixtures: an in-process fake of the query-builder backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import json
from typing import Any

import httpx
import pytest

from querybuilder_mcp.client import BackendClient
from querybuilder_mcp.wizard import QueryBuilder

BASE_URL = "http://backend.test/api/query-builder/"
TODAY = date(2024, 3, 15)


def _rel(src: str, src_col: str, tgt: str, tgt_col: str) -> dict[str, str]:
    return {
        "source_table": src,
        "source_column": src_col,
        "target_table": tgt,
        "target_column": tgt_col,
    }


@dataclass
class FakeBackend:
    """Serves canned responses and records every request it receives."""

    tables: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {"name": "Orders", "description": "Customer orders", "preview_columns": ["OrderID"]},
            {"name": "Clients", "description": "Client master data", "preview_columns": []},
            {"name": "Invoices", "description": None, "preview_columns": ["InvoiceID"]},
        ]
    )
    columns: dict[str, list[dict[str, Any]]] = field(
        default_factory=lambda: {
            "Orders": [
                {"name": "OrderID", "type": "int", "is_primary_key": True},
                {"name": "ClientID", "type": "int"},
                {"name": "Amount", "type": "decimal(10,2)"},
                {"name": "Status", "type": "varchar(20)"},
                {"name": "OrderDate", "type": "datetime"},
            ],
            "Clients": [
                {"name": "ClientID", "type": "int", "is_primary_key": True},
                {"name": "Name", "type": "nvarchar(100)"},
                {"name": "IsActive", "type": "bit"},
            ],
            "Invoices": [
                {"name": "InvoiceID", "type": "bigint", "is_primary_key": True},
                {"name": "ClientID", "type": "int"},
            ],
        }
    )
    patterns: list[dict[str, Any]] = field(
        default_factory=lambda: [
            {
                "name": "Revenue by client",
                "description": "Total order amount per client",
                "default_tables": ["Orders", "Clients"],
                "aggregations": {"Orders": {"Amount": "sum"}},
                "formula": "SUM(Orders.Amount)",
            }
        ]
    )
    defined: list[dict[str, Any]] = field(
        default_factory=lambda: [_rel("Orders", "ClientID", "Clients", "ClientID")]
    )
    suggested: list[dict[str, Any]] = field(
        default_factory=lambda: [_rel("Invoices", "ClientID", "Clients", "ClientID")]
    )
    sql: str = "SELECT SUM(Orders.Amount) FROM Orders"
    failing: set[str] = field(default_factory=set)
    requests: list[httpx.Request] = field(default_factory=list)

    def calls(self, endpoint: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/" + endpoint)]

    def json_body(self, request: httpx.Request) -> dict[str, Any]:
        return json.loads(request.content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        if endpoint in self.failing:
            return httpx.Response(500, json={"status": "error", "message": f"{endpoint} exploded"})
        if endpoint == "tables":
            return httpx.Response(200, json={"status": "success", "tables": self.tables})
        if endpoint == "columns":
            table = request.url.params["table_name"]
            if table not in self.columns:
                return httpx.Response(
                    200, json={"status": "error", "message": f"Unknown table {table}"}
                )
            return httpx.Response(200, json={"status": "success", "columns": self.columns[table]})
        if endpoint == "patterns":
            return httpx.Response(200, json={"status": "success", "patterns": self.patterns})
        if endpoint == "relationships":
            wanted = set(self.json_body(request)["tables"])
            return httpx.Response(
                200,
                json={
                    "status": "success",
                    "defined_relationships": self._within(self.defined, wanted),
                    "suggested_relationships": self._within(self.suggested, wanted),
                },
            )
        if endpoint == "build":
            return httpx.Response(200, json={"status": "success", "sql": self.sql})
        return httpx.Response(404, json={"status": "error", "message": "not found"})

    @staticmethod
    def _within(rels: list[dict[str, Any]], tables: set[str]) -> list[dict[str, Any]]:
        return [r for r in rels if r["source_table"] in tables and r["target_table"] in tables]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client(backend: FakeBackend) -> BackendClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(backend.handler), base_url=BASE_URL)
    return BackendClient(BASE_URL, lambda: "secret-token", http_client=http)


@pytest.fixture
def generated() -> list[str]:
    return []


@pytest.fixture
def builder(client: BackendClient, generated: list[str]) -> QueryBuilder:
    return QueryBuilder("conn-1", client, on_query_generated=generated.append, today=lambda: TODAY)
