"""querybuilder-mcp package: a step-by-step visual SQL query builder.

Provides the query builder wizard state machine, an async client for the
query-builder backend, and Model Context Protocol (FastMCP) tools that drive
the wizard.
"""

from querybuilder_mcp.client import BackendClient
from querybuilder_mcp.exceptions import BackendError, ConfigurationError, QueryBuilderError
from querybuilder_mcp.models import (
    ColumnInfo,
    DateRange,
    Filter,
    QueryParams,
    QueryPattern,
    Relationship,
    RelationshipKind,
    TableCatalogEntry,
    WizardSnapshot,
)
from querybuilder_mcp.services import ConfigService, WizardSessionManager
from querybuilder_mcp.wizard import QueryBuilder, WizardStep

__all__ = [  # noqa: RUF022
    # Core models
    "ColumnInfo",
    "DateRange",
    "Filter",
    "QueryParams",
    "QueryPattern",
    "Relationship",
    "RelationshipKind",
    "TableCatalogEntry",
    "WizardSnapshot",
    # Wizard
    "QueryBuilder",
    "WizardStep",
    # Client and errors
    "BackendClient",
    "BackendError",
    "ConfigurationError",
    "QueryBuilderError",
    # Services
    "ConfigService",
    "WizardSessionManager",
]
