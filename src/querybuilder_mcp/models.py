"""Pydantic models for the query builder.

Field names follow the backend wire format (snake_case) so responses can be
validated directly and payloads dumped without aliases.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

AggregationFunction = Literal["SUM", "AVG", "MIN", "MAX", "COUNT"]
AGGREGATION_FUNCTIONS: tuple[AggregationFunction, ...] = ("SUM", "AVG", "MIN", "MAX", "COUNT")

# table -> ordered column names
SelectedColumns = dict[str, list[str]]
# table -> column -> function
Aggregations = dict[str, dict[str, AggregationFunction]]

# -----------------------
# Catalog models
# -----------------------


class TableCatalogEntry(BaseModel):
    """A table available on the connection."""

    name: str = Field(description="Table name")
    description: str | None = Field(default=None, description="Optional business description")
    preview_columns: list[str] = Field(
        default_factory=list, description="A few column names for display"
    )


class ColumnInfo(BaseModel):
    """Column metadata for a single table."""

    name: str = Field(description="Column name")
    type: str = Field(description="Raw backend type tag, e.g. 'varchar(50)' or 'int'")
    is_primary_key: bool = Field(default=False, description="True for primary key columns")
    description: str | None = Field(default=None, description="Optional column description")


class QueryPattern(BaseModel):
    """Named preset of tables and aggregations."""

    name: str
    description: str = ""
    default_tables: list[str] = Field(default_factory=list)
    aggregations: Aggregations = Field(default_factory=dict)
    formula: str | None = None

    @field_validator("aggregations", mode="before")
    @classmethod
    def _upper_functions(cls, value: object) -> object:
        if isinstance(value, dict):
            return {
                table: (
                    {col: str(fn).upper() for col, fn in cols.items()}
                    if isinstance(cols, dict)
                    else cols
                )
                for table, cols in value.items()
            }
        return value


# -----------------------
# Wizard state models
# -----------------------


class RelationshipKind(str, Enum):
    """Origin of a candidate join."""

    DEFINED = "defined"
    SUGGESTED = "suggested"


RelationshipKey = tuple[str, str, str, str]


class Relationship(BaseModel):
    """Candidate join between two tables.

    Identity is the (source_table, source_column, target_table, target_column)
    tuple; there is no surrogate id.
    """

    source_table: str
    source_column: str
    target_table: str
    target_column: str
    relationship_type: RelationshipKind
    selected: bool = False

    @property
    def key(self) -> RelationshipKey:
        return (self.source_table, self.source_column, self.target_table, self.target_column)


FilterOperator = Literal[
    "=", "!=", ">", ">=", "<", "<=", "LIKE", "NOT LIKE", "IS NULL", "IS NOT NULL"
]
NULLITY_OPERATORS: frozenset[str] = frozenset({"IS NULL", "IS NOT NULL"})


class Filter(BaseModel):
    """An accepted WHERE predicate."""

    table: str
    column: str
    operator: FilterOperator
    value: str | float | None = None


class FilterDraft(BaseModel):
    """The in-progress filter the user is editing."""

    table: str = ""
    column: str = ""
    operator: str = "="
    value: str = ""


class DateRange(BaseModel):
    """Optional date bounds; no ordering is enforced."""

    start_date: date | None = None
    end_date: date | None = None

    def to_payload(self) -> dict[str, str]:
        return {
            "start_date": self.start_date.isoformat() if self.start_date else "",
            "end_date": self.end_date.isoformat() if self.end_date else "",
        }


# -----------------------
# Backend payloads
# -----------------------


class QueryParams(BaseModel):
    """Body of ``query_params`` sent to the build endpoint."""

    tables: list[str]
    columns: SelectedColumns
    relationships: list[Relationship]
    filters: list[Filter]
    date_range: dict[str, str]
    aggregations: Aggregations

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json")


class RelationshipAnalysis(BaseModel):
    """Response of the relationships endpoint."""

    defined_relationships: list[Relationship] = Field(default_factory=list)
    suggested_relationships: list[Relationship] = Field(default_factory=list)


# -----------------------
# Snapshots and previews
# -----------------------


class SqlPreview(BaseModel):
    """Formatted view of generated SQL with light structural checks."""

    sql: str = Field(description="SQL as returned by the backend")
    formatted_sql: str | None = Field(
        default=None, description="Pretty-printed SQL when it parses"
    )
    is_valid: bool = Field(description="True when the SQL parses for the dialect")
    dialect: str = Field(description="Dialect used for parsing")
    tables: list[str] = Field(default_factory=list, description="Referenced table names")
    has_joins: bool = False
    has_aggregations: bool = False
    notes: list[str] = Field(default_factory=list, description="Mismatch and parse notes")


class WizardSnapshot(BaseModel):
    """Read-only, serializable view of a wizard session."""

    connection_id: str
    active_step: int
    step_name: str
    can_advance: bool
    can_retreat: bool
    loading: bool
    selected_tables: list[str]
    selected_columns: SelectedColumns
    aggregations: Aggregations
    active_table: str | None
    relationships: list[Relationship]
    filters: list[Filter]
    filter_draft: FilterDraft
    date_range: DateRange
    generated_sql: str | None
    error: str | None
    column_errors: dict[str, str]
    status: Literal["ok", "error"] = "ok"


# -----------------------
# MCP Response Models
# -----------------------


class WizardActionResult(BaseModel):
    """Outcome of one wizard operation."""

    applied: bool = Field(
        description="False when the operation was refused (gate, wrong step, or invalid input)"
    )
    snapshot: WizardSnapshot = Field(description="Wizard state after the operation")


class CatalogResult(BaseModel):
    """Tables and presets available on a connection."""

    tables: list[TableCatalogEntry] = Field(default_factory=list)
    patterns: list[QueryPattern] = Field(default_factory=list)
    snapshot: WizardSnapshot


class TableColumnsResult(BaseModel):
    """Column metadata for one table plus the operators each column supports."""

    table: str
    columns: list[ColumnInfo] = Field(default_factory=list)
    operators: dict[str, list[str]] = Field(
        default_factory=dict, description="column -> allowed filter operators"
    )
    error: str | None = Field(default=None, description="Table-scoped fetch error")
