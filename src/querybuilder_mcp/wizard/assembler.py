"""Query assembly: package wizard state into the build payload."""

from __future__ import annotations

from querybuilder_mcp.models import DateRange, Filter, QueryParams, Relationship
from querybuilder_mcp.wizard.selection import SelectionState


def assemble_query_params(
    selection: SelectionState,
    relationships: list[Relationship],
    filters: list[Filter],
    date_range: DateRange,
) -> QueryParams:
    """Build the ``query_params`` body; only selected relationships are sent."""
    return QueryParams(
        tables=selection.tables,
        columns=selection.columns,
        relationships=[r for r in relationships if r.selected],
        filters=filters,
        date_range=date_range.to_payload(),
        aggregations=selection.aggregations,
    )
