"""MCP tool registration for the query builder wizard.

Exposes `register_query_builder_tools`, which attaches tools to a FastMCP
instance while delegating all state changes to the `QueryBuilder` session
obtained from `WizardSessionManager`. Every mutating tool returns the
post-operation snapshot so the caller never has to guess the wizard state.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from querybuilder_mcp.models import (
    AggregationFunction,
    CatalogResult,
    SqlPreview,
    TableCatalogEntry,
    TableColumnsResult,
    WizardActionResult,
)
from querybuilder_mcp.services.session_manager import WizardSessionManager
from querybuilder_mcp.wizard import DatePreset, QueryBuilder, operators_for_type

_logger = get_logger(__name__)

ConnectionId = Annotated[str, Field(description="Backend connection id the wizard is bound to")]


async def _session(mgr: WizardSessionManager, ctx: Context, connection_id: str) -> QueryBuilder:
    try:
        return mgr.get(connection_id)
    except ValueError as exc:
        await ctx.error(str(exc))
        raise


async def _result(ctx: Context, session: QueryBuilder, *, applied: bool) -> WizardActionResult:
    snapshot = session.snapshot()
    if snapshot.error:
        await ctx.warning(snapshot.error)
    return WizardActionResult(applied=applied, snapshot=snapshot)


def register_query_builder_tools(  # noqa: C901 - one closure per tool
    mcp: FastMCP, manager: WizardSessionManager | None = None
) -> None:
    """Register the wizard tools.

    The intended flow is: open_query_builder, set_table_selection, wizard_next,
    get_table_columns / toggle_column / set_aggregation, wizard_next,
    toggle_relationship, wizard_next, add_filter, wizard_next,
    set_date_range, wizard_next (generates SQL), preview_generated_sql.
    """

    mgr = manager or WizardSessionManager.get_instance()

    @mcp.tool
    async def open_query_builder(  # pyright: ignore[reportUnusedFunction]
        connection_id: ConnectionId,
    ) -> CatalogResult:
        """Open (or resume) the wizard for a connection and list its tables and patterns."""
        session = await mgr.open(connection_id)
        return CatalogResult(
            tables=session.catalog, patterns=session.patterns, snapshot=session.snapshot()
        )

    @mcp.tool
    async def search_tables(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        term: Annotated[str, Field(description="Case-insensitive match on name or description")],
    ) -> list[TableCatalogEntry]:
        """Search the table catalog by name or description."""
        session = await _session(mgr, ctx, connection_id)
        return session.search_tables(term)

    @mcp.tool
    async def set_table_selection(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        select: Annotated[list[str] | None, Field(description="Tables to add")] = None,
        deselect: Annotated[
            list[str] | None,
            Field(description="Tables to remove; their columns, aggregations and filters go too"),
        ] = None,
    ) -> WizardActionResult:
        """Add or remove tables. Only allowed on the 'Select Tables' step."""
        session = await _session(mgr, ctx, connection_id)
        changed = False
        for table in deselect or []:
            changed = session.deselect_table(table) or changed
        for table in select or []:
            changed = session.select_table(table) or changed
        return await _result(ctx, session, applied=changed)

    @mcp.tool
    async def get_table_columns(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        table: Annotated[str, Field(description="A selected table")],
    ) -> TableColumnsResult:
        """Open a table's column tab and return its columns (fetched once per table)."""
        session = await _session(mgr, ctx, connection_id)
        columns = await session.activate_table(table)
        error = session.column_errors.get(table)
        if error:
            await ctx.warning(error)
        return TableColumnsResult(
            table=table,
            columns=columns,
            operators={c.name: list(operators_for_type(c.type)) for c in columns},
            error=error,
        )

    @mcp.tool
    async def toggle_column(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        table: Annotated[str, Field(description="A selected table")],
        column: Annotated[str, Field(description="Column to add or remove")],
    ) -> WizardActionResult:
        """Select or unselect a column; unselecting also drops its aggregation."""
        session = await _session(mgr, ctx, connection_id)
        before = session.selection.columns
        session.toggle_column(table, column)
        return await _result(ctx, session, applied=session.selection.columns != before)

    @mcp.tool
    async def set_aggregation(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        table: Annotated[str, Field(description="A selected table")],
        column: Annotated[str, Field(description="A selected column of that table")],
        function: Annotated[
            AggregationFunction | None, Field(description="SUM, AVG, MIN, MAX, COUNT or null")
        ] = None,
    ) -> WizardActionResult:
        """Set or clear the aggregation applied to a selected column."""
        session = await _session(mgr, ctx, connection_id)
        applied = session.set_aggregation(table, column, function)
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def toggle_relationship(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        source_table: str,
        source_column: str,
        target_table: str,
        target_column: str,
    ) -> WizardActionResult:
        """Include or exclude one candidate join, identified by its four names."""
        session = await _session(mgr, ctx, connection_id)
        applied = session.toggle_relationship(
            (source_table, source_column, target_table, target_column)
        )
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def add_filter(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        table: Annotated[str, Field(description="A selected table")],
        column: Annotated[str, Field(description="Column to filter on")],
        operator: Annotated[
            str, Field(description="One of the operators listed by get_table_columns")
        ] = "=",
        value: Annotated[
            str, Field(description="Comparison value; ignored for IS NULL / IS NOT NULL")
        ] = "",
    ) -> WizardActionResult:
        """Append a filter. Refused when fields are missing or the value is invalid."""
        session = await _session(mgr, ctx, connection_id)
        session.update_filter_draft(table=table, column=column, operator=operator, value=value)
        applied = session.add_filter()
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def remove_filter(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        index: Annotated[int, Field(ge=0, description="Position in the filter list")],
    ) -> WizardActionResult:
        """Remove a filter by position."""
        session = await _session(mgr, ctx, connection_id)
        applied = session.remove_filter(index)
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def set_date_range(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        start_date: Annotated[date | None, Field(description="Inclusive start, YYYY-MM-DD")] = None,
        end_date: Annotated[date | None, Field(description="Inclusive end (YYYY-MM-DD)")] = None,
        preset: Annotated[
            DatePreset | None,
            Field(description="Overrides explicit dates: last_7_days ... last_year, or clear"),
        ] = None,
    ) -> WizardActionResult:
        """Set the optional date range, either explicitly or from a preset."""
        session = await _session(mgr, ctx, connection_id)
        if preset is not None:
            applied = session.apply_date_preset(preset)
        else:
            applied = session.set_date_range(start_date, end_date)
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def apply_query_pattern(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
        pattern_name: Annotated[str, Field(description="Name from open_query_builder patterns")],
    ) -> WizardActionResult:
        """Load a preset's tables and aggregations and jump to relationship review."""
        session = await _session(mgr, ctx, connection_id)
        pattern = session.pattern_named(pattern_name)
        if pattern is None:
            msg = f"Unknown query pattern '{pattern_name}'"
            await ctx.error(msg)
            raise ValueError(msg)
        applied = await session.apply_pattern(pattern)
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def wizard_next(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
    ) -> WizardActionResult:
        """Advance one step. Leaving 'Set Date Range' generates the SQL."""
        session = await _session(mgr, ctx, connection_id)
        applied = await session.advance()
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def wizard_back(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
    ) -> WizardActionResult:
        """Go back one step without side effects."""
        session = await _session(mgr, ctx, connection_id)
        applied = session.retreat()
        return await _result(ctx, session, applied=applied)

    @mcp.tool
    async def wizard_reset(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
    ) -> WizardActionResult:
        """Start a new query: clear every selection and return to the first step."""
        session = await _session(mgr, ctx, connection_id)
        session.reset()
        return await _result(ctx, session, applied=True)

    @mcp.tool
    async def preview_generated_sql(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        connection_id: ConnectionId,
    ) -> SqlPreview | None:
        """Formatted generated SQL with notes on tables or aggregates it does not reflect."""
        session = await _session(mgr, ctx, connection_id)
        preview = session.preview()
        if preview is None:
            _logger.info("preview_generated_sql: nothing generated yet for %s", connection_id)
        return preview
