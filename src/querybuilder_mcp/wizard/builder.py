"""Query builder wizard: step sequencing, side effects, and pattern application.

`QueryBuilder` owns one `WizardStep` index and the independent state holders
(selection, relationships, filters, date range). Network work happens only in
explicit commands issued by transitions:

- leaving SELECT_COLUMNS analyzes relationships
- leaving SET_DATE_RANGE generates SQL
- entering SELECT_COLUMNS opens the first selected table's column tab
- entering ADD_FILTERS loads column metadata for every selected table

Every completion is checked against a `RequestFence` so responses that
arrive after a reset, a deselect, or a newer request of the same kind are
dropped instead of overwriting newer state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date

from fastmcp.utilities.logging import get_logger

from querybuilder_mcp.client import BackendClient
from querybuilder_mcp.exceptions import BackendError
from querybuilder_mcp.models import (
    AggregationFunction,
    ColumnInfo,
    FilterDraft,
    QueryParams,
    QueryPattern,
    RelationshipKey,
    SqlPreview,
    TableCatalogEntry,
    WizardSnapshot,
)
from querybuilder_mcp.preview import SqlPreviewService
from querybuilder_mcp.wizard.assembler import assemble_query_params
from querybuilder_mcp.wizard.date_range import DatePreset, DateRangeState, utc_today
from querybuilder_mcp.wizard.fencing import RequestFence, RequestKind, RequestTicket
from querybuilder_mcp.wizard.filters import FilterState
from querybuilder_mcp.wizard.relationships import RelationshipState
from querybuilder_mcp.wizard.selection import SelectionState, search_tables
from querybuilder_mcp.wizard.steps import WizardStep

_logger = get_logger(__name__)

QueryGeneratedCallback = Callable[[str], None]


class QueryBuilder:
    """Stateful, single-connection query builder wizard."""

    def __init__(
        self,
        connection_id: str,
        client: BackendClient,
        *,
        on_query_generated: QueryGeneratedCallback | None = None,
        previewer: SqlPreviewService | None = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self.connection_id = connection_id
        self._client = client
        self._on_query_generated = on_query_generated
        self._previewer = previewer or SqlPreviewService()
        self._fence = RequestFence()
        self._pending = 0

        # Read-only catalog, fetched once per connection and kept across resets
        self.catalog: list[TableCatalogEntry] = []
        self.patterns: list[QueryPattern] = []

        self._step = WizardStep.SELECT_TABLES
        self._column_cache: dict[str, list[ColumnInfo]] = {}
        self._column_fetches: dict[str, asyncio.Task[list[ColumnInfo]]] = {}
        self.selection = SelectionState()
        self.relationships = RelationshipState()
        self.filters = FilterState(self._column_cache)
        self.date_range = DateRangeState(today)
        self.active_table: str | None = None
        self.column_errors: dict[str, str] = {}
        self.generated_sql: str | None = None
        self.error: str | None = None

    # ---- derived state --------------------------------------------------
    @property
    def step(self) -> WizardStep:
        return self._step

    @property
    def loading(self) -> bool:
        return self._pending > 0

    def can_advance(self) -> bool:
        """Gate for `advance()` on the current step."""
        if self._step is WizardStep.SELECT_TABLES:
            return bool(self.selection.tables)
        if self._step is WizardStep.SELECT_COLUMNS:
            return self.selection.has_columns()
        return not self._step.is_last

    def can_retreat(self) -> bool:
        return not self._step.is_first

    @contextmanager
    def _busy(self) -> Iterator[None]:
        self._pending += 1
        try:
            yield
        finally:
            self._pending -= 1

    def _editable(self, step: WizardStep, action: str) -> bool:
        if self._step is step:
            return True
        _logger.info(
            "Ignored %s: only editable on '%s' (current '%s')",
            action,
            step.label,
            self._step.label,
        )
        return False

    def _stale(self, ticket: RequestTicket) -> bool:
        if self._fence.is_current(ticket):
            return False
        _logger.debug("Discarding stale %s response (scope=%r)", ticket.kind.name, ticket.scope)
        return True

    # ---- catalog --------------------------------------------------------
    async def load_catalog(self) -> bool:
        """Fetch the table catalog and query patterns for the connection.

        Pattern failures are logged only; a table failure sets ``error``.
        """
        ticket = self._fence.issue(RequestKind.CATALOG)
        with self._busy():
            try:
                tables = await self._client.list_tables(self.connection_id)
            except BackendError as exc:
                if not self._stale(ticket):
                    self.error = f"Error fetching tables: {exc}"
                return False
            try:
                patterns = await self._client.list_patterns(self.connection_id)
            except BackendError as exc:
                _logger.warning("Error fetching query patterns: %s", exc)
                patterns = []
        if self._stale(ticket):
            return False
        self.catalog = tables
        self.patterns = patterns
        _logger.info(
            "Loaded catalog for %s: %d tables, %d patterns",
            self.connection_id,
            len(tables),
            len(patterns),
        )
        return True

    def search_tables(self, term: str) -> list[TableCatalogEntry]:
        return search_tables(self.catalog, term)

    def pattern_named(self, name: str) -> QueryPattern | None:
        for pattern in self.patterns:
            if pattern.name == name:
                return pattern
        return None

    # ---- tables ---------------------------------------------------------
    def select_table(self, table: str) -> bool:
        if not self._editable(WizardStep.SELECT_TABLES, "select_table"):
            return False
        return self.selection.select_table(table)

    def deselect_table(self, table: str) -> bool:
        if not self._editable(WizardStep.SELECT_TABLES, "deselect_table"):
            return False
        if not self.selection.deselect_table(table):
            return False
        self._forget_table(table)
        return True

    def _forget_table(self, table: str) -> None:
        self._column_cache.pop(table, None)
        self._column_fetches.pop(table, None)
        self._fence.invalidate(RequestKind.COLUMNS, table)
        self.column_errors.pop(table, None)
        self.relationships.prune(self.selection.tables)
        self.filters.drop_table(table)
        if self.active_table == table:
            self.active_table = None

    # ---- columns --------------------------------------------------------
    async def ensure_columns(self, table: str) -> list[ColumnInfo]:
        """Column metadata for ``table``, fetched at most once per table.

        Concurrent callers share one in-flight request. Failures are not
        cached, so asking again retries.
        """
        cached = self._column_cache.get(table)
        if cached is not None:
            return list(cached)
        task = self._column_fetches.get(table)
        if task is None or task.done():
            ticket = self._fence.issue(RequestKind.COLUMNS, table)
            task = asyncio.create_task(self._fetch_columns(table, ticket))
            self._column_fetches[table] = task
        return list(await asyncio.shield(task))

    async def _fetch_columns(self, table: str, ticket: RequestTicket) -> list[ColumnInfo]:
        me = asyncio.current_task()
        with self._busy():
            try:
                columns = await self._client.list_columns(self.connection_id, table)
            except BackendError as exc:
                if not self._stale(ticket):
                    self.column_errors[table] = f"Error fetching columns: {exc}"
                columns = None
        if self._column_fetches.get(table) is me:
            del self._column_fetches[table]
        if columns is None or self._stale(ticket):
            return []
        self._column_cache[table] = columns
        self.column_errors.pop(table, None)
        return columns

    async def activate_table(self, table: str) -> list[ColumnInfo]:
        """Make ``table`` the active column tab and load its columns."""
        if not self._editable(WizardStep.SELECT_COLUMNS, "activate_table"):
            return []
        if not self.selection.is_selected(table):
            return []
        self.active_table = table
        return await self.ensure_columns(table)

    def toggle_column(self, table: str, column: str) -> bool:
        """Toggle a column; returns True when it is now selected."""
        if not self._editable(WizardStep.SELECT_COLUMNS, "toggle_column"):
            return False
        return self.selection.toggle_column(table, column)

    def set_aggregation(
        self, table: str, column: str, function: AggregationFunction | None
    ) -> bool:
        if not self._editable(WizardStep.SELECT_COLUMNS, "set_aggregation"):
            return False
        return self.selection.set_aggregation(table, column, function)

    # ---- relationships --------------------------------------------------
    async def analyze_relationships(self) -> bool:
        """Replace the relationship list from the backend for the selected tables."""
        tables = self.selection.tables
        ticket = self._fence.issue(RequestKind.RELATIONSHIPS)
        self.error = None
        with self._busy():
            try:
                analysis = await self._client.analyze_relationships(self.connection_id, tables)
            except BackendError as exc:
                if not self._stale(ticket):
                    self.relationships.clear()
                    self.error = f"Error analyzing relationships: {exc}"
                return False
        if self._stale(ticket):
            return False
        self.relationships.populate(analysis)
        _logger.info(
            "Relationships for %s: %d defined, %d suggested",
            ",".join(tables),
            len(analysis.defined_relationships),
            len(analysis.suggested_relationships),
        )
        return True

    def toggle_relationship(self, key: RelationshipKey) -> bool:
        if not self._editable(WizardStep.DEFINE_RELATIONSHIPS, "toggle_relationship"):
            return False
        return self.relationships.toggle(key)

    # ---- filters --------------------------------------------------------
    async def load_filter_columns(self) -> None:
        """Load column metadata for every selected table (cached per table)."""
        tables = self.selection.tables
        if not tables:
            return
        await asyncio.gather(*(self.ensure_columns(t) for t in tables))
        if self.selection.tables:
            self.filters.default_table(self.selection.tables[0])

    def update_filter_draft(
        self,
        *,
        table: str | None = None,
        column: str | None = None,
        operator: str | None = None,
        value: str | None = None,
    ) -> FilterDraft:
        if not self._editable(WizardStep.ADD_FILTERS, "update_filter_draft"):
            return self.filters.draft
        return self.filters.update_draft(table=table, column=column, operator=operator, value=value)

    def add_filter(self, draft: FilterDraft | None = None) -> bool:
        if not self._editable(WizardStep.ADD_FILTERS, "add_filter"):
            return False
        candidate = draft or self.filters.draft
        if not self.selection.is_selected(candidate.table):
            return False
        return self.filters.add(candidate)

    def remove_filter(self, index: int) -> bool:
        if not self._editable(WizardStep.ADD_FILTERS, "remove_filter"):
            return False
        return self.filters.remove(index)

    # ---- date range -----------------------------------------------------
    def set_date_range(self, start: date | None, end: date | None) -> bool:
        if not self._editable(WizardStep.SET_DATE_RANGE, "set_date_range"):
            return False
        self.date_range.set_range(start, end)
        return True

    def apply_date_preset(self, preset: DatePreset) -> bool:
        if not self._editable(WizardStep.SET_DATE_RANGE, "apply_date_preset"):
            return False
        self.date_range.apply_preset(preset)
        return True

    # ---- assembly -------------------------------------------------------
    def query_params(self) -> QueryParams:
        return assemble_query_params(
            self.selection,
            self.relationships.items,
            self.filters.filters,
            self.date_range.value,
        )

    async def generate(self) -> str | None:
        """Send the current selection to the build endpoint.

        Each call re-sends the whole selection. On success the SQL is stored
        and handed to the result callback; on failure ``generated_sql`` stays
        unset and ``error`` holds the message.
        """
        params = self.query_params()
        ticket = self._fence.issue(RequestKind.BUILD)
        self.generated_sql = None
        self.error = None
        with self._busy():
            try:
                sql = await self._client.build_sql(self.connection_id, params)
            except BackendError as exc:
                if not self._stale(ticket):
                    self.error = f"Error generating query: {exc}"
                return None
        if self._stale(ticket):
            return None
        self.generated_sql = sql
        _logger.info("Generated SQL for %s (%d chars)", self.connection_id, len(sql))
        if self._on_query_generated is not None:
            self._on_query_generated(sql)
        return sql

    def preview(self) -> SqlPreview | None:
        if self.generated_sql is None:
            return None
        return self._previewer.preview(
            self.generated_sql,
            selected_tables=self.selection.tables,
            aggregations=self.selection.aggregations,
        )

    # ---- transitions ----------------------------------------------------
    async def advance(self) -> bool:
        """Run the current step's exit effect, then move forward.

        A no-op (returns False) when the gate does not hold. Effect failures
        are recorded in ``error`` and do not block the transition.
        """
        if not self.can_advance():
            return False
        step = self._step
        epoch = self._fence.epoch
        if step is WizardStep.SELECT_COLUMNS:
            await self.analyze_relationships()
        elif step is WizardStep.SET_DATE_RANGE:
            await self.generate()
        if self._fence.epoch != epoch or self._step is not step:
            # reset or another transition happened while the effect ran
            return False
        self._step = WizardStep(step + 1)
        _logger.info("Wizard %s: %s -> %s", self.connection_id, step.label, self._step.label)
        await self._enter(self._step)
        return True

    def retreat(self) -> bool:
        if not self.can_retreat():
            return False
        previous = self._step
        self._step = WizardStep(previous - 1)
        _logger.info("Wizard %s: %s <- %s", self.connection_id, self._step.label, previous.label)
        return True

    async def _enter(self, step: WizardStep) -> None:
        if step is WizardStep.SELECT_COLUMNS:
            tables = self.selection.tables
            if tables and self.active_table not in tables:
                await self.activate_table(tables[0])
        elif step is WizardStep.ADD_FILTERS:
            await self.load_filter_columns()

    async def apply_pattern(self, pattern: QueryPattern) -> bool:
        """Load a preset and jump straight to relationship review.

        Only available on the first step.
        """
        if not self._editable(WizardStep.SELECT_TABLES, "apply_pattern"):
            return False
        previous = self.selection.tables
        skipped = self.selection.load_pattern(pattern.default_tables, pattern.aggregations)
        if skipped:
            _logger.warning(
                "Pattern %r aggregates tables outside its default tables: %s",
                pattern.name,
                ", ".join(skipped),
            )
        for table in previous:
            if not self.selection.is_selected(table):
                self._forget_table(table)
        self._step = WizardStep.DEFINE_RELATIONSHIPS
        _logger.info("Wizard %s: applied pattern %r", self.connection_id, pattern.name)
        await self.analyze_relationships()
        return True

    def reset(self) -> None:
        """Return to the first step with every wizard field cleared."""
        self._fence.bump()
        self._step = WizardStep.SELECT_TABLES
        self.selection.clear()
        self.relationships.clear()
        self.filters.clear()
        self.date_range.clear()
        self._column_cache.clear()
        self._column_fetches.clear()
        self.column_errors.clear()
        self.active_table = None
        self.generated_sql = None
        self.error = None
        _logger.info("Wizard %s reset", self.connection_id)

    # ---- views ----------------------------------------------------------
    def snapshot(self) -> WizardSnapshot:
        return WizardSnapshot(
            connection_id=self.connection_id,
            active_step=int(self._step),
            step_name=self._step.label,
            can_advance=self.can_advance(),
            can_retreat=self.can_retreat(),
            loading=self.loading,
            selected_tables=self.selection.tables,
            selected_columns=self.selection.columns,
            aggregations=self.selection.aggregations,
            active_table=self.active_table,
            relationships=self.relationships.items,
            filters=self.filters.filters,
            filter_draft=self.filters.draft,
            date_range=self.date_range.value,
            generated_sql=self.generated_sql,
            error=self.error,
            column_errors=dict(self.column_errors),
            status="error" if self.error or self.column_errors else "ok",
        )
