"""Table, column and aggregation selection state.

Holds the three mappings that must stay consistent with each other:

- every key of ``columns`` is a selected table
- no table maps to an empty column list
- an aggregation exists only for a selected column, and no table maps to an
  empty aggregation dict

All mutations go through the methods below so the cascades cannot be skipped.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from querybuilder_mcp.models import (
    AGGREGATION_FUNCTIONS,
    AggregationFunction,
    Aggregations,
    SelectedColumns,
    TableCatalogEntry,
)


def search_tables(catalog: Iterable[TableCatalogEntry], term: str) -> list[TableCatalogEntry]:
    """Case-insensitive match of ``term`` against table name or description."""
    needle = term.strip().lower()
    if not needle:
        return list(catalog)
    return [
        t
        for t in catalog
        if needle in t.name.lower() or (t.description and needle in t.description.lower())
    ]


class SelectionState:
    """Selected tables plus per-table columns and aggregations."""

    def __init__(self) -> None:
        self._tables: list[str] = []
        self._columns: dict[str, list[str]] = {}
        self._aggregations: dict[str, dict[str, AggregationFunction]] = {}

    # ---- read access ----------------------------------------------------
    @property
    def tables(self) -> list[str]:
        return list(self._tables)

    @property
    def columns(self) -> SelectedColumns:
        return {table: list(cols) for table, cols in self._columns.items()}

    @property
    def aggregations(self) -> Aggregations:
        return {table: dict(aggs) for table, aggs in self._aggregations.items()}

    def is_selected(self, table: str) -> bool:
        return table in self._tables

    def has_columns(self) -> bool:
        return bool(self._columns)

    def columns_for(self, table: str) -> list[str]:
        return list(self._columns.get(table, ()))

    # ---- tables ---------------------------------------------------------
    def select_table(self, table: str) -> bool:
        if table in self._tables:
            return False
        self._tables.append(table)
        return True

    def deselect_table(self, table: str) -> bool:
        """Remove ``table`` and everything recorded for it."""
        if table not in self._tables:
            return False
        self._tables.remove(table)
        self._columns.pop(table, None)
        self._aggregations.pop(table, None)
        return True

    # ---- columns and aggregations ---------------------------------------
    def toggle_column(self, table: str, column: str) -> bool:
        """Add or remove ``column``; returns True when it is now selected.

        Toggling a column of an unselected table is ignored.
        """
        if table not in self._tables:
            return False
        current = self._columns.get(table, [])
        if column in current:
            remaining = [c for c in current if c != column]
            self._drop_aggregation(table, column)
            if remaining:
                self._columns[table] = remaining
            else:
                del self._columns[table]
            return False
        self._columns[table] = [*current, column]
        return True

    def set_aggregation(
        self, table: str, column: str, function: AggregationFunction | None
    ) -> bool:
        """Record or clear the aggregation for ``(table, column)``.

        Setting a function on a column that is not selected is refused and
        returns False. Clearing always succeeds.
        """
        if function is None:
            self._drop_aggregation(table, column)
            return True
        if function not in AGGREGATION_FUNCTIONS:
            msg = f"Unsupported aggregation function: {function!r}"
            raise ValueError(msg)
        if column not in self._columns.get(table, ()):
            return False
        self._aggregations.setdefault(table, {})[column] = function
        return True

    def _drop_aggregation(self, table: str, column: str) -> None:
        table_aggs = self._aggregations.get(table)
        if not table_aggs:
            return
        table_aggs.pop(column, None)
        if not table_aggs:
            del self._aggregations[table]

    def load_pattern(
        self, tables: Iterable[str], aggregations: Mapping[str, Mapping[str, AggregationFunction]]
    ) -> list[str]:
        """Replace the whole selection from a pattern preset.

        Columns become every column named in ``aggregations``. Aggregation
        entries for tables outside ``tables`` are skipped and their names
        returned so the caller can report them.
        """
        self._tables = list(dict.fromkeys(tables))
        self._columns = {}
        self._aggregations = {}
        skipped: list[str] = []
        for table, cols in aggregations.items():
            if table not in self._tables:
                skipped.append(table)
                continue
            if not cols:
                continue
            self._columns[table] = list(cols)
            self._aggregations[table] = dict(cols)
        return skipped

    def clear(self) -> None:
        self._tables = []
        self._columns = {}
        self._aggregations = {}
