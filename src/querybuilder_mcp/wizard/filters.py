"""Filter builder: type classification, operator sets, and the filter list.

The backend reports raw type tags such as ``varchar(255)``, ``bigint`` or
``timestamp without time zone``. They are classified by case-insensitive
substring checks, in order: text, numeric, date/time, other.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
import math

from fastmcp.utilities.logging import get_logger

from querybuilder_mcp.models import NULLITY_OPERATORS, ColumnInfo, Filter, FilterDraft

_logger = get_logger(__name__)


class TypeClass(Enum):
    """Coarse column type family used to pick filter operators."""

    TEXT = "text"
    NUMERIC = "numeric"
    DATE = "date"
    OTHER = "other"


_TYPE_MARKERS: tuple[tuple[TypeClass, tuple[str, ...]], ...] = (
    (TypeClass.TEXT, ("varchar", "char", "text")),
    (TypeClass.NUMERIC, ("int", "float", "decimal", "numeric")),
    (TypeClass.DATE, ("date", "time")),
)

_COMPARATORS: tuple[str, ...] = ("=", "!=", ">", ">=", "<", "<=", "IS NULL", "IS NOT NULL")

OPERATORS: dict[TypeClass, tuple[str, ...]] = {
    TypeClass.TEXT: ("=", "!=", "LIKE", "NOT LIKE", "IS NULL", "IS NOT NULL"),
    TypeClass.NUMERIC: _COMPARATORS,
    TypeClass.DATE: _COMPARATORS,
    TypeClass.OTHER: ("=", "!=", "IS NULL", "IS NOT NULL"),
}

KNOWN_OPERATORS: frozenset[str] = frozenset(op for ops in OPERATORS.values() for op in ops)


def classify(type_tag: str) -> TypeClass:
    """Classify a raw backend type tag."""
    lowered = type_tag.lower()
    for type_class, markers in _TYPE_MARKERS:
        if any(m in lowered for m in markers):
            return type_class
    return TypeClass.OTHER


def operators_for_type(type_tag: str) -> tuple[str, ...]:
    return OPERATORS[classify(type_tag)]


def _default_draft(table: str = "") -> FilterDraft:
    return FilterDraft(table=table, column="", operator="=", value="")


class FilterState:
    """Ordered filter list plus the draft being edited.

    ``column_lookup`` maps table -> column metadata and is owned by the
    wizard; it is read at add time to pick operators and coerce values.
    """

    def __init__(self, column_lookup: Mapping[str, list[ColumnInfo]]) -> None:
        self._column_lookup = column_lookup
        self._filters: list[Filter] = []
        self._draft = _default_draft()

    @property
    def filters(self) -> list[Filter]:
        return [f.model_copy() for f in self._filters]

    @property
    def draft(self) -> FilterDraft:
        return self._draft.model_copy()

    def column_info(self, table: str, column: str) -> ColumnInfo | None:
        for info in self._column_lookup.get(table, ()):
            if info.name == column:
                return info
        return None

    def operators_for(self, table: str, column: str) -> tuple[str, ...]:
        """Operators offered for a column; empty when its type is unknown."""
        if not table or not column:
            return ()
        info = self.column_info(table, column)
        if info is None:
            return ()
        return operators_for_type(info.type)

    def update_draft(
        self,
        *,
        table: str | None = None,
        column: str | None = None,
        operator: str | None = None,
        value: str | None = None,
    ) -> FilterDraft:
        """Edit the draft; switching table clears the chosen column."""
        update: dict[str, str] = {}
        if table is not None and table != self._draft.table:
            update["table"] = table
            update["column"] = ""
        if column is not None:
            update["column"] = column
        if operator is not None:
            update["operator"] = operator
        if value is not None:
            update["value"] = value
        self._draft = self._draft.model_copy(update=update)
        return self.draft

    def default_table(self, table: str) -> None:
        """Point an empty draft at ``table``."""
        if not self._draft.table:
            self._draft = self._draft.model_copy(update={"table": table})

    def add(self, draft: FilterDraft | None = None) -> bool:
        """Validate and append ``draft`` (the current draft when omitted).

        Rejected drafts leave the list untouched and return False. Columns
        without loaded metadata are rejected. On success the draft resets but
        keeps its table.
        """
        d = draft or self._draft
        if not (d.table and d.column and d.operator):
            return False
        if d.operator not in KNOWN_OPERATORS:
            return False
        is_nullity = d.operator in NULLITY_OPERATORS
        if not is_nullity and not d.value.strip():
            return False

        info = self.column_info(d.table, d.column)
        if info is None:
            _logger.info("Rejected filter on %s.%s: column metadata not loaded", d.table, d.column)
            return False
        if d.operator not in operators_for_type(info.type):
            return False

        value: str | float | None
        if is_nullity:
            value = None
        elif classify(info.type) is TypeClass.NUMERIC:
            try:
                value = float(d.value)
            except ValueError:
                _logger.info("Rejected non-numeric value %r for %s.%s", d.value, d.table, d.column)
                return False
            if not math.isfinite(value):
                return False
        else:
            value = d.value

        self._filters.append(
            Filter.model_validate(
                {"table": d.table, "column": d.column, "operator": d.operator, "value": value}
            )
        )
        self._draft = _default_draft(d.table)
        return True

    def remove(self, index: int) -> bool:
        if not 0 <= index < len(self._filters):
            return False
        del self._filters[index]
        return True

    def drop_table(self, table: str) -> None:
        """Forget filters and draft state that reference ``table``."""
        self._filters = [f for f in self._filters if f.table != table]
        if self._draft.table == table:
            self._draft = _default_draft()

    def clear(self) -> None:
        self._filters = []
        self._draft = _default_draft()
