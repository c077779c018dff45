"""Query builder wizard package.

Main Components:
- QueryBuilder: step sequencer that owns the wizard state and issues backend calls
- SelectionState: tables, columns and aggregations with cascading deletes
- RelationshipState: candidate joins with per-join inclusion toggles
- FilterState: type-aware filter list and draft
- DateRangeState: optional date bounds with presets
"""

from __future__ import annotations

from .assembler import assemble_query_params
from .builder import QueryBuilder, QueryGeneratedCallback
from .date_range import DatePreset, DateRangeState
from .filters import FilterState, TypeClass, classify, operators_for_type
from .relationships import RelationshipState
from .selection import SelectionState, search_tables
from .steps import WizardStep

__all__ = [
    "DatePreset",
    "DateRangeState",
    "FilterState",
    "QueryBuilder",
    "QueryGeneratedCallback",
    "RelationshipState",
    "SelectionState",
    "TypeClass",
    "WizardStep",
    "assemble_query_params",
    "classify",
    "operators_for_type",
    "search_tables",
]
