"""Wizard steps and their labels."""

from __future__ import annotations

from enum import IntEnum


class WizardStep(IntEnum):
    """Ordered steps of the query builder wizard."""

    SELECT_TABLES = 0
    SELECT_COLUMNS = 1
    DEFINE_RELATIONSHIPS = 2
    ADD_FILTERS = 3
    SET_DATE_RANGE = 4
    PREVIEW_QUERY = 5

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_first(self) -> bool:
        return self is WizardStep.SELECT_TABLES

    @property
    def is_last(self) -> bool:
        return self is WizardStep.PREVIEW_QUERY


_LABELS: dict[WizardStep, str] = {
    WizardStep.SELECT_TABLES: "Select Tables",
    WizardStep.SELECT_COLUMNS: "Select Columns",
    WizardStep.DEFINE_RELATIONSHIPS: "Define Relationships",
    WizardStep.ADD_FILTERS: "Add Filters",
    WizardStep.SET_DATE_RANGE: "Set Date Range",
    WizardStep.PREVIEW_QUERY: "Preview Query",
}
