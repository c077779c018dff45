from __future__ import annotations

import pytest

from querybuilder_mcp.models import ColumnInfo, FilterDraft
from querybuilder_mcp.wizard.filters import (
    OPERATORS,
    FilterState,
    TypeClass,
    classify,
    operators_for_type,
)


@pytest.mark.parametrize(
    "type_tag,expected",
    [
        ("varchar(255)", TypeClass.TEXT),
        ("NVARCHAR(MAX)", TypeClass.TEXT),
        ("char(2)", TypeClass.TEXT),
        ("text", TypeClass.TEXT),
        ("character varying", TypeClass.TEXT),
        ("int", TypeClass.NUMERIC),
        ("BIGINT", TypeClass.NUMERIC),
        ("float", TypeClass.NUMERIC),
        ("decimal(10,2)", TypeClass.NUMERIC),
        ("numeric", TypeClass.NUMERIC),
        ("date", TypeClass.DATE),
        ("datetime", TypeClass.DATE),
        ("timestamp with time zone", TypeClass.DATE),
        ("time", TypeClass.DATE),
        ("bit", TypeClass.OTHER),
        ("boolean", TypeClass.OTHER),
        ("uuid", TypeClass.OTHER),
    ],
)
def test_classify(type_tag: str, expected: TypeClass) -> None:
    assert classify(type_tag) is expected


def test_operator_sets() -> None:
    assert operators_for_type("varchar") == (
        "=",
        "!=",
        "LIKE",
        "NOT LIKE",
        "IS NULL",
        "IS NOT NULL",
    )
    assert operators_for_type("int") == OPERATORS[TypeClass.DATE]
    assert ">=" in operators_for_type("date")
    assert operators_for_type("bool") == ("=", "!=", "IS NULL", "IS NOT NULL")
    for ops in OPERATORS.values():
        assert {"IS NULL", "IS NOT NULL"} <= set(ops)


@pytest.fixture
def state() -> FilterState:
    lookup = {
        "Orders": [
            ColumnInfo(name="OrderID", type="int", is_primary_key=True),
            ColumnInfo(name="Status", type="varchar(20)"),
            ColumnInfo(name="Amount", type="decimal(10,2)"),
            ColumnInfo(name="Ratio", type="numeric"),
            ColumnInfo(name="Flag", type="bit"),
        ],
        "Clients": [ColumnInfo(name="Name", type="nvarchar(100)")],
    }
    return FilterState(lookup)


def test_nullity_filter_accepts_empty_value(state: FilterState) -> None:
    assert state.add(FilterDraft(table="Orders", column="Status", operator="IS NULL")) is True
    assert state.filters[0].value is None


def test_equals_filter_rejects_empty_value(state: FilterState) -> None:
    draft = FilterDraft(table="Orders", column="Status", operator="=", value="  ")
    assert state.add(draft) is False
    assert state.filters == []


@pytest.mark.parametrize(
    "draft",
    [
        FilterDraft(table="", column="Status", operator="=", value="x"),
        FilterDraft(table="Orders", column="", operator="=", value="x"),
        FilterDraft(table="Orders", column="Status", operator="", value="x"),
        FilterDraft(table="Orders", column="Status", operator="BETWEEN", value="x"),
    ],
)
def test_incomplete_drafts_are_rejected(state: FilterState, draft: FilterDraft) -> None:
    assert state.add(draft) is False
    assert state.filters == []


def test_integer_column_value_is_stored_as_number(state: FilterState) -> None:
    draft = FilterDraft(table="Orders", column="OrderID", operator=">", value="42")
    assert state.add(draft) is True
    value = state.filters[0].value
    assert isinstance(value, float)
    assert value == 42.0


def test_numeric_family_columns_are_coerced(state: FilterState) -> None:
    state.add(FilterDraft(table="Orders", column="Amount", operator="<=", value="19.5"))
    state.add(FilterDraft(table="Orders", column="Ratio", operator="=", value="0.25"))
    assert [f.value for f in state.filters] == [19.5, 0.25]


@pytest.mark.parametrize("raw", ["abc", "12abc", "nan", "inf"])
def test_non_numeric_text_for_numeric_column_is_rejected(state: FilterState, raw: str) -> None:
    draft = FilterDraft(table="Orders", column="OrderID", operator="=", value=raw)
    assert state.add(draft) is False
    assert state.filters == []


def test_text_column_value_stays_string(state: FilterState) -> None:
    state.add(FilterDraft(table="Orders", column="Status", operator="LIKE", value="%open%"))
    assert state.filters[0].value == "%open%"


def test_operator_must_fit_column_type(state: FilterState) -> None:
    assert state.add(FilterDraft(table="Orders", column="Flag", operator=">", value="1")) is False
    assert state.add(FilterDraft(table="Orders", column="Status", operator=">", value="a")) is False


def test_column_without_metadata_is_rejected(state: FilterState) -> None:
    unknown_column = FilterDraft(table="Clients", column="Region", operator="=", value="10")
    unloaded_table = FilterDraft(table="Invoices", column="Total", operator=">", value="5")
    assert state.add(unknown_column) is False
    assert state.add(unloaded_table) is False
    assert state.filters == []


def test_draft_resets_but_keeps_table(state: FilterState) -> None:
    state.update_draft(table="Orders", column="Amount", operator=">", value="100")
    assert state.add() is True
    assert state.draft == FilterDraft(table="Orders", column="", operator="=", value="")


def test_changing_draft_table_clears_column(state: FilterState) -> None:
    state.update_draft(table="Orders", column="Amount")
    state.update_draft(table="Clients")
    assert state.draft.column == ""
    state.update_draft(table="Clients", column="Name")
    assert state.draft.column == "Name"


def test_operators_for_draft_column(state: FilterState) -> None:
    assert "LIKE" in state.operators_for("Orders", "Status")
    assert state.operators_for("Orders", "") == ()
    assert state.operators_for("Orders", "Missing") == ()


def test_remove_filter_by_position_allows_duplicates(state: FilterState) -> None:
    for _ in range(2):
        state.add(FilterDraft(table="Orders", column="Status", operator="=", value="open"))
    state.add(FilterDraft(table="Orders", column="Flag", operator="IS NOT NULL"))

    assert state.remove(0) is True
    assert [f.column for f in state.filters] == ["Status", "Flag"]
    assert state.remove(5) is False
    assert state.remove(-1) is False


def test_drop_table_forgets_its_filters(state: FilterState) -> None:
    state.add(FilterDraft(table="Orders", column="Status", operator="=", value="open"))
    state.add(FilterDraft(table="Clients", column="Name", operator="=", value="Acme"))
    state.drop_table("Orders")
    assert [f.table for f in state.filters] == ["Clients"]
