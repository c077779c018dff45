"""Sqlglot-backed preview of generated SQL.

The backend owns SQL generation; this layer only formats what comes back and
cross-checks it against the wizard selection. All methods are side-effect-free.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import lru_cache
import logging
from typing import Literal

import sqlglot
from sqlglot import expressions as sgl_exp

from querybuilder_mcp.models import SqlPreview

# Keep a pragmatic set of supported dialects commonly used by the backend.
Dialect = Literal[
    "sql",
    "postgres",
    "mysql",
    "sqlite",
    "tsql",
    "oracle",
    "snowflake",
    "bigquery",
]

_DIALECT_ALIASES: dict[str, Dialect] = {
    "sql": "sql",
    "postgresql": "postgres",
    "postgres": "postgres",
    "mysql": "mysql",
    "sqlite": "sqlite",
    "mssql": "tsql",
    "sqlserver": "tsql",
    "tsql": "tsql",
    "oracle": "oracle",
    "snowflake": "snowflake",
    "bigquery": "bigquery",
}

_AGGREGATE_FUNCS: tuple[type[sgl_exp.Expression], ...] = (
    sgl_exp.Sum,
    sgl_exp.Avg,
    sgl_exp.Min,
    sgl_exp.Max,
    sgl_exp.Count,
)


def normalize_dialect(name: str) -> Dialect:
    """Map a configured dialect name to a sqlglot dialect literal.

    Falls back to generic "sql" when unknown.
    """
    return _DIALECT_ALIASES.get(name.strip().lower(), "sql")


def _read_dialect(dialect: Dialect) -> str | None:
    # "sql" is the generic dialect; sqlglot spells it as None
    return None if dialect == "sql" else dialect


@lru_cache(maxsize=128)
def _cached_parse(sql: str, dialect: Dialect) -> sqlglot.Expression | None:
    """Small cache so re-rendering the preview step does not re-parse."""
    return sqlglot.parse_one(sql, read=_read_dialect(dialect))


class SqlPreviewService:
    """Format generated SQL and flag obvious mismatches with the selection."""

    def __init__(self, dialect: Dialect = "sql", logger: logging.Logger | None = None) -> None:
        self.dialect = dialect
        self._logger = logger or logging.getLogger(__name__)

    def preview(
        self,
        sql: str,
        *,
        selected_tables: Iterable[str] = (),
        aggregations: Mapping[str, Mapping[str, str]] | None = None,
    ) -> SqlPreview:
        """Parse ``sql`` and return a formatted, annotated preview.

        Parse failures never raise; they produce ``is_valid=False`` with the
        parser message in ``notes``.
        """
        try:
            parsed = _cached_parse(sql, self.dialect)
        except Exception as e:  # noqa: BLE001 - returning typed error
            self._logger.warning("Preview parse failed: %s", e)
            return SqlPreview(
                sql=sql, is_valid=False, dialect=self.dialect, notes=[f"SQL parsing error: {e}"]
            )
        if parsed is None:
            return SqlPreview(
                sql=sql, is_valid=False, dialect=self.dialect, notes=["Failed to parse SQL query"]
            )

        tables = [t.name for t in parsed.find_all(sgl_exp.Table) if t.name]
        has_aggs = next(parsed.find_all(*_AGGREGATE_FUNCS), None) is not None
        has_aggs = has_aggs or any(
            bool(sel.args.get("group")) for sel in parsed.find_all(sgl_exp.Select)
        )

        notes: list[str] = []
        referenced = {t.lower() for t in tables}
        for table in selected_tables:
            if table.lower() not in referenced:
                notes.append(f"Selected table '{table}' is not referenced in the generated SQL")
        if aggregations and not has_aggs:
            notes.append("Aggregations were requested but the SQL contains no aggregate")

        return SqlPreview(
            sql=sql,
            formatted_sql=parsed.sql(dialect=_read_dialect(self.dialect), pretty=True),
            is_valid=True,
            dialect=self.dialect,
            tables=list(dict.fromkeys(tables)),
            has_joins=bool(list(parsed.find_all(sgl_exp.Join))),
            has_aggregations=has_aggs,
            notes=notes,
        )
