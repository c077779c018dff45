"""Date range holder with relative presets."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from typing import Literal

from querybuilder_mcp.models import DateRange

DatePreset = Literal["last_7_days", "last_30_days", "last_90_days", "last_year", "clear"]

PRESET_DAYS: dict[DatePreset, int] = {
    "last_7_days": 7,
    "last_30_days": 30,
    "last_90_days": 90,
    "last_year": 365,
}


def utc_today() -> date:
    return datetime.now(UTC).date()


class DateRangeState:
    """Optional start/end bounds. Start may exceed end; the backend decides."""

    def __init__(self, today: Callable[[], date] = utc_today) -> None:
        self._today = today
        self._range = DateRange()

    @property
    def value(self) -> DateRange:
        return self._range.model_copy()

    def set_start(self, start: date | None) -> None:
        self._range = self._range.model_copy(update={"start_date": start})

    def set_end(self, end: date | None) -> None:
        self._range = self._range.model_copy(update={"end_date": end})

    def set_range(self, start: date | None, end: date | None) -> None:
        self._range = DateRange(start_date=start, end_date=end)

    def apply_preset(self, preset: DatePreset) -> DateRange:
        """Overwrite both bounds at once from a named preset."""
        if preset == "clear":
            self._range = DateRange()
        else:
            today = self._today()
            self._range = DateRange(
                start_date=today - timedelta(days=PRESET_DAYS[preset]), end_date=today
            )
        return self.value

    def clear(self) -> None:
        self._range = DateRange()
