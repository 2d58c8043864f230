# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Dashboard model for one company.

This module assembles everything a dashboard needs from the company's
quarterly records:

1. The current record
   The most recent quarter (highest year, then highest quarter number) is
   the baseline of every card.

2. Indicator cards
   One card per indicator field: catalog title, unit and section, the value
   in the current record, and the values in the previous quarter and in the
   same quarter of the previous year (see comparison.py).

3. Trend series
   For each indicator, the (quarter, value) points in chronological order,
   skipping the quarters where the value was not reported. These series feed
   charts and CSV exports.

Nothing here formats values for display; views.py does that.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Optional, Sequence

import pandas as pd

from .catalog import (
    HEADLINE_FIELDS,
    INDICATOR_FIELDS,
    SECTIONS,
    section_of,
    title_of,
    unit_of,
)
from .comparison import (
    NO_COMPARISON,
    PeriodComparison,
    compare,
    compare_record,
    field_value,
    percent_change,
    sort_records_desc,
)
from .quarters import quarter_key

MatchMode = Literal["value", "quarter"]


@dataclass(frozen=True)
class IndicatorCard:
    """One indicator of the current record, with its reference values."""

    key: str
    title: str
    unit: str
    section: Optional[str]
    value: Optional[float]
    comparison: PeriodComparison

    @property
    def qoq_pct(self) -> Optional[float]:
        """Variation versus the previous quarter, in percent."""
        return percent_change(self.value, self.comparison.previous_quarter_value)

    @property
    def yoy_pct(self) -> Optional[float]:
        """Variation versus the same quarter of the previous year, in percent."""
        return percent_change(self.value, self.comparison.same_quarter_last_year_value)


@dataclass(frozen=True)
class DashboardView:
    """
    Everything displayed for one company.

    Attributes
    ----------
    company :
        The company object (as returned by the service layer), or None.
    current_quarter :
        Quarter key of the current record, or None when there is no record.
    headline :
        Cards for HEADLINE_FIELDS.
    sections :
        (section_tag, cards) pairs, in section display order.
    records_count :
        Number of records the dashboard was built from.
    """

    company: Any
    current_quarter: Optional[str]
    headline: list[IndicatorCard]
    sections: list[tuple[str, list[IndicatorCard]]]
    records_count: int

    @property
    def is_empty(self) -> bool:
        return self.current_quarter is None


def latest_record(records: Sequence[Any]) -> Optional[Any]:
    """Most recent record of `records`, or None when the list is empty."""
    if not records:
        return None
    return sort_records_desc(records)[0]


def _quarter_of(record: Any) -> str:
    if isinstance(record, Mapping):
        return quarter_key(int(record["year"]), int(record["quarter_number"]))
    return quarter_key(int(record.year), int(record.quarter_number))


def chart_series(records: Sequence[Any], field: str) -> pd.DataFrame:
    """
    Trend series of one indicator, oldest quarter first.

    Returns
    -------
    pandas.DataFrame
        Columns 'quarter' (key) and 'value' (float). Quarters where the
        indicator was not reported are skipped.
    """
    rows = []
    for record in reversed(sort_records_desc(records)):
        value = field_value(record, field)
        if value is None:
            continue
        rows.append({"quarter": _quarter_of(record), "value": float(value)})
    return pd.DataFrame(rows, columns=["quarter", "value"])


def trend_table(records: Sequence[Any], fields: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Wide trend table: one row per quarter (oldest first), one column per field.

    Missing values are NaN.
    """
    fields = list(fields) if fields is not None else list(INDICATOR_FIELDS)
    ordered = list(reversed(sort_records_desc(records)))
    rows = []
    for record in ordered:
        row: dict[str, object] = {"quarter": _quarter_of(record)}
        for name in fields:
            value = field_value(record, name)
            row[name] = float(value) if value is not None else float("nan")
        rows.append(row)
    return pd.DataFrame(rows, columns=["quarter", *fields])


def build_card(
    records: Sequence[Any],
    current: Optional[Any],
    field: str,
    *,
    match: MatchMode = "value",
) -> IndicatorCard:
    """
    Build the card of `field` for the `current` record.

    With match='value' the current record is located by its value of `field`
    (``compare``); with match='quarter' it is located by its quarter
    (``compare_record``).
    """
    if match not in ("value", "quarter"):
        raise ValueError(f"Invalid match mode: {match!r}. Expected 'value' or 'quarter'.")

    value = field_value(current, field) if current is not None else None

    if current is None:
        comparison = NO_COMPARISON
    elif match == "value":
        comparison = compare(records, field, value)
    else:
        comparison = compare_record(records, field, current)

    return IndicatorCard(
        key=field,
        title=title_of(field),
        unit=unit_of(field),
        section=section_of(field),
        value=value,
        comparison=comparison,
    )


def build_indicator_cards(
    records: Sequence[Any],
    fields: Optional[Sequence[str]] = None,
    *,
    match: MatchMode = "value",
) -> list[IndicatorCard]:
    """
    Build one card per field for the most recent record.

    `fields` defaults to every catalog indicator, in catalog order.
    """
    current = latest_record(records)
    selected = fields if fields is not None else INDICATOR_FIELDS
    return [build_card(records, current, name, match=match) for name in selected]


def build_dashboard(
    company: Any,
    records: Sequence[Any],
    *,
    match: MatchMode = "value",
) -> DashboardView:
    """Build the full dashboard of a company from its records."""
    current = latest_record(records)
    cards = {
        card.key: card for card in build_indicator_cards(records, match=match)
    }

    sections: list[tuple[str, list[IndicatorCard]]] = []
    for tag, _label in SECTIONS:
        section_cards = [card for card in cards.values() if card.section == tag]
        sections.append((tag, section_cards))

    return DashboardView(
        company=company,
        current_quarter=_quarter_of(current) if current is not None else None,
        headline=[cards[name] for name in HEADLINE_FIELDS],
        sections=sections,
        records_count=len(records),
    )
