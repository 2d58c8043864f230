# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View helpers for QuarterDash.

These functions turn companies, indicator cards and records into pandas
DataFrames ready to be printed (CLI tables) or exported (CSV), and format
single values according to their unit.
"""

import math
from typing import Optional, Sequence

import pandas as pd

from .catalog import SECTION_LABELS
from .dashboard import IndicatorCard

CARD_COLUMNS = [
    "section",
    "key",
    "title",
    "unit",
    "value",
    "previous_quarter",
    "same_quarter_last_year",
    "qoq_pct",
    "yoy_pct",
]


def _round_or_nan(value: Optional[float], decimals: int) -> float:
    if value is None:
        return float("nan")
    return round(float(value), decimals)


def format_value(
    value: Optional[float],
    unit: str,
    *,
    decimals: int = 2,
    currency: str = "BRL",
) -> str:
    """
    Format a value for display according to its unit.

    - currency:   '145,000,000.00 BRL'
    - percentage: '17.24%'
    - ratio:      '2.17x'

    All units are rendered with `decimals` decimal places.

    Missing values are rendered as '-'.
    """
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "-"
    if unit == "percentage":
        return f"{value:.{decimals}f}%"
    if unit == "ratio":
        return f"{value:.{decimals}f}x"
    return f"{value:,.{decimals}f} {currency}"


def format_change(pct: Optional[float]) -> str:
    """Format a relative variation as '+12.3%' (or '-' when missing)."""
    if pct is None:
        return "-"
    return f"{pct:+.1f}%"


def cards_to_dataframe(cards: Sequence[IndicatorCard], decimals: int) -> pd.DataFrame:
    """
    Convert indicator cards into a DataFrame (one row per card).

    Columns: section, key, title, unit, value, previous_quarter,
    same_quarter_last_year, qoq_pct, yoy_pct. Missing values are NaN.
    Variations are rounded to one decimal.
    """
    if not cards:
        return pd.DataFrame(columns=CARD_COLUMNS)

    rows: list[dict[str, object]] = []
    for card in cards:
        rows.append(
            {
                "section": SECTION_LABELS.get(card.section, ""),
                "key": card.key,
                "title": card.title,
                "unit": card.unit,
                "value": _round_or_nan(card.value, decimals),
                "previous_quarter": _round_or_nan(
                    card.comparison.previous_quarter_value, decimals
                ),
                "same_quarter_last_year": _round_or_nan(
                    card.comparison.same_quarter_last_year_value, decimals
                ),
                "qoq_pct": _round_or_nan(card.qoq_pct, 1),
                "yoy_pct": _round_or_nan(card.yoy_pct, 1),
            }
        )

    return pd.DataFrame(rows, columns=CARD_COLUMNS)


def cards_to_display(
    cards: Sequence[IndicatorCard],
    *,
    decimals: int = 2,
    currency: str = "BRL",
) -> pd.DataFrame:
    """
    Human-readable table of cards: formatted values and variations.

    Columns: title, value, previous_quarter, same_quarter_last_year, qoq, yoy.
    """
    rows = [
        {
            "title": card.title,
            "value": format_value(card.value, card.unit, decimals=decimals, currency=currency),
            "previous_quarter": format_value(
                card.comparison.previous_quarter_value,
                card.unit,
                decimals=decimals,
                currency=currency,
            ),
            "same_quarter_last_year": format_value(
                card.comparison.same_quarter_last_year_value,
                card.unit,
                decimals=decimals,
                currency=currency,
            ),
            "qoq": format_change(card.qoq_pct),
            "yoy": format_change(card.yoy_pct),
        }
        for card in cards
    ]
    return pd.DataFrame(
        rows,
        columns=["title", "value", "previous_quarter", "same_quarter_last_year", "qoq", "yoy"],
    )


def companies_to_dataframe(companies: Sequence) -> pd.DataFrame:
    """Tabular view of companies: id, nome, ticker, link_ri."""
    columns = ["id", "nome", "ticker", "link_ri"]
    rows = [{name: getattr(c, name) for name in columns} for c in companies]
    return pd.DataFrame(rows, columns=columns)
