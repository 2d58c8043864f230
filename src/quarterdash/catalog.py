# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Indicator catalog for QuarterDash.

The catalog is the static table describing every quarterly indicator that
can be stored for a company. For each indicator field it provides:

- a human-readable title (used by cards, charts and tables),
- a unit hint: 'currency', 'percentage' or 'ratio',
- the dashboard section the field belongs to.

Sections
--------
Fields are grouped into six topical sections, in display order:

    revenue_operations    Revenue / Operations
    cash_flow             Cash Flow
    working_capital_debt  Working Capital / Debt
    liquidity             Liquidity
    profitability         Profitability
    returns               Returns

Lookups never fail: an unknown field keeps its own name as title and is
treated as a currency amount, so that new columns can be displayed before
they are catalogued.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Optional

import pandas as pd

Unit = Literal["currency", "percentage", "ratio"]

DEFAULT_UNIT: Unit = "currency"


@dataclass(frozen=True)
class IndicatorMeta:
    """
    Metadata associated with an indicator field.

    Attributes
    ----------
    key :
        Column name of the indicator (e.g. 'ebitda').
    title :
        Human-readable label for display.
    unit :
        Unit hint ('currency', 'percentage' or 'ratio').
    section :
        Tag of the dashboard section the field belongs to.
    """

    key: str
    title: str
    unit: Unit
    section: str


SECTIONS: tuple[tuple[str, str], ...] = (
    ("revenue_operations", "Revenue / Operations"),
    ("cash_flow", "Cash Flow"),
    ("working_capital_debt", "Working Capital / Debt"),
    ("liquidity", "Liquidity"),
    ("profitability", "Profitability"),
    ("returns", "Returns"),
)

SECTION_LABELS: MappingProxyType = MappingProxyType(dict(SECTIONS))

# (key, title, unit) per section, in display order.
_CATALOG_DEFINITION: dict[str, tuple[tuple[str, str, Unit], ...]] = {
    "revenue_operations": (
        ("receitas_bens_servicos", "Receitas de Bens e Serviços", "currency"),
        ("custo_receita_operacional", "Custo da Receita Operacional", "currency"),
        ("despesas_operacionais_total", "Despesas Operacionais Totais", "currency"),
        (
            "lucro_operacional_antes_receita_despesa_nao_recorrente",
            "Lucro Operacional antes de Receitas/Despesas Não Recorrentes",
            "currency",
        ),
        ("lucro_liquido_apos_impostos", "Lucro Líquido após Impostos", "currency"),
    ),
    "cash_flow": (
        ("caixa_equivalentes_caixa", "Caixa e Equivalentes de Caixa", "currency"),
        (
            "fluxo_caixa_liquido_atividades_operacionais",
            "Fluxo de Caixa Líquido das Atividades Operacionais",
            "currency",
        ),
        ("variacao_liquida_caixa_total", "Variação Líquida Total de Caixa", "currency"),
    ),
    "working_capital_debt": (
        ("capital_giro", "Capital de Giro", "currency"),
        ("endividamento_total", "Endividamento Total", "currency"),
        (
            "percentual_divida_total_ativo_total",
            "Dívida Total / Ativo Total",
            "currency",
        ),
    ),
    "liquidity": (
        ("liquidez_geral", "Liquidez Geral", "ratio"),
        ("liquidez_corrente", "Liquidez Corrente", "ratio"),
    ),
    "profitability": (
        ("ebit", "EBIT", "currency"),
        ("ebitda", "EBITDA", "currency"),
        ("margem_ebitda_percent", "Margem EBITDA %", "percentage"),
        ("margem_lucro_bruto_percent", "Margem de Lucro Bruto %", "percentage"),
        ("margem_operacional_percent", "Margem Operacional %", "percentage"),
        ("margem_liquida_percent", "Margem Líquida %", "percentage"),
    ),
    "returns": (
        ("roic", "ROIC", "percentage"),
        ("roe", "ROE", "percentage"),
        ("roa", "ROA", "percentage"),
        ("dividend_yield", "Dividend Yield", "percentage"),
    ),
}


def _build_catalog() -> MappingProxyType:
    entries: dict[str, IndicatorMeta] = {}
    for section, _label in SECTIONS:
        for key, title, unit in _CATALOG_DEFINITION[section]:
            entries[key] = IndicatorMeta(key=key, title=title, unit=unit, section=section)
    return MappingProxyType(entries)


INDICATOR_CATALOG: MappingProxyType = _build_catalog()

INDICATOR_FIELDS: tuple[str, ...] = tuple(INDICATOR_CATALOG)

# Top cards of the dashboard, in display order.
HEADLINE_FIELDS: tuple[str, ...] = (
    "receitas_bens_servicos",
    "lucro_liquido_apos_impostos",
    "ebitda",
    "margem_ebitda_percent",
    "roe",
    "liquidez_corrente",
)


def title_of(field: str) -> str:
    """Display title of `field`, or the field name itself when unknown."""
    meta = INDICATOR_CATALOG.get(field)
    return meta.title if meta is not None else field


def unit_of(field: str) -> Unit:
    """Unit hint of `field`; unknown fields are treated as currency."""
    meta = INDICATOR_CATALOG.get(field)
    return meta.unit if meta is not None else DEFAULT_UNIT


def section_of(field: str) -> Optional[str]:
    """Section tag of `field`, or None when the field is not catalogued."""
    meta = INDICATOR_CATALOG.get(field)
    return meta.section if meta is not None else None


def is_indicator(field: str) -> bool:
    return field in INDICATOR_CATALOG


def fields_in_section(section: str) -> tuple[str, ...]:
    """
    Return the fields of a section, in display order.

    Raises
    ------
    ValueError
        If `section` is not one of the six known section tags.
    """
    if section not in SECTION_LABELS:
        raise ValueError(f"Unknown section: {section!r}")
    return tuple(key for key, meta in INDICATOR_CATALOG.items() if meta.section == section)


def catalog_to_dataframe() -> pd.DataFrame:
    """Render the catalog as a DataFrame (one row per indicator field)."""
    rows = [
        {
            "key": meta.key,
            "title": meta.title,
            "unit": meta.unit,
            "section": meta.section,
            "section_label": SECTION_LABELS[meta.section],
        }
        for meta in INDICATOR_CATALOG.values()
    ]
    return pd.DataFrame(rows, columns=["key", "title", "unit", "section", "section_label"])
