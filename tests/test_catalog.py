import pytest

from quarterdash.catalog import (
    HEADLINE_FIELDS,
    INDICATOR_CATALOG,
    INDICATOR_FIELDS,
    SECTIONS,
    catalog_to_dataframe,
    fields_in_section,
    is_indicator,
    section_of,
    title_of,
    unit_of,
)


def test_catalog_has_every_indicator_once() -> None:
    assert len(INDICATOR_FIELDS) == 23
    assert len(set(INDICATOR_FIELDS)) == 23
    assert set(INDICATOR_FIELDS) == set(INDICATOR_CATALOG)


def test_titles_and_units_of_known_fields() -> None:
    assert title_of("ebitda") == "EBITDA"
    assert title_of("margem_ebitda_percent") == "Margem EBITDA %"
    assert unit_of("margem_ebitda_percent") == "percentage"
    assert unit_of("roe") == "percentage"
    assert unit_of("liquidez_corrente") == "ratio"
    assert unit_of("receitas_bens_servicos") == "currency"


def test_unit_counts() -> None:
    units = [unit_of(name) for name in INDICATOR_FIELDS]
    assert units.count("percentage") == 8
    assert units.count("ratio") == 2
    assert units.count("currency") == 13


def test_unknown_field_falls_back_without_error() -> None:
    assert title_of("not_a_field") == "not_a_field"
    assert unit_of("not_a_field") == "currency"
    assert section_of("not_a_field") is None
    assert is_indicator("not_a_field") is False


def test_sections_cover_catalog_in_order() -> None:
    collected = []
    for tag, _label in SECTIONS:
        collected.extend(fields_in_section(tag))
    assert tuple(collected) == INDICATOR_FIELDS
    assert fields_in_section("liquidity") == ("liquidez_geral", "liquidez_corrente")


def test_fields_in_unknown_section_raises() -> None:
    with pytest.raises(ValueError):
        fields_in_section("nope")


def test_headline_fields_are_catalogued() -> None:
    assert all(is_indicator(name) for name in HEADLINE_FIELDS)


def test_catalog_to_dataframe() -> None:
    df = catalog_to_dataframe()
    assert list(df.columns) == ["key", "title", "unit", "section", "section_label"]
    assert len(df) == 23
    row = df.loc[df["key"] == "roe"].iloc[0]
    assert row["section_label"] == "Returns"
