import sqlite3
from types import SimpleNamespace

import pytest

import quarterdash.indicators_service as svc
from quarterdash.db import DatabaseConfig
from quarterdash.indicators_service import (
    StoreError,
    create_company,
    create_record,
    delete_record,
    edit_company,
    edit_record,
    find_company,
    import_records_csv,
    init_store,
    list_companies,
    load_company,
    load_company_records,
    remove_company,
)
from quarterdash.quarters import InvalidQuarterKey


def make_app_config(tmp_path):
    """
    Build a minimal app config for the services.

    The services only read `app_config.database`, so a SimpleNamespace is
    enough instead of the full AppConfig.
    """
    return SimpleNamespace(
        database=DatabaseConfig(engine="sqlite", path=tmp_path / "services.sqlite"),
    )


def test_create_company_normalizes_ticker(tmp_path):
    config = make_app_config(tmp_path)

    company = create_company(config, "  Petrobras ", " petr4 ", "")

    assert company.nome == "Petrobras"
    assert company.ticker == "PETR4"
    assert company.link_ri is None
    assert [c.id for c in list_companies(config)] == [company.id]


def test_create_company_requires_name_and_ticker(tmp_path):
    config = make_app_config(tmp_path)
    with pytest.raises(ValueError):
        create_company(config, "", "PETR4")


def test_duplicate_ticker_is_a_store_error(tmp_path):
    config = make_app_config(tmp_path)
    create_company(config, "Petrobras", "PETR4")

    with pytest.raises(StoreError):
        create_company(config, "Petrobras bis", "petr4")


def test_find_company(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Vale", "VALE3")

    assert find_company(config, company_id=company.id) == company
    assert find_company(config, ticker="vale3") == company

    with pytest.raises(LookupError):
        find_company(config, ticker="XXXX3")
    with pytest.raises(ValueError):
        find_company(config)
    with pytest.raises(ValueError):
        find_company(config, company_id=company.id, ticker="VALE3")


def test_edit_and_remove_company(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Vale", "VALE3")

    edited = edit_company(config, company.id, nome="Vale S.A.")
    assert edited.nome == "Vale S.A."
    assert edited.ticker == "VALE3"

    remove_company(config, company.id)
    with pytest.raises(LookupError):
        remove_company(config, company.id)


def test_create_record_returns_refetched_list(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Petrobras", "PETR4")

    create_record(config, company.id, "2024-T1", {"ebitda": 22.0})
    records = create_record(config, company.id, "2024-T2", {"ebitda": 25.0})

    assert [r.quarter for r in records] == ["2024-T2", "2024-T1"]
    assert records == load_company_records(config, company.id)


def test_create_record_errors(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Petrobras", "PETR4")
    create_record(config, company.id, "2024-T1", {"ebitda": 1.0})

    with pytest.raises(InvalidQuarterKey):
        create_record(config, company.id, "2024-Q1", {})
    with pytest.raises(LookupError):
        create_record(config, 999, "2024-T1", {})
    with pytest.raises(StoreError):
        create_record(config, company.id, "2024-T1", {"ebitda": 2.0})

    # Nothing was partially applied.
    records = load_company_records(config, company.id)
    assert len(records) == 1
    assert records[0].ebitda == 1.0


def test_edit_record_moves_quarter_and_clears_value(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Petrobras", "PETR4")
    records = create_record(config, company.id, "2024-T1", {"ebitda": 1.0, "roe": 3.0})

    records = edit_record(
        config,
        records[0].id,
        quarter="2023-T4",
        values={"roe": None},
    )

    assert len(records) == 1
    assert records[0].quarter == "2023-T4"
    assert records[0].roe is None
    assert records[0].ebitda == 1.0


def test_delete_record(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Petrobras", "PETR4")
    create_record(config, company.id, "2024-T1", {})
    records = create_record(config, company.id, "2024-T2", {})

    remaining = delete_record(config, records[0].id)

    assert [r.quarter for r in remaining] == ["2024-T1"]
    with pytest.raises(LookupError):
        delete_record(config, records[0].id)


def test_import_records_csv(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Petrobras", "PETR4")
    create_record(config, company.id, "2024-T1", {"ebitda": 1.0})

    csv_path = tmp_path / "records.csv"
    csv_path.write_text(
        "quarter,ebitda,roe\n2024-T1,10,\n2024-T2,20,5.5\n",
        encoding="utf-8",
    )

    with pytest.raises(StoreError):
        import_records_csv(config, company.id, csv_path)
    assert [r.ebitda for r in load_company_records(config, company.id)] == [1.0]

    records = import_records_csv(config, company.id, csv_path, replace=True)

    assert [r.quarter for r in records] == ["2024-T2", "2024-T1"]
    assert records[0].roe == 5.5
    assert records[1].ebitda == 10.0
    assert records[1].roe is None


def test_failed_import_leaves_no_partial_rows(tmp_path):
    """A row rejected late in the file must not leave earlier rows behind."""
    config = make_app_config(tmp_path)
    company = create_company(config, "Petrobras", "PETR4")
    create_record(config, company.id, "2024-T2", {"ebitda": 2.0})

    csv_path = tmp_path / "records.csv"
    csv_path.write_text("quarter,ebitda\n2024-T1,10\n2024-T2,20\n", encoding="utf-8")

    with pytest.raises(StoreError):
        import_records_csv(config, company.id, csv_path, replace=False)

    records = load_company_records(config, company.id)
    assert [r.quarter for r in records] == ["2024-T2"]
    assert records[0].ebitda == 2.0


def test_init_store_reports_unusable_path(tmp_path):
    """A database path that cannot be opened is reported as StoreError."""
    (tmp_path / "dbdir").mkdir()
    config = SimpleNamespace(database=DatabaseConfig(engine="sqlite", path=tmp_path / "dbdir"))

    with pytest.raises(StoreError, match="Could not open the database"):
        init_store(config)


def test_store_failures_are_wrapped(tmp_path, monkeypatch):
    """sqlite3 errors raised by the store are reported as StoreError."""
    config = make_app_config(tmp_path)

    def boom(cfg):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(svc, "_db_list_companies", boom)

    with pytest.raises(StoreError, match="database is locked"):
        list_companies(config)


def test_load_company(tmp_path):
    config = make_app_config(tmp_path)
    company = create_company(config, "Vale", "VALE3")

    assert load_company(config, company.id) == company
    assert load_company(config, 999) is None
