import sqlite3

import pandas as pd
import pytest

from quarterdash.catalog import INDICATOR_FIELDS
from quarterdash.db import (
    CompanyUpdate,
    DatabaseConfig,
    IndicatorRecordUpdate,
    NewCompany,
    NewIndicatorRecord,
    RecordImportStats,
    delete_company,
    delete_record,
    get_company_by_ticker,
    get_record_by_id,
    import_records,
    init_database,
    insert_company,
    insert_record,
    list_companies,
    load_indicator_records,
    records_to_dataframe,
    update_company,
    update_record,
)
from quarterdash.quarters import InvalidQuarterKey


def make_tmp_db_cfg(tmp_path) -> DatabaseConfig:
    """Helper to build a DatabaseConfig pointing to a temporary SQLite file."""
    db_path = tmp_path / "db" / "test_db.sqlite"
    return DatabaseConfig(engine="sqlite", path=db_path)


def _add_company(cfg, ticker="PETR4", nome="Petrobras"):
    return insert_company(cfg, NewCompany(nome=nome, ticker=ticker))


def _add_record(cfg, company_id, year, quarter_number, **values):
    return insert_record(
        cfg,
        NewIndicatorRecord(
            company_id=company_id,
            year=year,
            quarter_number=quarter_number,
            values=values,
        ),
    )


def test_init_database_creates_file_and_schema(tmp_path):
    """init_database should create the SQLite file (and its folder) and the schema."""
    cfg = make_tmp_db_cfg(tmp_path)

    assert not cfg.path.exists()
    init_database(cfg)
    init_database(cfg)
    assert cfg.path.exists()

    assert list_companies(cfg) == []


def test_unsupported_engine_is_rejected(tmp_path):
    cfg = DatabaseConfig(engine="postgres", path=tmp_path / "x.sqlite")
    with pytest.raises(ValueError):
        init_database(cfg)


def test_schema_migration_adds_missing_indicator_columns(tmp_path):
    """Databases created without some indicator columns get them added."""
    cfg = make_tmp_db_cfg(tmp_path)
    cfg.path.parent.mkdir(parents=True)

    conn = sqlite3.connect(cfg.path)
    conn.execute(
        """
        CREATE TABLE financial_indicators (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id INTEGER NOT NULL,
            year INTEGER NOT NULL,
            quarter_number INTEGER NOT NULL,
            quarter TEXT NOT NULL,
            ebitda REAL,
            created_at TEXT NOT NULL,
            updated_at TEXT
        );
        """
    )
    conn.commit()
    conn.close()

    init_database(cfg)

    conn = sqlite3.connect(cfg.path)
    columns = {row[1] for row in conn.execute("PRAGMA table_info(financial_indicators);")}
    conn.close()
    assert set(INDICATOR_FIELDS).issubset(columns)


def test_company_crud(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    vale = _add_company(cfg, "VALE3", "Vale")
    petr = _add_company(cfg, "PETR4", "Petrobras")

    assert vale.id is not None
    assert vale.created_at is not None
    assert [c.nome for c in list_companies(cfg)] == ["Petrobras", "Vale"]

    assert get_company_by_ticker(cfg, "petr4").id == petr.id
    assert get_company_by_ticker(cfg, "XXXX3") is None

    updated = update_company(cfg, petr.id, CompanyUpdate(link_ri="https://ri.example"))
    assert updated.link_ri == "https://ri.example"
    assert updated.nome == "Petrobras"
    assert updated.updated_at is not None

    assert delete_company(cfg, vale.id) is True
    assert delete_company(cfg, vale.id) is False


def test_company_ticker_is_unique(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    _add_company(cfg, "PETR4")

    with pytest.raises(sqlite3.IntegrityError):
        _add_company(cfg, "PETR4", "Other")


def test_update_company_errors(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)

    with pytest.raises(ValueError):
        update_company(cfg, company.id, CompanyUpdate())
    with pytest.raises(LookupError):
        update_company(cfg, 999, CompanyUpdate(nome="Ghost"))


def test_insert_and_load_records_most_recent_first(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)

    _add_record(cfg, company.id, 2023, 4, ebitda=10.0)
    _add_record(cfg, company.id, 2024, 2, ebitda=30.0, roe=12.5)
    _add_record(cfg, company.id, 2024, 1, ebitda=20.0)

    records = load_indicator_records(cfg, company.id)

    assert [r.quarter for r in records] == ["2024-T2", "2024-T1", "2023-T4"]
    assert records[0].ebitda == 30.0
    assert records[0].roe == 12.5
    # Absent values are stored as NULL, not zero.
    assert records[1].roe is None


def test_insert_record_rejects_duplicate_quarter(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)
    _add_record(cfg, company.id, 2024, 1, ebitda=1.0)

    with pytest.raises(sqlite3.IntegrityError):
        _add_record(cfg, company.id, 2024, 1, ebitda=2.0)


def test_insert_record_validation(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)

    with pytest.raises(InvalidQuarterKey):
        _add_record(cfg, company.id, 2024, 5)
    with pytest.raises(ValueError):
        _add_record(cfg, company.id, 2024, 1, not_an_indicator=1.0)
    with pytest.raises(sqlite3.IntegrityError):
        _add_record(cfg, 999, 2024, 1, ebitda=1.0)


def test_update_record_values_and_quarter(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)
    record = _add_record(cfg, company.id, 2024, 1, ebitda=1.0, roe=5.0)

    updated = update_record(
        cfg,
        record.id,
        IndicatorRecordUpdate(quarter_number=2, values={"ebitda": 3.0, "roe": None}),
    )

    assert updated.quarter == "2024-T2"
    assert updated.year == 2024
    assert updated.ebitda == 3.0
    assert updated.roe is None
    assert updated.updated_at is not None


def test_update_record_errors(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)
    record = _add_record(cfg, company.id, 2024, 1)

    with pytest.raises(ValueError):
        update_record(cfg, record.id, IndicatorRecordUpdate())
    with pytest.raises(LookupError):
        update_record(cfg, 999, IndicatorRecordUpdate(values={"ebitda": 1.0}))


def test_delete_record_and_cascade(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)
    first = _add_record(cfg, company.id, 2024, 1)
    _add_record(cfg, company.id, 2024, 2)

    assert delete_record(cfg, first.id) is True
    assert delete_record(cfg, first.id) is False
    assert get_record_by_id(cfg, first.id) is None

    # Deleting the company removes its remaining records.
    delete_company(cfg, company.id)
    assert load_indicator_records(cfg, company.id) == []


def test_import_records_is_all_or_nothing(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)
    _add_record(cfg, company.id, 2024, 2, ebitda=2.0, roe=9.0)

    df = pd.DataFrame(
        {"year": [2024, 2024], "quarter_number": [1, 2], "ebitda": [10.0, 20.0]}
    )

    with pytest.raises(sqlite3.IntegrityError):
        import_records(cfg, company.id, df)
    assert [r.quarter for r in load_indicator_records(cfg, company.id)] == ["2024-T2"]

    stats = import_records(cfg, company.id, df, replace=True)

    assert stats == RecordImportStats(rows_inserted=1, rows_updated=1)
    records = load_indicator_records(cfg, company.id)
    assert [(r.quarter, r.ebitda) for r in records] == [("2024-T2", 20.0), ("2024-T1", 10.0)]
    # Columns absent from the batch keep their stored values.
    assert records[0].roe == 9.0


def test_import_records_rejects_unknown_columns(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)
    df = pd.DataFrame({"year": [2024], "quarter_number": [1], "foo": [1.0]})

    with pytest.raises(ValueError):
        import_records(cfg, company.id, df)
    assert load_indicator_records(cfg, company.id) == []


def test_records_to_dataframe(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    company = _add_company(cfg)
    _add_record(cfg, company.id, 2024, 1, ebitda=1.5)

    df = records_to_dataframe(load_indicator_records(cfg, company.id))

    assert list(df.columns[:5]) == ["id", "company_id", "year", "quarter_number", "quarter"]
    assert df.loc[0, "ebitda"] == 1.5
    assert df["roe"].isna().all()

    empty = records_to_dataframe([])
    assert empty.empty
