# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level services for companies and quarterly indicator records.

This module sits between:
- the low-level database helpers in `db.py`, and
- user-facing layers such as the CLI.

Responsibilities
----------------
1) Companies
   - List companies (ordered by name), load one by id or ticker.
   - Register, edit and remove companies. Tickers are stored upper-case.

2) Indicator records
   - Load all records of a company, most recent quarter first.
   - Create records from a quarter key ('YYYY-Tn') and indicator values.
   - Edit or delete individual records.
   - Import records from a CSV file.

   Every mutation returns the company's full record list, re-fetched from
   the database after the write. Callers replace their in-memory list with
   it instead of patching it.

Error policy
------------
Database failures (`sqlite3.Error`, or an unusable database path) are
logged and re-raised as `StoreError`, so that user-facing layers can report
them as a single notification and abort the action. Nothing is retried.

Validation failures are raised as-is:
- `InvalidQuarterKey` for malformed quarter keys,
- `ValueError` for unknown indicator fields or empty updates,
- `LookupError` for unknown companies or records.
"""

import logging
import sqlite3
from collections.abc import Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from .config import AppConfig
from .db import (
    Company,
    CompanyUpdate,
    DatabaseConfig,
    IndicatorRecord,
    IndicatorRecordUpdate,
    NewCompany,
    NewIndicatorRecord,
)
from .db import (
    delete_company as _db_delete_company,
)
from .db import (
    delete_record as _db_delete_record,
)
from .db import (
    get_company_by_id as _db_get_company_by_id,
)
from .db import (
    get_company_by_ticker as _db_get_company_by_ticker,
)
from .db import (
    get_record_by_id as _db_get_record_by_id,
)
from .db import (
    import_records as _db_import_records,
)
from .db import (
    init_database as _db_init_database,
)
from .db import (
    insert_company as _db_insert_company,
)
from .db import (
    insert_record as _db_insert_record,
)
from .db import (
    list_companies as _db_list_companies,
)
from .db import (
    load_indicator_records as _db_load_indicator_records,
)
from .db import (
    update_company as _db_update_company,
)
from .db import (
    update_record as _db_update_record,
)
from .io import read_indicator_records
from .quarters import parse_quarter_key

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """A database operation failed; the requested action was not applied."""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_db_config(app_config: AppConfig) -> DatabaseConfig:
    """Convenience helper to access the database configuration."""
    return app_config.database


@contextmanager
def _store_operation(action: str) -> Iterator[None]:
    """Translate sqlite3 errors raised while performing `action`."""
    try:
        yield
    except sqlite3.IntegrityError as exc:
        logger.warning("Store rejected %s: %s", action, exc)
        raise StoreError(f"Could not {action}: {exc}") from exc
    except (sqlite3.Error, OSError) as exc:
        logger.error("Store failure while trying to %s: %s", action, exc)
        raise StoreError(f"Could not {action}: {exc}") from exc


def _normalize_ticker(ticker: str) -> str:
    return ticker.strip().upper()


def _require_company(db_cfg: DatabaseConfig, company_id: int) -> Company:
    company = _db_get_company_by_id(db_cfg, company_id)
    if company is None:
        raise LookupError(f"Company #{company_id} does not exist.")
    return company


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


def init_store(app_config: AppConfig) -> None:
    """
    Create the database file and schema if needed.

    Raises
    ------
    StoreError
        If the database cannot be opened or initialized.
    """
    db_cfg = _get_db_config(app_config)
    with _store_operation(f"open the database at {db_cfg.path}"):
        _db_init_database(db_cfg)


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------


def list_companies(app_config: AppConfig) -> list[Company]:
    """Return all companies, ordered by name."""
    db_cfg = _get_db_config(app_config)
    with _store_operation("load companies"):
        return _db_list_companies(db_cfg)


def load_company(app_config: AppConfig, company_id: int) -> Optional[Company]:
    """Load a company by id, or None if it does not exist."""
    db_cfg = _get_db_config(app_config)
    with _store_operation(f"load company #{company_id}"):
        return _db_get_company_by_id(db_cfg, company_id)


def find_company(
    app_config: AppConfig,
    *,
    company_id: Optional[int] = None,
    ticker: Optional[str] = None,
) -> Company:
    """
    Find a company by id or by ticker.

    Raises
    ------
    ValueError
        If neither (or both) of `company_id` and `ticker` are given.
    LookupError
        If no company matches.
    """
    if (company_id is None) == (ticker is None):
        raise ValueError("Provide exactly one of company_id or ticker.")

    db_cfg = _get_db_config(app_config)
    with _store_operation("load company"):
        if company_id is not None:
            company = _db_get_company_by_id(db_cfg, company_id)
            label = f"#{company_id}"
        else:
            company = _db_get_company_by_ticker(db_cfg, _normalize_ticker(ticker))
            label = repr(ticker)

    if company is None:
        raise LookupError(f"Company {label} does not exist.")
    return company


def create_company(
    app_config: AppConfig,
    nome: str,
    ticker: str,
    link_ri: Optional[str] = None,
) -> Company:
    """
    Register a new company.

    Raises
    ------
    ValueError
        If the name or the ticker is blank.
    StoreError
        If the ticker is already used or the database write fails.
    """
    nome = nome.strip()
    ticker = _normalize_ticker(ticker)
    if not nome or not ticker:
        raise ValueError("Company name and ticker are required.")

    db_cfg = _get_db_config(app_config)
    with _store_operation(f"register company {ticker}"):
        company = _db_insert_company(
            db_cfg,
            NewCompany(nome=nome, ticker=ticker, link_ri=link_ri or None),
        )

    logger.info("Registered company #%s (%s)", company.id, company.ticker)
    return company


def edit_company(
    app_config: AppConfig,
    company_id: int,
    *,
    nome: Optional[str] = None,
    ticker: Optional[str] = None,
    link_ri: Optional[str] = None,
) -> Company:
    """
    Edit an existing company. Only the given fields are changed.

    Raises
    ------
    ValueError
        If no field is given.
    LookupError
        If the company does not exist.
    StoreError
        If the new ticker is already used or the database write fails.
    """
    update = CompanyUpdate(
        nome=nome.strip() if nome is not None else None,
        ticker=_normalize_ticker(ticker) if ticker is not None else None,
        link_ri=link_ri,
    )

    db_cfg = _get_db_config(app_config)
    with _store_operation(f"update company #{company_id}"):
        company = _db_update_company(db_cfg, company_id, update)

    logger.info("Updated company #%s", company_id)
    return company


def remove_company(app_config: AppConfig, company_id: int) -> None:
    """
    Delete a company together with its indicator records.

    Raises
    ------
    LookupError
        If the company does not exist.
    """
    db_cfg = _get_db_config(app_config)
    with _store_operation(f"delete company #{company_id}"):
        deleted = _db_delete_company(db_cfg, company_id)

    if not deleted:
        raise LookupError(f"Company #{company_id} does not exist.")
    logger.info("Deleted company #%s", company_id)


# ---------------------------------------------------------------------------
# Indicator records
# ---------------------------------------------------------------------------


def load_company_records(app_config: AppConfig, company_id: int) -> list[IndicatorRecord]:
    """Load all records of a company, most recent quarter first."""
    db_cfg = _get_db_config(app_config)
    with _store_operation(f"load records of company #{company_id}"):
        return _db_load_indicator_records(db_cfg, company_id)


def create_record(
    app_config: AppConfig,
    company_id: int,
    quarter: str,
    values: Mapping[str, Optional[float]],
) -> list[IndicatorRecord]:
    """
    Create the record of `company_id` for `quarter` ('YYYY-Tn').

    Returns
    -------
    list[IndicatorRecord]
        The company's records after the insert, most recent first.

    Raises
    ------
    InvalidQuarterKey
        If `quarter` is malformed.
    ValueError
        If `values` contains fields that are not catalog indicators.
    LookupError
        If the company does not exist.
    StoreError
        If the company already has a record for the quarter, or the database
        write fails.
    """
    q = parse_quarter_key(quarter)

    db_cfg = _get_db_config(app_config)
    with _store_operation(f"create record {q.key} for company #{company_id}"):
        _require_company(db_cfg, company_id)
        _db_insert_record(
            db_cfg,
            NewIndicatorRecord(
                company_id=company_id,
                year=q.year,
                quarter_number=q.quarter_number,
                values=dict(values),
            ),
        )

    logger.info("Created record %s for company #%s", q.key, company_id)
    return load_company_records(app_config, company_id)


def edit_record(
    app_config: AppConfig,
    record_id: int,
    *,
    quarter: Optional[str] = None,
    values: Optional[Mapping[str, Optional[float]]] = None,
) -> list[IndicatorRecord]:
    """
    Edit an indicator record.

    `quarter` moves the record to another quarter. Every field present in
    `values` is written; a None value clears the stored value.

    Returns
    -------
    list[IndicatorRecord]
        The owning company's records after the update, most recent first.
    """
    update_kwargs: dict[str, object] = {"values": dict(values or {})}
    if quarter is not None:
        q = parse_quarter_key(quarter)
        update_kwargs["year"] = q.year
        update_kwargs["quarter_number"] = q.quarter_number

    db_cfg = _get_db_config(app_config)
    with _store_operation(f"update record #{record_id}"):
        updated = _db_update_record(db_cfg, record_id, IndicatorRecordUpdate(**update_kwargs))

    logger.info("Updated record #%s (%s)", record_id, updated.quarter)
    return load_company_records(app_config, updated.company_id)


def delete_record(app_config: AppConfig, record_id: int) -> list[IndicatorRecord]:
    """
    Delete an indicator record.

    Returns
    -------
    list[IndicatorRecord]
        The owning company's records after the delete, most recent first.

    Raises
    ------
    LookupError
        If the record does not exist.
    """
    db_cfg = _get_db_config(app_config)
    with _store_operation(f"delete record #{record_id}"):
        record = _db_get_record_by_id(db_cfg, record_id)
        if record is None:
            raise LookupError(f"Record #{record_id} does not exist.")
        _db_delete_record(db_cfg, record_id)

    logger.info("Deleted record #%s (%s)", record_id, record.quarter)
    return load_company_records(app_config, record.company_id)


def import_records_csv(
    app_config: AppConfig,
    company_id: int,
    path: Union[str, Path],
    *,
    replace: bool = False,
) -> list[IndicatorRecord]:
    """
    Import quarterly records for a company from a CSV file.

    Each CSV row becomes one record. A quarter that already exists for the
    company is rejected, unless `replace` is True, in which case the stored
    values of that quarter are overwritten by the row's values.

    The import is all-or-nothing: if any row is rejected, no record is
    written and the stored records are left unchanged.

    Returns
    -------
    list[IndicatorRecord]
        The company's records after the import, most recent first.
    """
    df = read_indicator_records(path)

    db_cfg = _get_db_config(app_config)
    with _store_operation(f"import records for company #{company_id}"):
        _require_company(db_cfg, company_id)
        stats = _db_import_records(db_cfg, company_id, df, replace=replace)

    logger.info(
        "Imported %s for company #%s: %d inserted, %d updated",
        path,
        company_id,
        stats.rows_inserted,
        stats.rows_updated,
    )
    return load_company_records(app_config, company_id)
