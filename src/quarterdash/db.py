# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for QuarterDash.

This module provides all low-level accessors for the SQLite database used by
the application. It is responsible for:

- Initializing and migrating the database schema.
- Exposing CRUD operations on companies.
- Exposing CRUD operations on quarterly indicator records.
- Converting rows into typed dataclasses and pandas DataFrames.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

1) companies
   One row per company followed in the dashboard.

   Columns:
   - id          INTEGER PRIMARY KEY AUTOINCREMENT
   - nome        TEXT NOT NULL           -- display name
   - ticker      TEXT NOT NULL UNIQUE    -- exchange ticker (e.g. "ROMI3")
   - link_ri     TEXT                    -- investor-relations URL
   - created_at  TEXT NOT NULL           -- ISO datetime, UTC
   - updated_at  TEXT                    -- ISO datetime, UTC


2) financial_indicators
   One row per (company, year, quarter).

   Columns:
   - id              INTEGER PRIMARY KEY AUTOINCREMENT
   - company_id      INTEGER NOT NULL  -- foreign key to companies.id
   - year            INTEGER NOT NULL
   - quarter_number  INTEGER NOT NULL  -- 1..4
   - quarter         TEXT    NOT NULL  -- derived key "{year}-T{quarter_number}"
   - <indicator>     REAL              -- one nullable column per catalog field
   - created_at      TEXT    NOT NULL
   - updated_at      TEXT

   (company_id, year, quarter_number) is unique. Deleting a company deletes
   its indicator records (ON DELETE CASCADE).

   Indicator columns are nullable: NULL means "not reported for this
   quarter", which is different from a reported value of zero.

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- All timestamps are stored as ISO-8601 text (UTC).
- Foreign key enforcement is explicitly enabled on every connection.
- The `quarter` column is always written from year/quarter_number by this
  module and never taken from callers.
- When new fields are added to the indicator catalog, the matching columns
  are added to existing databases on startup.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd

from .catalog import INDICATOR_FIELDS
from .quarters import quarter_key

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for QuarterDash.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


@dataclass(frozen=True)
class Company:
    """A company as stored in the `companies` table."""

    id: int
    nome: str
    ticker: str
    link_ri: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class NewCompany:
    """Data required to register a new company."""

    nome: str
    ticker: str
    link_ri: str | None = None


@dataclass(frozen=True)
class CompanyUpdate:
    """
    Fields that can be updated on an existing company.

    Only non-None values are applied during the update operation.
    """

    nome: str | None = None
    ticker: str | None = None
    link_ri: str | None = None


@dataclass(frozen=True)
class IndicatorRecord:
    """
    Quarterly indicator record of one company.

    Every indicator attribute is optional: None means the value was not
    reported for the quarter.
    """

    id: int
    company_id: int
    year: int
    quarter_number: int
    quarter: str

    receitas_bens_servicos: float | None = None
    custo_receita_operacional: float | None = None
    despesas_operacionais_total: float | None = None
    lucro_operacional_antes_receita_despesa_nao_recorrente: float | None = None
    lucro_liquido_apos_impostos: float | None = None
    caixa_equivalentes_caixa: float | None = None
    fluxo_caixa_liquido_atividades_operacionais: float | None = None
    variacao_liquida_caixa_total: float | None = None
    capital_giro: float | None = None
    endividamento_total: float | None = None
    percentual_divida_total_ativo_total: float | None = None
    liquidez_geral: float | None = None
    liquidez_corrente: float | None = None
    ebit: float | None = None
    ebitda: float | None = None
    margem_ebitda_percent: float | None = None
    margem_lucro_bruto_percent: float | None = None
    margem_operacional_percent: float | None = None
    margem_liquida_percent: float | None = None
    roic: float | None = None
    roe: float | None = None
    roa: float | None = None
    dividend_yield: float | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    def indicators(self) -> dict[str, float | None]:
        """Return {field -> value} for every catalog indicator."""
        return {name: getattr(self, name) for name in INDICATOR_FIELDS}


@dataclass(frozen=True)
class NewIndicatorRecord:
    """
    Data required to create a quarterly indicator record.

    `values` maps indicator field names to values. Fields that are absent (or
    None) are stored as NULL.
    """

    company_id: int
    year: int
    quarter_number: int
    values: Mapping[str, float | None] = field(default_factory=dict)


@dataclass(frozen=True)
class IndicatorRecordUpdate:
    """
    Changes to apply to an existing indicator record.

    `year` and `quarter_number` are applied when not None; the derived
    `quarter` key is recomputed accordingly. Every field present in `values`
    is written, including None values which clear the stored value.
    """

    year: int | None = None
    quarter_number: int | None = None
    values: Mapping[str, float | None] = field(default_factory=dict)


@dataclass(frozen=True)
class RecordImportStats:
    """Outcome of a batch import of indicator records."""

    rows_inserted: int
    rows_updated: int


_RECORD_BASE_COLUMNS: tuple[str, ...] = (
    "id",
    "company_id",
    "year",
    "quarter_number",
    "quarter",
)

_RECORD_SELECT_COLUMNS: tuple[str, ...] = (
    _RECORD_BASE_COLUMNS + INDICATOR_FIELDS + ("created_at", "updated_at")
)

_COMPANY_SELECT_COLUMNS: tuple[str, ...] = (
    "id",
    "nome",
    "ticker",
    "link_ri",
    "created_at",
    "updated_at",
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _get_table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    """Return the set of column names for the given table."""
    cur = conn.execute(f"PRAGMA table_info({table});")
    return {row[1] for row in cur.fetchall()}


def _migrate_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Add indicator columns that are missing from `financial_indicators`.

    This function is idempotent. Databases created before a field was added
    to the catalog get the new column (NULL for existing rows).
    """
    existing = _get_table_columns(conn, "financial_indicators")
    for name in INDICATOR_FIELDS:
        if name not in existing:
            logger.info("Adding missing indicator column %r", name)
            conn.execute(f"ALTER TABLE financial_indicators ADD COLUMN {name} REAL;")


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet and migrate the schema.

    This function is idempotent and can be called multiple times safely.
    """
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS companies (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            nome        TEXT    NOT NULL,
            ticker      TEXT    NOT NULL UNIQUE,
            link_ri     TEXT,
            created_at  TEXT    NOT NULL,
            updated_at  TEXT
        );
        """
    )

    indicator_columns = ",\n            ".join(f"{name} REAL" for name in INDICATOR_FIELDS)
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS financial_indicators (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id      INTEGER NOT NULL,
            year            INTEGER NOT NULL,
            quarter_number  INTEGER NOT NULL
                            CHECK (quarter_number BETWEEN 1 AND 4),
            quarter         TEXT    NOT NULL,  -- '{{year}}-T{{quarter_number}}'
            {indicator_columns},
            created_at      TEXT    NOT NULL,
            updated_at      TEXT,

            UNIQUE (company_id, year, quarter_number),
            FOREIGN KEY (company_id) REFERENCES companies(id) ON DELETE CASCADE
        );
        """
    )

    _migrate_schema_if_needed(conn)

    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_financial_indicators_company
            ON financial_indicators(company_id, year, quarter_number);
        """
    )

    conn.commit()


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _check_indicator_names(values: Mapping[str, Any]) -> None:
    unknown = sorted(set(values).difference(INDICATOR_FIELDS))
    if unknown:
        raise ValueError(f"Unknown indicator field(s): {', '.join(unknown)}")


def _to_db_number(value: Any) -> float | None:
    """Convert an indicator value to a float, keeping None (and NaN) as NULL."""
    if value is None:
        return None
    number = float(value)
    if number != number:
        return None
    return number


def _row_to_company(row: tuple) -> Company:
    entry_id, nome, ticker, link_ri, created_at, updated_at = row
    return Company(
        id=entry_id,
        nome=nome,
        ticker=ticker,
        link_ri=link_ri,
        created_at=_parse_ts(created_at),
        updated_at=_parse_ts(updated_at),
    )


def _row_to_record(row: tuple) -> IndicatorRecord:
    """
    Convert a database row into an IndicatorRecord.

    Expected row layout: the columns of `_RECORD_SELECT_COLUMNS`, in order.
    """
    data = dict(zip(_RECORD_SELECT_COLUMNS, row))
    data["created_at"] = _parse_ts(data["created_at"])
    data["updated_at"] = _parse_ts(data["updated_at"])
    return IndicatorRecord(**data)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates the `companies` and `financial_indicators` tables if missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------


def list_companies(cfg: DatabaseConfig) -> list[Company]:
    """Return all companies ordered by name."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            SELECT {", ".join(_COMPANY_SELECT_COLUMNS)}
              FROM companies
             ORDER BY nome, id;
            """
        )
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_company(row) for row in rows]


def get_company_by_id(cfg: DatabaseConfig, company_id: int) -> Company | None:
    """Load a single company by id, or None if it does not exist."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            SELECT {", ".join(_COMPANY_SELECT_COLUMNS)}
              FROM companies
             WHERE id = ?;
            """,
            (company_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    return _row_to_company(row) if row is not None else None


def get_company_by_ticker(cfg: DatabaseConfig, ticker: str) -> Company | None:
    """Load a single company by ticker (case-insensitive), or None."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            SELECT {", ".join(_COMPANY_SELECT_COLUMNS)}
              FROM companies
             WHERE UPPER(ticker) = UPPER(?);
            """,
            (ticker,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    return _row_to_company(row) if row is not None else None


def insert_company(cfg: DatabaseConfig, new_company: NewCompany) -> Company:
    """
    Insert a new company.

    Raises
    ------
    sqlite3.IntegrityError
        If another company already uses the same ticker.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            """
            INSERT INTO companies (nome, ticker, link_ri, created_at, updated_at)
            VALUES (?, ?, ?, ?, NULL);
            """,
            (new_company.nome, new_company.ticker, new_company.link_ri, _now_utc_iso()),
        )
        company_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    result = get_company_by_id(cfg, company_id)
    if result is None:
        msg = f"Company #{company_id} was just inserted but could not be reloaded."
        raise RuntimeError(msg)
    return result


def update_company(
    cfg: DatabaseConfig,
    company_id: int,
    update: CompanyUpdate,
) -> Company:
    """
    Apply a partial update to an existing company.

    Raises
    ------
    ValueError
        If no fields are provided for update.
    LookupError
        If the company does not exist.
    """
    init_database(cfg)

    assignments: list[str] = []
    params: list[object] = []

    if update.nome is not None:
        assignments.append("nome = ?")
        params.append(update.nome)
    if update.ticker is not None:
        assignments.append("ticker = ?")
        params.append(update.ticker)
    if update.link_ri is not None:
        assignments.append("link_ri = ?")
        params.append(update.link_ri)

    if not assignments:
        raise ValueError("No fields to update in CompanyUpdate.")

    assignments.append("updated_at = ?")
    params.append(_now_utc_iso())
    params.append(company_id)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            UPDATE companies
               SET {", ".join(assignments)}
             WHERE id = ?;
            """,
            params,
        )
        updated_rows = cur.rowcount
        conn.commit()
    finally:
        conn.close()

    if updated_rows == 0:
        raise LookupError(f"Company #{company_id} does not exist.")

    result = get_company_by_id(cfg, company_id)
    if result is None:
        msg = f"Company #{company_id} was updated but could not be reloaded."
        raise RuntimeError(msg)
    return result


def delete_company(cfg: DatabaseConfig, company_id: int) -> bool:
    """
    Delete a company and, through the foreign key cascade, its records.

    Returns
    -------
    bool
        True if a company was deleted, False if it did not exist.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute("DELETE FROM companies WHERE id = ?;", (company_id,))
        deleted = cur.rowcount > 0
        conn.commit()
    finally:
        conn.close()

    return deleted


# ---------------------------------------------------------------------------
# Indicator records
# ---------------------------------------------------------------------------


def load_indicator_records(cfg: DatabaseConfig, company_id: int) -> list[IndicatorRecord]:
    """
    Load all indicator records of a company, most recent quarter first.

    Records are ordered by year DESC, then quarter_number DESC.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            SELECT {", ".join(_RECORD_SELECT_COLUMNS)}
              FROM financial_indicators
             WHERE company_id = ?
             ORDER BY year DESC, quarter_number DESC, id DESC;
            """,
            (company_id,),
        )
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_record(row) for row in rows]


def get_record_by_id(cfg: DatabaseConfig, record_id: int) -> IndicatorRecord | None:
    """Load a single indicator record by id, or None if not found."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            SELECT {", ".join(_RECORD_SELECT_COLUMNS)}
              FROM financial_indicators
             WHERE id = ?;
            """,
            (record_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    return _row_to_record(row) if row is not None else None


def insert_record(cfg: DatabaseConfig, new_record: NewIndicatorRecord) -> IndicatorRecord:
    """
    Insert a new quarterly indicator record.

    Raises
    ------
    InvalidQuarterKey
        If year/quarter_number do not form a valid quarter.
    ValueError
        If `values` contains names that are not catalog indicators.
    sqlite3.IntegrityError
        If the company does not exist or already has a record for the quarter.
    """
    init_database(cfg)

    key = quarter_key(new_record.year, new_record.quarter_number)
    _check_indicator_names(new_record.values)

    columns = ["company_id", "year", "quarter_number", "quarter"]
    params: list[object] = [
        new_record.company_id,
        new_record.year,
        new_record.quarter_number,
        key,
    ]
    for name in INDICATOR_FIELDS:
        if name in new_record.values:
            columns.append(name)
            params.append(_to_db_number(new_record.values[name]))
    columns.append("created_at")
    params.append(_now_utc_iso())

    placeholders = ", ".join("?" for _ in columns)

    conn = _connect(cfg)
    try:
        cur = conn.execute(
            f"""
            INSERT INTO financial_indicators ({", ".join(columns)})
            VALUES ({placeholders});
            """,
            params,
        )
        record_id = cur.lastrowid
        conn.commit()
    finally:
        conn.close()

    result = get_record_by_id(cfg, record_id)
    if result is None:
        msg = f"Record #{record_id} was just inserted but could not be reloaded."
        raise RuntimeError(msg)
    return result


def update_record(
    cfg: DatabaseConfig,
    record_id: int,
    update: IndicatorRecordUpdate,
) -> IndicatorRecord:
    """
    Apply a partial update to an existing indicator record.

    When the year or the quarter number changes, the stored `quarter` key is
    recomputed from the resulting pair.

    Raises
    ------
    ValueError
        If no fields are provided, or `values` contains unknown fields.
    LookupError
        If the record does not exist.
    InvalidQuarterKey
        If the resulting (year, quarter_number) is not a valid quarter.
    sqlite3.IntegrityError
        If the new quarter is already used by another record of the company.
    """
    _check_indicator_names(update.values)

    if update.year is None and update.quarter_number is None and not update.values:
        raise ValueError("No fields to update in IndicatorRecordUpdate.")

    current = get_record_by_id(cfg, record_id)
    if current is None:
        raise LookupError(f"Record #{record_id} does not exist.")

    assignments: list[str] = []
    params: list[object] = []

    if update.year is not None or update.quarter_number is not None:
        year = update.year if update.year is not None else current.year
        quarter_number = (
            update.quarter_number
            if update.quarter_number is not None
            else current.quarter_number
        )
        key = quarter_key(year, quarter_number)
        assignments.extend(["year = ?", "quarter_number = ?", "quarter = ?"])
        params.extend([year, quarter_number, key])

    for name in INDICATOR_FIELDS:
        if name in update.values:
            assignments.append(f"{name} = ?")
            params.append(_to_db_number(update.values[name]))

    assignments.append("updated_at = ?")
    params.append(_now_utc_iso())
    params.append(record_id)

    conn = _connect(cfg)
    try:
        conn.execute(
            f"""
            UPDATE financial_indicators
               SET {", ".join(assignments)}
             WHERE id = ?;
            """,
            params,
        )
        conn.commit()
    finally:
        conn.close()

    result = get_record_by_id(cfg, record_id)
    if result is None:
        msg = f"Record #{record_id} was updated but could not be reloaded."
        raise RuntimeError(msg)
    return result


def delete_record(cfg: DatabaseConfig, record_id: int) -> bool:
    """
    Delete an indicator record.

    Returns
    -------
    bool
        True if a record was deleted, False if it did not exist.
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute("DELETE FROM financial_indicators WHERE id = ?;", (record_id,))
        deleted = cur.rowcount > 0
        conn.commit()
    finally:
        conn.close()

    return deleted


def import_records(
    cfg: DatabaseConfig,
    company_id: int,
    df: pd.DataFrame,
    *,
    replace: bool = False,
) -> RecordImportStats:
    """
    Import a batch of quarterly records for one company.

    Parameters
    ----------
    cfg:
        Database configuration.
    company_id:
        Company owning the records.
    df:
        Normalized records with columns `year`, `quarter_number` and any
        number of indicator columns (see io.read_indicator_records).
        NaN cells are stored as NULL.
    replace:
        When True, a quarter that already exists for the company has the
        imported indicator columns overwritten. When False, it is rejected.

    Behavior
    --------
    The whole batch runs in a single transaction: if any row fails, nothing
    is written.

    Raises
    ------
    InvalidQuarterKey
        If a row has an invalid year/quarter_number.
    ValueError
        If `df` has columns that are not catalog indicators.
    sqlite3.IntegrityError
        If the company does not exist, or a quarter already exists and
        `replace` is False.
    """
    value_columns = [c for c in df.columns if c not in ("year", "quarter_number")]
    _check_indicator_names(dict.fromkeys(value_columns))
    names = [name for name in INDICATOR_FIELDS if name in value_columns]

    init_database(cfg)  # ensure schema exists
    now = _now_utc_iso()

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, year, quarter_number
              FROM financial_indicators
             WHERE company_id = ?;
            """,
            (company_id,),
        )
        existing = {(year, quarter): record_id for record_id, year, quarter in cur.fetchall()}

        rows_inserted = 0
        rows_updated = 0

        for row in df.to_dict(orient="records"):
            year = int(row["year"])
            quarter_number = int(row["quarter_number"])
            key = quarter_key(year, quarter_number)
            numbers = [_to_db_number(row[name]) for name in names]

            record_id = existing.get((year, quarter_number))
            if record_id is not None and replace:
                assignments = [f"{name} = ?" for name in names] + ["updated_at = ?"]
                cur.execute(
                    f"""
                    UPDATE financial_indicators
                       SET {", ".join(assignments)}
                     WHERE id = ?;
                    """,
                    [*numbers, now, record_id],
                )
                rows_updated += 1
            else:
                columns = ["company_id", "year", "quarter_number", "quarter", *names, "created_at"]
                placeholders = ", ".join("?" for _ in columns)
                cur.execute(
                    f"""
                    INSERT INTO financial_indicators ({", ".join(columns)})
                    VALUES ({placeholders});
                    """,
                    [company_id, year, quarter_number, key, *numbers, now],
                )
                rows_inserted += 1

        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    logger.debug(
        "Imported records for company #%s: %d inserted, %d updated",
        company_id,
        rows_inserted,
        rows_updated,
    )
    return RecordImportStats(rows_inserted=rows_inserted, rows_updated=rows_updated)


def records_to_dataframe(records: list[IndicatorRecord]) -> pd.DataFrame:
    """
    Convert indicator records into a DataFrame (one row per record).

    Columns: id, company_id, year, quarter_number, quarter, then one column
    per catalog indicator. Missing indicator values are NaN.
    """
    columns = list(_RECORD_BASE_COLUMNS + INDICATOR_FIELDS)
    if not records:
        return pd.DataFrame(columns=columns)

    rows = []
    for record in records:
        row: dict[str, object] = {name: getattr(record, name) for name in _RECORD_BASE_COLUMNS}
        row.update(record.indicators())
        rows.append(row)

    df = pd.DataFrame(rows, columns=columns)
    df[list(INDICATOR_FIELDS)] = df[list(INDICATOR_FIELDS)].astype(float)
    return df
