# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for QuarterDash.

This module is responsible for:
- loading the application configuration from a TOML file,
- exposing typed dataclasses used by the rest of the application,
- configuring the standard library logging once at startup.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .db import DatabaseConfig

DEFAULT_CONFIG_FILE = "quarterdash_config.toml"
DEFAULT_DB_PATH = "data/db/quarterdash.sqlite"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_DISPLAY_MODES = {"table", "csv", "both"}
_MATCH_MODES = {"value", "quarter"}


@dataclass(frozen=True)
class DisplayConfig:
    """
    Display options for dashboard tables.

    Attributes
    ----------
    mode:
        'table' prints to stdout, 'csv' writes CSV files, 'both' does both.
    decimals:
        Number of decimals used when displaying values of every unit.
    currency:
        Currency code shown next to monetary amounts (e.g. 'BRL').
    output_dir:
        Directory where CSV files are written.
    """

    mode: str
    decimals: int
    currency: str
    output_dir: Path


@dataclass(frozen=True)
class DashboardConfig:
    """
    Dashboard behaviour.

    Attributes
    ----------
    match:
        How the current record is located when computing comparisons:
        'value' (by indicator value) or 'quarter' (by year and quarter).
    quarter_years:
        Number of years offered when choosing a quarter (current year
        included).
    """

    match: str
    quarter_years: int


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for QuarterDash.

    This aggregates:
    - the database configuration (where companies and records are stored),
    - display options for tables and CSV exports,
    - dashboard options,
    - the logging level.
    """

    database: DatabaseConfig
    display: DisplayConfig
    dashboard: DashboardConfig
    log_level: str

    @classmethod
    def default(cls, base_dir: Optional[Path] = None) -> "AppConfig":
        """Configuration used when no TOML file is available."""
        return _build_app_config({}, (base_dir or Path.cwd()).resolve())


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _build_app_config(raw: Mapping[str, Any], base_dir: Path) -> AppConfig:
    # 1) Database section
    database_section = _section(raw, "database")

    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or DEFAULT_DB_PATH
    db_path = (base_dir / str(db_path_raw)).resolve()

    database_config = DatabaseConfig(engine=db_engine, path=db_path)

    # 2) Display options
    display_section = _section(raw, "display")

    display_mode = str(display_section.get("mode", "table"))
    if display_mode not in _DISPLAY_MODES:
        raise ValueError(
            f"Invalid value for 'display.mode': {display_mode!r}. "
            "Expected one of: table, csv, both."
        )

    try:
        decimals = int(display_section.get("decimals", 2))
    except (TypeError, ValueError):
        decimals = 2

    currency = str(display_section.get("currency") or "BRL")
    output_dir = (base_dir / str(display_section.get("output_dir") or "data/output")).resolve()

    display = DisplayConfig(
        mode=display_mode,
        decimals=decimals,
        currency=currency,
        output_dir=output_dir,
    )

    # 3) Dashboard options
    dashboard_section = _section(raw, "dashboard")

    match = str(dashboard_section.get("match", "value"))
    if match not in _MATCH_MODES:
        raise ValueError(
            f"Invalid value for 'dashboard.match': {match!r}. "
            "Expected 'value' or 'quarter'."
        )

    raw_years = dashboard_section.get("quarter_years", 3)
    try:
        quarter_years = int(raw_years)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'dashboard.quarter_years' in the configuration. "
            "Expected an integer."
        ) from exc
    if quarter_years < 1:
        raise ValueError("'dashboard.quarter_years' must be at least 1.")

    dashboard = DashboardConfig(match=match, quarter_years=quarter_years)

    # 4) Logging
    logging_section = _section(raw, "logging")
    log_level = str(logging_section.get("level", "WARNING")).upper()

    return AppConfig(
        database=database_config,
        display=display,
        dashboard=dashboard,
        log_level=log_level,
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the QuarterDash application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [database]
        Database engine ("sqlite") and SQLite file path.

    [display]
        mode ("table", "csv", "both"), decimals, currency and output_dir.

    [dashboard]
        match ("value" or "quarter") and quarter_years.

    [logging]
        level ("DEBUG", "INFO", "WARNING", ...).

    Every section is optional. All file paths are resolved relative to the
    directory of the TOML file itself.

    When `config_path` is None, 'quarterdash_config.toml' in the current
    directory is used if it exists; otherwise the built-in defaults apply.

    Raises
    ------
    FileNotFoundError
        If an explicitly requested config file does not exist.
    ValueError
        If the file cannot be parsed or contains invalid values.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
        if not config_file.is_file():
            return AppConfig.default()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    return _build_app_config(raw, config_file.parent)


def configure_logging(level: str = "WARNING") -> None:
    """
    Configure root logging settings.

    Should be called once, at CLI startup. Unknown level names fall back to
    WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
    )
    logging.getLogger(__name__).debug("Logging initialized with level %s", level)
