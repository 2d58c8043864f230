# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for QuarterDash.

This module wires together the main building blocks of QuarterDash:

- global configuration (database, display and dashboard options, logging),
- company and indicator record management (services layer),
- the dashboard model (current record, comparisons, trend series),
- view helpers (tabular rendering and CSV exports).

The CLI is thin: it does not compute anything itself. It parses arguments,
calls the services and prints their results.


Commands
--------

- ``companies list|add|edit|delete``
    Manage the companies followed by the dashboard.

- ``indicators list|add|edit|delete|import``
    Manage the quarterly indicator records of a company. ``add`` and
    ``edit`` take the quarter as a key (``--quarter 2024-T3``) and indicator
    values as ``--set field=value`` pairs. ``--unset field`` clears a stored
    value on ``edit``.

- ``dashboard [--company ID | --ticker TICKER]``
    Render the dashboard of a company: headline cards, one comparison table
    per section and the trend table. Without a selector, the first company
    by name is shown.

- ``catalog``
    Print the indicator catalog (field, title, unit, section).

- ``quarters``
    Print the quarter keys offered for data entry.


Display modes
-------------

The dashboard is rendered according to ``display.mode`` in the
configuration (overridable with ``--display-mode``):

- ``table``: print tables to stdout,
- ``csv``: write CSV files to the output directory,
- ``both``: do both.

CSV files are written with a timestamp-based name, for example::

    dashboard_PETR4_2025-01-31-10-15-42.csv
    trend_PETR4_2025-01-31-10-15-42.csv


Errors
------

Store failures, malformed quarter keys, invalid values and unknown
companies/records are reported as a single ``Error: ...`` line on stderr
and the process exits with status 1.
"""

import argparse
import logging
import math
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from . import __version__
from .catalog import INDICATOR_FIELDS, SECTION_LABELS, catalog_to_dataframe, is_indicator
from .config import AppConfig, configure_logging, load_app_config
from .dashboard import DashboardView, build_dashboard, trend_table
from .db import records_to_dataframe
from .indicators_service import (
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
    load_company_records,
    remove_company,
)
from .quarters import InvalidQuarterKey, default_quarter_years, quarter_choices
from .session import DashboardSession
from .views import cards_to_dataframe, cards_to_display, companies_to_dataframe

logger = logging.getLogger(__name__)


def _add_company_selector(parser: argparse.ArgumentParser, *, required: bool = True) -> None:
    group = parser.add_mutually_exclusive_group(required=required)
    group.add_argument("--company", dest="company_id", type=int, help="Company id.")
    group.add_argument("--ticker", help="Company ticker (case-insensitive).")


def _add_values_arguments(parser: argparse.ArgumentParser, *, allow_unset: bool) -> None:
    parser.add_argument(
        "--set",
        dest="set_values",
        action="append",
        default=[],
        metavar="FIELD=VALUE",
        help="Indicator value to store (repeatable), e.g. --set ebitda=25000000.",
    )
    if allow_unset:
        parser.add_argument(
            "--unset",
            dest="unset_fields",
            action="append",
            default=[],
            metavar="FIELD",
            help="Indicator whose stored value is cleared (repeatable).",
        )


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="quarterdash",
        description=(
            "QuarterDash - Quarterly financial indicators dashboard. "
            "Stores quarterly indicators of listed companies and compares the "
            "latest quarter with the previous quarter and with the same "
            "quarter of the previous year."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of quarterdash and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'quarterdash_config.toml' in the current directory is "
            "used when present, otherwise built-in defaults apply."
        ),
    )
    ap.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the logging.level setting from the configuration file.",
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    # ------------------------------------------------------------------
    # companies
    # ------------------------------------------------------------------
    companies_parser = subparsers.add_parser("companies", help="Manage companies.")
    companies_sub = companies_parser.add_subparsers(
        dest="companies_command", metavar="subcommand"
    )

    companies_sub.add_parser("list", help="List companies (ordered by name).")

    companies_add = companies_sub.add_parser("add", help="Register a company.")
    companies_add.add_argument("--nome", required=True, help="Company name.")
    companies_add.add_argument("--ticker", required=True, help="Stock ticker.")
    companies_add.add_argument("--link-ri", dest="link_ri", help="Investor relations URL.")

    companies_edit = companies_sub.add_parser("edit", help="Edit a company.")
    companies_edit.add_argument("--id", dest="company_id", type=int, required=True)
    companies_edit.add_argument("--nome", help="New company name.")
    companies_edit.add_argument("--ticker", help="New stock ticker.")
    companies_edit.add_argument("--link-ri", dest="link_ri", help="New investor relations URL.")

    companies_delete = companies_sub.add_parser(
        "delete",
        help="Delete a company and all its indicator records.",
    )
    companies_delete.add_argument("--id", dest="company_id", type=int, required=True)

    # ------------------------------------------------------------------
    # indicators
    # ------------------------------------------------------------------
    indicators_parser = subparsers.add_parser(
        "indicators",
        help="Manage quarterly indicator records.",
    )
    indicators_sub = indicators_parser.add_subparsers(
        dest="indicators_command", metavar="subcommand"
    )

    indicators_list = indicators_sub.add_parser(
        "list",
        help="List the records of a company, most recent quarter first.",
    )
    _add_company_selector(indicators_list)
    indicators_list.add_argument(
        "--fields",
        help="Comma-separated indicator fields to show (default: all).",
    )

    indicators_add = indicators_sub.add_parser("add", help="Create a quarterly record.")
    _add_company_selector(indicators_add)
    indicators_add.add_argument(
        "--quarter",
        required=True,
        help="Quarter key, e.g. 2024-T3.",
    )
    _add_values_arguments(indicators_add, allow_unset=False)

    indicators_edit = indicators_sub.add_parser("edit", help="Edit a quarterly record.")
    indicators_edit.add_argument("--id", dest="record_id", type=int, required=True)
    indicators_edit.add_argument("--quarter", help="Move the record to this quarter.")
    _add_values_arguments(indicators_edit, allow_unset=True)

    indicators_delete = indicators_sub.add_parser("delete", help="Delete a quarterly record.")
    indicators_delete.add_argument("--id", dest="record_id", type=int, required=True)

    indicators_import = indicators_sub.add_parser(
        "import",
        help="Import quarterly records from a CSV file.",
    )
    _add_company_selector(indicators_import)
    indicators_import.add_argument("csv_path", metavar="CSV_PATH")
    indicators_import.add_argument(
        "--replace",
        action="store_true",
        help="Overwrite the values of quarters that already exist.",
    )

    # ------------------------------------------------------------------
    # dashboard
    # ------------------------------------------------------------------
    dashboard_parser = subparsers.add_parser("dashboard", help="Render a company dashboard.")
    _add_company_selector(dashboard_parser, required=False)
    dashboard_parser.add_argument(
        "--match",
        choices=["value", "quarter"],
        help=(
            "Override dashboard.match: locate the current record by indicator "
            "value ('value') or by its quarter ('quarter')."
        ),
    )
    dashboard_parser.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=["table", "csv", "both"],
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints results to stdout, "
            "'csv' writes CSV files only, "
            "'both' does both."
        ),
    )
    dashboard_parser.add_argument(
        "--output",
        dest="output_dir",
        help="Output directory for CSV files (default: display.output_dir).",
    )

    # ------------------------------------------------------------------
    # catalog / quarters
    # ------------------------------------------------------------------
    subparsers.add_parser("catalog", help="Print the indicator catalog.")
    subparsers.add_parser("quarters", help="Print the quarter keys offered for data entry.")

    return ap


def _parse_set_values(pairs: Sequence[str]) -> dict[str, Optional[float]]:
    """
    Parse '--set field=value' pairs into an indicator mapping.

    Raises
    ------
    ValueError
        On a malformed pair, an unknown field or a non-numeric (or non-finite)
        value.
    """
    values: dict[str, Optional[float]] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Invalid --set argument {pair!r}. Expected FIELD=VALUE.")
        if not is_indicator(name):
            raise ValueError(f"Unknown indicator field: {name!r}.")
        try:
            number = float(raw.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid numeric value for {name!r}: {raw!r}.") from exc
        if not math.isfinite(number):
            raise ValueError(f"Invalid numeric value for {name!r}: {raw!r}.")
        values[name] = number
    return values


def _parse_unset_fields(names: Sequence[str]) -> dict[str, Optional[float]]:
    cleared: dict[str, Optional[float]] = {}
    for name in names:
        name = name.strip()
        if not is_indicator(name):
            raise ValueError(f"Unknown indicator field: {name!r}.")
        cleared[name] = None
    return cleared


def _selected_company(args: argparse.Namespace, config: AppConfig):
    return find_company(
        config,
        company_id=getattr(args, "company_id", None),
        ticker=getattr(args, "ticker", None),
    )


def _print_records(records, fields: Optional[Sequence[str]] = None) -> None:
    if not records:
        print("No indicator records for this company.")
        return
    df = records_to_dataframe(records)
    columns = ["id", "quarter", *(fields or INDICATOR_FIELDS)]
    print(df[columns].to_string(index=False))


# ---------------------------------------------------------------------------
# companies
# ---------------------------------------------------------------------------


def _handle_companies_command(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "companies_command", None)

    if subcmd == "list":
        companies = list_companies(config)
        if not companies:
            print("No companies registered yet. Use 'companies add' to register one.")
            return
        print(companies_to_dataframe(companies).to_string(index=False))
    elif subcmd == "add":
        company = create_company(config, args.nome, args.ticker, args.link_ri)
        print(f"Registered company #{company.id}: {company.nome} ({company.ticker})")
    elif subcmd == "edit":
        company = edit_company(
            config,
            args.company_id,
            nome=args.nome,
            ticker=args.ticker,
            link_ri=args.link_ri,
        )
        print(f"Updated company #{company.id}: {company.nome} ({company.ticker})")
    elif subcmd == "delete":
        remove_company(config, args.company_id)
        print(f"Deleted company #{args.company_id} and its indicator records.")
    else:
        print(
            "No companies subcommand specified. "
            "Available subcommands are: 'list', 'add', 'edit', 'delete'."
        )


# ---------------------------------------------------------------------------
# indicators
# ---------------------------------------------------------------------------


def _handle_indicators_command(args: argparse.Namespace, config: AppConfig) -> None:
    subcmd = getattr(args, "indicators_command", None)

    if subcmd == "list":
        company = _selected_company(args, config)
        fields = None
        if args.fields:
            fields = [f.strip() for f in args.fields.split(",") if f.strip()]
            unknown = [f for f in fields if not is_indicator(f)]
            if unknown:
                raise ValueError(f"Unknown indicator field(s): {', '.join(unknown)}.")
        print(f"=== {company.nome} ({company.ticker}) ===")
        _print_records(load_company_records(config, company.id), fields)
    elif subcmd == "add":
        company = _selected_company(args, config)
        values = _parse_set_values(args.set_values)
        records = create_record(config, company.id, args.quarter, values)
        print(f"Created record {args.quarter.strip()} for {company.ticker}.")
        print(f"{company.ticker} now has {len(records)} record(s).")
    elif subcmd == "edit":
        values = _parse_set_values(args.set_values)
        values.update(_parse_unset_fields(args.unset_fields))
        if not values and args.quarter is None:
            raise ValueError("Nothing to update: use --quarter, --set or --unset.")
        records = edit_record(config, args.record_id, quarter=args.quarter, values=values)
        print(f"Updated record #{args.record_id}.")
        _print_records(records)
    elif subcmd == "delete":
        records = delete_record(config, args.record_id)
        print(f"Deleted record #{args.record_id}.")
        _print_records(records)
    elif subcmd == "import":
        company = _selected_company(args, config)
        csv_path = Path(args.csv_path)
        if not csv_path.is_file():
            raise ValueError(f"CSV file not found: {csv_path}")
        print(f"Importing indicator records from {csv_path} for {company.ticker}...")
        records = import_records_csv(config, company.id, csv_path, replace=args.replace)
        print(f"{company.ticker} now has {len(records)} record(s).")
    else:
        print(
            "No indicators subcommand specified. "
            "Available subcommands are: 'list', 'add', 'edit', 'delete', 'import'."
        )


# ---------------------------------------------------------------------------
# dashboard
# ---------------------------------------------------------------------------


def _render_dashboard_tables(view: DashboardView, config: AppConfig) -> None:
    blocks = [("Headline", view.headline)]
    blocks.extend((SECTION_LABELS[tag], cards) for tag, cards in view.sections if cards)

    for label, cards in blocks:
        table = cards_to_display(
            cards,
            decimals=config.display.decimals,
            currency=config.display.currency,
        )
        print()
        print(f"=== {label} ===")
        print(table.to_string(index=False))


def _handle_dashboard(args: argparse.Namespace, config: AppConfig) -> None:
    session = DashboardSession()
    default_id = session.set_companies(list_companies(config))

    if args.company_id is not None or args.ticker is not None:
        company_id = _selected_company(args, config).id
    else:
        company_id = default_id
    if company_id is None:
        raise LookupError("No companies registered yet. Use 'companies add' to register one.")

    session.load(company_id, lambda cid: load_company_records(config, cid))
    company = session.selected_company

    match = args.match or config.dashboard.match
    view = build_dashboard(company, session.records, match=match)

    print(f"=== {company.nome} ({company.ticker}) ===")
    if company.link_ri:
        print(f"Investor relations: {company.link_ri}")

    if view.is_empty:
        print("No indicator records for this company yet. Use 'indicators add' to create one.")
        return

    print(f"Current quarter: {view.current_quarter} ({view.records_count} record(s))")

    display_mode = args.display_mode or config.display.mode
    all_cards = [card for _tag, cards in view.sections for card in cards]
    trend = trend_table(session.records)

    if display_mode in {"table", "both"}:
        _render_dashboard_tables(view, config)
        print()
        print("=== Trend ===")
        print(trend.to_string(index=False))

    if display_mode in {"csv", "both"}:
        output_dir = Path(args.output_dir) if args.output_dir else config.display.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")

        path = output_dir / f"dashboard_{company.ticker}_{timestamp}.csv"
        cards_df = cards_to_dataframe(all_cards, config.display.decimals)
        cards_df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(cards_df)} rows)")

        path = output_dir / f"trend_{company.ticker}_{timestamp}.csv"
        trend.to_csv(path, index=False)
        print(f"Wrote {path} ({len(trend)} rows)")


# ---------------------------------------------------------------------------
# catalog / quarters
# ---------------------------------------------------------------------------


def _handle_catalog() -> None:
    df = catalog_to_dataframe()
    print(df[["key", "title", "unit", "section_label"]].to_string(index=False))


def _handle_quarters(config: AppConfig) -> None:
    years = default_quarter_years(config.dashboard.quarter_years)
    print("\n".join(quarter_choices(years)))


def _run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    # 1) Load application configuration
    if args.config_path:
        config = load_app_config(args.config_path)
    else:
        config = load_app_config()

    configure_logging(args.log_level or config.log_level)

    command = getattr(args, "command", None)

    if command == "catalog":
        _handle_catalog()
        return
    if command == "quarters":
        _handle_quarters(config)
        return
    if command is None:
        parser.print_help()
        return

    # 2) Initialize the database (create file and schema if needed)
    init_store(config)

    if command == "companies":
        _handle_companies_command(args, config)
    elif command == "indicators":
        _handle_indicators_command(args, config)
    elif command == "dashboard":
        _handle_dashboard(args, config)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the QuarterDash CLI.

    Parses command-line arguments, loads the configuration, configures
    logging, initializes the database and dispatches to the requested
    command. Returns the process exit status.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"quarterdash version {__version__}")
        return 0

    try:
        _run(args, parser)
    except (StoreError, InvalidQuarterKey, ValueError, LookupError, FileNotFoundError) as exc:
        logger.debug("Command failed", exc_info=True)
        message = exc.args[0] if exc.args else str(exc)
        print(f"Error: {message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
