# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
QuarterDash
-----------

A Python application to follow the quarterly financial indicators of listed
companies. Indicators are entered per quarter (or imported from CSV), stored
in SQLite and rendered as a dashboard that compares the most recent quarter
with the previous quarter and with the same quarter of the previous year.

Main capabilities:
- a fixed indicator catalog (titles, units, sections),
- quarter keys ('YYYY-Tn') and quarter arithmetic,
- a comparison engine (previous quarter / same quarter last year),
- company and indicator record management backed by SQLite,
- CSV import of quarterly records,
- console tables and CSV exports of the dashboard.

Version: 0.1.0

Usage:
    python -m quarterdash.cli --help
"""

__all__ = ["catalog", "comparison", "dashboard", "quarters", "views"]

__version__ = "0.1.0"
