# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Quarter helpers for QuarterDash.

This module defines a Quarter value object and helpers to build and parse
quarter keys of the form ``{year}-T{quarter_number}`` (e.g. ``2024-T1``),
which is how fiscal quarters are selected in the entry forms and stored
alongside each indicator record.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

QUARTER_SEPARATOR = "-T"
QUARTER_NUMBERS: tuple[int, ...] = (1, 2, 3, 4)


class InvalidQuarterKey(ValueError):
    """Raised when a quarter key or a (year, quarter) pair is malformed."""


@dataclass(frozen=True, order=True)
class Quarter:
    """A fiscal quarter, ordered chronologically by (year, quarter_number)."""

    year: int
    quarter_number: int

    @property
    def key(self) -> str:
        return quarter_key(self.year, self.quarter_number)

    def __str__(self) -> str:
        return self.key


def _validate(year: int, quarter_number: int) -> None:
    if isinstance(year, bool) or not isinstance(year, int) or year <= 0:
        raise InvalidQuarterKey(f"Invalid year: {year!r}. Expected a positive integer.")
    if isinstance(quarter_number, bool) or quarter_number not in QUARTER_NUMBERS:
        raise InvalidQuarterKey(
            f"Invalid quarter number: {quarter_number!r}. Expected 1, 2, 3 or 4."
        )


def quarter_key(year: int, quarter_number: int) -> str:
    """Return the quarter key for a year and quarter number (e.g. '2024-T1')."""
    _validate(year, quarter_number)
    return f"{year}{QUARTER_SEPARATOR}{quarter_number}"


def parse_quarter_key(key: str) -> Quarter:
    """
    Parse a quarter key such as '2024-T1' into a Quarter.

    The key is split on the literal '-T' separator. Both parts must parse as
    integers and the quarter number must be in 1..4.

    Raises
    ------
    InvalidQuarterKey
        If the key is not a string, lacks the separator, or either part is
        not a valid integer.
    """
    if not isinstance(key, str):
        raise InvalidQuarterKey(f"Invalid quarter key: {key!r}. Expected 'YYYY-Tn'.")

    raw = key.strip()
    year_raw, sep, quarter_raw = raw.partition(QUARTER_SEPARATOR)
    if not sep:
        raise InvalidQuarterKey(f"Invalid quarter key: {key!r}. Expected 'YYYY-Tn'.")

    try:
        year = int(year_raw)
        quarter_number = int(quarter_raw)
    except ValueError as exc:
        raise InvalidQuarterKey(
            f"Invalid quarter key: {key!r}. Expected 'YYYY-Tn'."
        ) from exc

    _validate(year, quarter_number)
    return Quarter(year=year, quarter_number=quarter_number)


def previous_quarter(q: Quarter) -> Quarter:
    """Quarter immediately before `q` (T1 rolls back to T4 of the previous year)."""
    if q.quarter_number == 1:
        return Quarter(year=q.year - 1, quarter_number=4)
    return Quarter(year=q.year, quarter_number=q.quarter_number - 1)


def same_quarter_last_year(q: Quarter) -> Quarter:
    """Same quarter number, one year earlier."""
    return Quarter(year=q.year - 1, quarter_number=q.quarter_number)


def _current_year() -> int:
    """Return the current calendar year (isolated for easier testing)."""
    return datetime.today().year


def default_quarter_years(span: int = 3) -> list[int]:
    """The `span` most recent years, oldest first, ending with the current one."""
    current = _current_year()
    return list(range(current - span + 1, current + 1))


def quarter_choices(years: Optional[Iterable[int]] = None) -> list[str]:
    """
    Return every selectable quarter key for the given years.

    Keys are listed year by year (in the given order), T1 to T4 within each
    year. When `years` is None, the current year and the two previous ones
    are used.
    """
    if years is None:
        years = default_quarter_years()
    return [quarter_key(int(y), q) for y in years for q in QUARTER_NUMBERS]
