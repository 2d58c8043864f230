# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period-over-period comparisons for quarterly indicators.

Given the list of quarterly records of one company, the functions in this
module look up, for one indicator field, the value reported in the quarter
just before the current one and in the same quarter of the previous year.

Records can be any object exposing ``year``, ``quarter_number`` and the
indicator attributes (e.g. ``IndicatorRecord`` from db.py) or plain mappings
with the same keys (rows coming from a CSV file or a DataFrame).

Two anchoring strategies are provided:

- ``compare()`` locates the current record by *value*: the first record (most
  recent first) whose field equals the current value. Two quarters reporting
  the exact same value cannot be told apart, in which case the most recent
  one is used.
- ``compare_record()`` locates the current record by its (year, quarter)
  identity, which is unambiguous.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Sequence


@dataclass(frozen=True)
class PeriodComparison:
    """Values of one indicator in the reference periods of a quarter."""

    previous_quarter_value: Optional[float] = None
    same_quarter_last_year_value: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return (
            self.previous_quarter_value is not None
            or self.same_quarter_last_year_value is not None
        )


NO_COMPARISON = PeriodComparison()


def _get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def field_value(record: Any, field: str) -> Optional[float]:
    """Value of `field` on `record`, with NaN normalized to None."""
    value = _get(record, field)
    if value is None:
        return None
    # NaN cells coming from pandas mean "not reported".
    if isinstance(value, float) and value != value:
        return None
    return value


def _sort_key(record: Any) -> tuple[int, int]:
    return (int(_get(record, "year")), int(_get(record, "quarter_number")))


def sort_records_desc(records: Sequence[Any]) -> list[Any]:
    """
    Return a new list of records, most recent quarter first.

    Records are sorted by year, then quarter number, both descending. The sort
    is stable: records sharing the same (year, quarter) keep their relative
    order.
    """
    return sorted(records, key=_sort_key, reverse=True)


def _comparison_from(ordered: list[Any], index: int, field: str) -> PeriodComparison:
    match = ordered[index]

    previous_value: Optional[float] = None
    if index + 1 < len(ordered):
        previous_value = field_value(ordered[index + 1], field)

    target_year = int(_get(match, "year")) - 1
    target_quarter = int(_get(match, "quarter_number"))
    last_year_value: Optional[float] = None
    for record in ordered:
        if _sort_key(record) == (target_year, target_quarter):
            last_year_value = field_value(record, field)
            break

    return PeriodComparison(
        previous_quarter_value=previous_value,
        same_quarter_last_year_value=last_year_value,
    )


def compare(records: Sequence[Any], field: str, current_value: Optional[float]) -> PeriodComparison:
    """
    Compare `current_value` of `field` with its previous-period values.

    Parameters
    ----------
    records:
        All quarterly records of one company, in any order. The sequence is
        not modified.
    field:
        Indicator field name (e.g. 'ebitda').
    current_value:
        Value of `field` in the current record. The current record is located
        as the most recent record whose `field` equals this value.

    Returns
    -------
    PeriodComparison
        - previous_quarter_value: value of `field` in the record immediately
          following the match in descending (year, quarter) order, or None if
          the match is the oldest record.
        - same_quarter_last_year_value: value of `field` in the record with
          year = match.year - 1 and the same quarter number, or None.

        When `current_value` is missing or zero, or no record carries that
        value, both values are None.
    """
    if not current_value:
        return NO_COMPARISON

    ordered = sort_records_desc(records)
    for index, record in enumerate(ordered):
        if field_value(record, field) == current_value:
            return _comparison_from(ordered, index, field)

    return NO_COMPARISON


def compare_record(records: Sequence[Any], field: str, record: Any) -> PeriodComparison:
    """
    Compare `field` of `record` with its previous-period values.

    Unlike ``compare()``, the current record is located by its
    (year, quarter_number) identity, so equal values reported in different
    quarters cannot be confused. If no record of `records` has the same
    quarter, both values are None.
    """
    anchor = _sort_key(record)
    ordered = sort_records_desc(records)
    for index, candidate in enumerate(ordered):
        if _sort_key(candidate) == anchor:
            return _comparison_from(ordered, index, field)

    return NO_COMPARISON


def percent_change(current: Optional[float], reference: Optional[float]) -> Optional[float]:
    """
    Relative variation of `current` versus `reference`, in percent.

    Returns None when either value is missing or when `reference` is zero.
    The variation is computed against the absolute reference so that a loss
    shrinking from -10 to -5 reads as +50%.
    """
    if current is None or reference is None or reference == 0:
        return None
    return (current - reference) / abs(reference) * 100.0
