# QuarterDash - Quarterly financial indicators dashboard
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for QuarterDash.

This module handles reading quarterly indicator records from a CSV file and
normalizing them into a consistent structure suitable for import into the
database.

Expected input formats
----------------------

Two ways of identifying the quarter are supported (column names are
case-insensitive):

1) Quarter key
   -----------
       quarter, <indicator>, <indicator>, ...

   - ``quarter``: quarter key 'YYYY-Tn' (e.g. '2024-T1').

2) Year and quarter number
   -----------------------
       year, quarter_number, <indicator>, ...

Indicator columns must be named after catalog fields (e.g. ``ebitda``,
``roe``). Other columns are ignored. Empty cells are kept as missing values:
they mean "not reported", not zero.

Output schema
-------------
Regardless of the input format, this function returns a pandas DataFrame with
the following columns:

    - ``year``           (int)
    - ``quarter_number`` (int)
    - one float column per indicator present in the file, in catalog order.
"""

import os
from typing import Union

import pandas as pd

from .catalog import INDICATOR_FIELDS
from .quarters import InvalidQuarterKey, parse_quarter_key, quarter_key


def read_indicator_records(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read quarterly indicator records from a CSV file and normalize them.

    Returns
    -------
    pandas.DataFrame
        Columns: year, quarter_number, then the indicator columns found in the
        file (catalog order).

    Raises
    ------
    InvalidQuarterKey
        If a quarter key or a (year, quarter_number) pair is malformed.
    ValueError
        If the CSV has no quarter columns, no indicator column, a non-numeric
        indicator value, or the same quarter twice.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)

    # Normalize column names to lowercase (to make the check case-insensitive)
    df.columns = [c.lower().strip() for c in df.columns]
    cols = set(df.columns)

    # ----- Quarter identification ---------------------------------------------
    if "quarter" in cols:
        parsed = [parse_quarter_key(value) for value in df["quarter"]]
        years = [q.year for q in parsed]
        quarter_numbers = [q.quarter_number for q in parsed]
    elif {"year", "quarter_number"}.issubset(cols):
        years = []
        quarter_numbers = []
        for raw_year, raw_quarter in zip(df["year"], df["quarter_number"]):
            try:
                year = int(str(raw_year).strip())
                quarter_number = int(str(raw_quarter).strip())
            except ValueError as exc:
                raise InvalidQuarterKey(
                    f"Invalid year/quarter_number: {raw_year!r}/{raw_quarter!r}."
                ) from exc
            # Validates the pair.
            quarter_key(year, quarter_number)
            years.append(year)
            quarter_numbers.append(quarter_number)
    else:
        raise ValueError(
            "Invalid indicator records structure. Expected either:\n"
            "  - quarter, <indicators...>\n"
            "  - year, quarter_number, <indicators...>\n"
            "(column names are case-insensitive)."
        )

    indicator_columns = [name for name in INDICATOR_FIELDS if name in cols]
    if not indicator_columns:
        raise ValueError("No indicator column found in the CSV file.")

    out = pd.DataFrame({"year": years, "quarter_number": quarter_numbers}, dtype="int64")

    for name in indicator_columns:
        raw = df[name].str.strip()
        blank = raw == ""
        numeric = pd.to_numeric(raw.where(~blank), errors="coerce")
        if (numeric.isna() & ~blank).any():
            raise ValueError(f"Invalid numeric values in {name!r} column.")
        out[name] = numeric.astype(float).to_numpy()

    duplicated = out.duplicated(subset=["year", "quarter_number"])
    if duplicated.any():
        first = out.loc[duplicated].iloc[0]
        key = quarter_key(int(first["year"]), int(first["quarter_number"]))
        raise ValueError(f"Quarter {key} appears more than once in the CSV file.")

    return out
