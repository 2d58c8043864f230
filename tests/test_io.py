import math

import pytest

from quarterdash.io import read_indicator_records
from quarterdash.quarters import InvalidQuarterKey


def _write(tmp_path, content):
    path = tmp_path / "indicators.csv"
    path.write_text(content, encoding="utf-8")
    return path


def test_read_quarter_key_format(tmp_path):
    path = _write(
        tmp_path,
        "Quarter,EBITDA,roe,comment\n2024-T1,100.5,12,ok\n2024-T2,,13.5,\n",
    )

    df = read_indicator_records(path)

    assert list(df.columns) == ["year", "quarter_number", "ebitda", "roe"]
    assert df["year"].tolist() == [2024, 2024]
    assert df["quarter_number"].tolist() == [1, 2]
    assert df.loc[0, "ebitda"] == 100.5
    # Empty cells mean "not reported", never zero.
    assert math.isnan(df.loc[1, "ebitda"])


def test_read_year_quarter_number_format(tmp_path):
    path = _write(tmp_path, "year,quarter_number,liquidez_corrente\n2023,4,1.8\n")

    df = read_indicator_records(path)

    assert df.loc[0, "year"] == 2023
    assert df.loc[0, "quarter_number"] == 4
    assert df.loc[0, "liquidez_corrente"] == 1.8


def test_invalid_quarter_key(tmp_path):
    path = _write(tmp_path, "quarter,ebitda\n2024-Q1,1\n")
    with pytest.raises(InvalidQuarterKey):
        read_indicator_records(path)


def test_invalid_quarter_number(tmp_path):
    path = _write(tmp_path, "year,quarter_number,ebitda\n2024,5,1\n")
    with pytest.raises(InvalidQuarterKey):
        read_indicator_records(path)


def test_missing_quarter_columns(tmp_path):
    path = _write(tmp_path, "date,ebitda\n2024-01-01,1\n")
    with pytest.raises(ValueError, match="structure"):
        read_indicator_records(path)


def test_missing_indicator_columns(tmp_path):
    path = _write(tmp_path, "quarter,foo\n2024-T1,1\n")
    with pytest.raises(ValueError, match="No indicator column"):
        read_indicator_records(path)


def test_non_numeric_value(tmp_path):
    path = _write(tmp_path, "quarter,ebitda\n2024-T1,abc\n")
    with pytest.raises(ValueError, match="ebitda"):
        read_indicator_records(path)


def test_duplicate_quarter(tmp_path):
    path = _write(tmp_path, "quarter,ebitda\n2024-T1,1\n2024-T1,2\n")
    with pytest.raises(ValueError, match="2024-T1"):
        read_indicator_records(path)
