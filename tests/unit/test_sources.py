"""
Tests for Row Sources

Tests CSV loading and column spec inference from DataFrames.
"""

import numpy as np
import pandas as pd
import pytest

from mlcheck.sources import infer_column_kind, infer_column_specs, iter_rows, read_csv
from mlcheck.validation.statistics import ColumnKind, ColumnSpec


@pytest.fixture
def sample_df():
    return pd.DataFrame(
        {
            "age": [25, 32, 47],
            "income": [52_000.0, np.nan, 61_500.0],
            "city": ["boston", "austin", None],
            "active": [True, False, True],
        }
    )


def test_infer_column_kind(sample_df):
    assert infer_column_kind(sample_df["age"]) == ColumnKind.NUMERIC
    assert infer_column_kind(sample_df["income"]) == ColumnKind.NUMERIC
    assert infer_column_kind(sample_df["city"]) == ColumnKind.CATEGORICAL
    assert infer_column_kind(sample_df["active"]) == ColumnKind.CATEGORICAL


def test_infer_column_specs(sample_df):
    specs = infer_column_specs(sample_df)

    assert specs == [
        ColumnSpec("age", ColumnKind.NUMERIC, 0),
        ColumnSpec("income", ColumnKind.NUMERIC, 1),
        ColumnSpec("city", ColumnKind.CATEGORICAL, 2),
        ColumnSpec("active", ColumnKind.CATEGORICAL, 3),
    ]


def test_infer_column_specs_with_overrides(sample_df):
    specs = infer_column_specs(sample_df, kind_overrides={"age": ColumnKind.CATEGORICAL})

    assert specs[0].kind == ColumnKind.CATEGORICAL


def test_iter_rows_yields_plain_tuples(sample_df):
    rows = list(iter_rows(sample_df))

    assert len(rows) == 3
    assert rows[0] == (25, 52_000.0, "boston", True)
    assert all(isinstance(row, tuple) for row in rows)


def test_read_csv(tmp_path):
    path = tmp_path / "train.csv"
    path.write_text("a,b\n1,x\n2,y\n")

    df = read_csv(path)

    assert list(df.columns) == ["a", "b"]
    assert len(df) == 2


def test_read_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_csv(tmp_path / "nope.csv")
