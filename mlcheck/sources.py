"""
mlcheck - Row Sources

Turn pandas DataFrames (and CSV files) into what the validation engine
consumes: an ordered ColumnSpec set plus a stream of plain row tuples.

Usage:
    df = read_csv("data/train.csv")
    specs = infer_column_specs(df, kind_overrides={"zip_code": ColumnKind.CATEGORICAL})
    stats = engine.collect(specs, iter_rows(df))
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import pandas as pd

from mlcheck.validation.statistics import ColumnKind, ColumnSpec

logger = logging.getLogger(__name__)


def read_csv(path: str | Path) -> pd.DataFrame:
    """
    Read a CSV file with a header row.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")

    df = pd.read_csv(path)
    logger.info(
        f"Loaded {len(df)} records from {path}",
        extra={"path": str(path), "rows": len(df), "columns": len(df.columns)},
    )
    return df


def infer_column_kind(series: pd.Series) -> ColumnKind:
    """Numeric dtypes (except bool) are numeric; everything else is categorical."""
    if pd.api.types.is_bool_dtype(series):
        return ColumnKind.CATEGORICAL
    if pd.api.types.is_numeric_dtype(series):
        return ColumnKind.NUMERIC
    return ColumnKind.CATEGORICAL


def infer_column_specs(
    df: pd.DataFrame,
    kind_overrides: Mapping[str, ColumnKind] | None = None,
) -> list[ColumnSpec]:
    """
    Build column specs from a DataFrame's columns and dtypes.

    Args:
        df: Source DataFrame
        kind_overrides: Column name -> kind replacing the inferred kind

    Returns:
        One ColumnSpec per column, in column order
    """
    overrides = kind_overrides or {}
    return [
        ColumnSpec(
            name=str(name),
            kind=ColumnKind(overrides.get(str(name), infer_column_kind(df.iloc[:, position]))),
            position=position,
        )
        for position, name in enumerate(df.columns)
    ]


def iter_rows(df: pd.DataFrame) -> Iterator[tuple[Any, ...]]:
    """Yield each DataFrame row as a plain tuple in column order."""
    return df.itertuples(index=False, name=None)
