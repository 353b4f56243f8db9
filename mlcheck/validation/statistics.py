"""
mlcheck - Column Statistics

Single-pass, memory-bounded statistics for tabular columns.
Statistics are used for:
- Missing value reporting
- Outlier detection (z-score over a reservoir sample)
- Class imbalance detection (category counts)
- Drift comparison between two datasets

Numeric columns keep a Welford running mean/variance, min/max and a
fixed-capacity reservoir sample (algorithm R). Categorical columns keep exact
counts for up to ``category_cardinality_cap`` distinct values; later distinct
values are folded into the synthetic "__other__" bucket.

Usage:
    spec = ColumnSpec(name="age", kind=ColumnKind.NUMERIC, position=0)
    accumulator = ColumnAccumulator.from_config(spec, config)

    for value in values:
        accumulator.observe(value)

    stats = accumulator.finalize()
    print(f"age: mean={stats.mean:.2f}, missing={stats.missing_count}")
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

import numpy as np
import pandas as pd

from mlcheck.shared.config import Settings, get_config
from mlcheck.validation.errors import AccumulatorClosed

logger = logging.getLogger(__name__)

OTHER_BUCKET = "__other__"

# Reservoir replacement draws are pulled from the generator in blocks
_UNIFORM_BLOCK = 4096


class ColumnKind(StrEnum):
    """Declared column kind."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


@dataclass(frozen=True)
class ColumnSpec:
    """Name, kind and position of one column in a row."""

    name: str
    kind: ColumnKind
    position: int


def is_missing(value: Any) -> bool:
    """Return True for the missing markers row sources produce."""
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    if isinstance(value, float | np.floating):
        return bool(np.isnan(value))
    if isinstance(value, str):
        return not value.strip()
    return False


def _to_float(value: Any) -> float | None:
    """Convert a numeric field, returning None for malformed or non-finite values."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _category_key(value: Any) -> str:
    """Normalize a categorical field so 1, 1.0 and " 1 " share a category."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float | np.floating) and float(value).is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class ColumnStats:
    """Finalized, read-only statistics for a single column."""

    name: str
    kind: ColumnKind
    position: int
    count: int  # valid (non-missing) values
    missing_count: int

    # Numerical stats (None for categorical columns or when undefined)
    mean: float | None = None
    variance: float | None = None  # sample variance (ddof=1)
    std: float | None = None
    min: float | None = None
    max: float | None = None
    sample: tuple[float, ...] = ()

    # Categorical stats
    category_counts: Mapping[str, int] = field(default_factory=dict)
    other_count: int = 0
    cardinality_capped: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "category_counts", MappingProxyType(dict(self.category_counts)))

    @property
    def rows(self) -> int:
        """Total rows observed for this column."""
        return self.count + self.missing_count

    @property
    def missing_ratio(self) -> float:
        """Share of rows that were missing or malformed."""
        return self.missing_count / self.rows if self.rows > 0 else 0.0

    @property
    def is_numeric(self) -> bool:
        return self.kind == ColumnKind.NUMERIC

    @property
    def sample_size(self) -> int:
        return len(self.sample)

    @property
    def distinct_count(self) -> int:
        """Distinct categories tracked exactly (the overflow bucket is not counted)."""
        return len(self.category_counts)

    def sample_array(self) -> np.ndarray:
        """Reservoir sample as a float64 array."""
        return np.asarray(self.sample, dtype=np.float64)

    def counts_with_other(self) -> dict[str, int]:
        """Category counts including the overflow bucket when it is non-empty."""
        counts = dict(self.category_counts)
        if self.other_count > 0:
            counts[OTHER_BUCKET] = counts.get(OTHER_BUCKET, 0) + self.other_count
        return counts

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "kind": str(self.kind),
            "position": self.position,
            "count": self.count,
            "missing_count": self.missing_count,
            "missing_ratio": self.missing_ratio,
            "mean": self.mean,
            "variance": self.variance,
            "std": self.std,
            "min": self.min,
            "max": self.max,
            "sample": list(self.sample),
            "category_counts": dict(self.category_counts),
            "other_count": self.other_count,
            "cardinality_capped": self.cardinality_capped,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ColumnStats:
        """Create ColumnStats from dictionary."""
        return cls(
            name=data["name"],
            kind=ColumnKind(data["kind"]),
            position=data["position"],
            count=data["count"],
            missing_count=data["missing_count"],
            mean=data.get("mean"),
            variance=data.get("variance"),
            std=data.get("std"),
            min=data.get("min"),
            max=data.get("max"),
            sample=tuple(data.get("sample", ())),
            category_counts=dict(data.get("category_counts", {})),
            other_count=data.get("other_count", 0),
            cardinality_capped=data.get("cardinality_capped", False),
        )


@dataclass(frozen=True)
class DatasetStats:
    """Finalized statistics for every column of one dataset."""

    dataset: str
    row_count: int
    columns: Mapping[str, ColumnStats] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))

    @property
    def num_columns(self) -> int:
        return len(self.columns)

    def get(self, name: str) -> ColumnStats | None:
        """Get statistics for a specific column."""
        return self.columns.get(name)

    def ordered(self) -> list[ColumnStats]:
        """Column statistics in column-position order."""
        return sorted(self.columns.values(), key=lambda s: s.position)

    def to_dict(self) -> dict[str, Any]:
        """Convert statistics to dictionary for JSON serialization."""
        return {
            "dataset": self.dataset,
            "row_count": self.row_count,
            "created_at": self.created_at.isoformat(),
            "columns": [s.to_dict() for s in self.ordered()],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DatasetStats:
        """Create DatasetStats from dictionary."""
        columns = [ColumnStats.from_dict(c) for c in data.get("columns", [])]
        return cls(
            dataset=data["dataset"],
            row_count=data["row_count"],
            columns={c.name: c for c in sorted(columns, key=lambda s: s.position)},
            created_at=datetime.fromisoformat(data["created_at"]),
        )


class ColumnAccumulator:
    """
    Running state for one column, fed one value per row.

    A single class covers both column kinds: ``spec.kind`` picks the update
    path once, at construction, so ``observe`` does no per-row type dispatch.

    ``observe`` never rejects a value. Missing markers and values that cannot
    be read as the column's kind are counted in ``missing_count``, so
    ``count + missing_count == rows_observed`` holds after every call.
    ``finalize`` is idempotent and closes the accumulator.
    """

    def __init__(
        self,
        spec: ColumnSpec,
        reservoir_capacity: int = 10_000,
        category_cardinality_cap: int = 1000,
        seed: int = 42,
    ):
        if reservoir_capacity < 1:
            raise ValueError(f"reservoir_capacity must be >= 1, got {reservoir_capacity}")
        if category_cardinality_cap < 1:
            raise ValueError(
                f"category_cardinality_cap must be >= 1, got {category_cardinality_cap}"
            )

        self.spec = spec
        self.rows_observed = 0
        self.missing_count = 0
        self._count = 0
        self._stats: ColumnStats | None = None

        # Numeric state
        self._mean = 0.0
        self._m2 = 0.0
        self._min = math.inf
        self._max = -math.inf
        self._capacity = reservoir_capacity
        self._reservoir: np.ndarray | None = None
        self._rng: np.random.Generator | None = None
        self._uniforms = np.empty(0, dtype=np.float64)
        self._uniform_pos = 0

        # Categorical state
        self._cardinality_cap = category_cardinality_cap
        self._categories: dict[str, int] = {}
        self._other_count = 0

        if spec.kind == ColumnKind.NUMERIC:
            self._reservoir = np.empty(reservoir_capacity, dtype=np.float64)
            # Seeded per column so columns do not share replacement positions
            self._rng = np.random.default_rng([seed, spec.position])
            self._observe_value = self._observe_numeric
        else:
            self._observe_value = self._observe_categorical

    @classmethod
    def from_config(cls, spec: ColumnSpec, config: Settings | None = None) -> ColumnAccumulator:
        """Build an accumulator sized from the validation configuration."""
        validation = (config or get_config()).validation
        return cls(
            spec,
            reservoir_capacity=validation.reservoir_capacity,
            category_cardinality_cap=validation.category_cardinality_cap,
            seed=validation.random_seed,
        )

    @property
    def count(self) -> int:
        """Valid (non-missing) values observed so far."""
        return self._count

    @property
    def closed(self) -> bool:
        return self._stats is not None

    @property
    def reservoir_size(self) -> int:
        return min(self._count, self._capacity) if self._reservoir is not None else 0

    def observe(self, value: Any) -> None:
        """Record one row's value for this column."""
        if self._stats is not None:
            raise AccumulatorClosed(self.spec.name)

        self.rows_observed += 1
        if is_missing(value):
            self.missing_count += 1
            return
        self._observe_value(value)

    def finalize(self) -> ColumnStats:
        """Close the accumulator and return its statistics snapshot."""
        if self._stats is None:
            if self.spec.kind == ColumnKind.NUMERIC:
                self._stats = self._numeric_stats()
            else:
                self._stats = self._categorical_stats()
            logger.debug(
                f"Finalized column {self.spec.name}: {self._count} valid, "
                f"{self.missing_count} missing",
                extra={"column": self.spec.name, "kind": str(self.spec.kind)},
            )
        return self._stats

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _observe_numeric(self, value: Any) -> None:
        number = _to_float(value)
        if number is None:
            self.missing_count += 1
            return

        self._count += 1
        n = self._count

        # Welford update
        delta = number - self._mean
        self._mean += delta / n
        self._m2 += delta * (number - self._mean)
        if self._m2 < 0.0:
            self._m2 = 0.0

        if number < self._min:
            self._min = number
        if number > self._max:
            self._max = number

        # Algorithm R
        if n <= self._capacity:
            self._reservoir[n - 1] = number
        else:
            slot = int(self._next_uniform() * n)
            if slot < self._capacity:
                self._reservoir[slot] = number

    def _next_uniform(self) -> float:
        if self._uniform_pos >= len(self._uniforms):
            self._uniforms = self._rng.random(_UNIFORM_BLOCK)
            self._uniform_pos = 0
        u = self._uniforms[self._uniform_pos]
        self._uniform_pos += 1
        return float(u)

    def _observe_categorical(self, value: Any) -> None:
        key = _category_key(value)
        counts = self._categories
        if key in counts:
            counts[key] += 1
        elif len(counts) < self._cardinality_cap:
            counts[key] = 1
        else:
            self._other_count += 1
        self._count += 1

    def _numeric_stats(self) -> ColumnStats:
        n = self._count
        if n == 0:
            return ColumnStats(
                name=self.spec.name,
                kind=self.spec.kind,
                position=self.spec.position,
                count=0,
                missing_count=self.missing_count,
            )

        variance = self._m2 / (n - 1) if n > 1 else 0.0
        size = min(n, self._capacity)
        return ColumnStats(
            name=self.spec.name,
            kind=self.spec.kind,
            position=self.spec.position,
            count=n,
            missing_count=self.missing_count,
            mean=self._mean,
            variance=variance,
            std=math.sqrt(variance),
            min=self._min,
            max=self._max,
            sample=tuple(self._reservoir[:size].tolist()),
        )

    def _categorical_stats(self) -> ColumnStats:
        # Most frequent first, ties broken by category for a stable order
        ordered = sorted(self._categories.items(), key=lambda kv: (-kv[1], kv[0]))
        return ColumnStats(
            name=self.spec.name,
            kind=self.spec.kind,
            position=self.spec.position,
            count=self._count,
            missing_count=self.missing_count,
            category_counts=dict(ordered),
            other_count=self._other_count,
            cardinality_capped=self._other_count > 0,
        )
