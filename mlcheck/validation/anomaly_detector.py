"""
mlcheck - Anomaly Detectors

Single-dataset checks over finalized column statistics:
- Missing value ratios (every column)
- Statistical outliers (numeric columns, z-score over the reservoir sample)
- Duplicate rows (dataset level, fed row by row during collection)

Usage:
    detector = OutlierDetector(config)

    for stats in dataset_stats.ordered():
        for finding in detector.detect(stats):
            print(f"{finding.severity}: {finding.message}")
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Collection, Sequence
from typing import Any

import numpy as np

from mlcheck.shared.config import Settings, get_config
from mlcheck.validation.findings import (
    DATASET_COLUMN,
    DATASET_POSITION,
    Finding,
    FindingKind,
    Severity,
    SkipReason,
)
from mlcheck.validation.statistics import ColumnStats, DatasetStats, is_missing

logger = logging.getLogger(__name__)


class MissingValueDetector:
    """Report columns with missing or malformed values."""

    def __init__(self, config: Settings | None = None):
        """
        Initialize missing value detector.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.warning_ratio = self.config.validation.missing_warning_ratio
        self.critical_ratio = self.config.validation.missing_critical_ratio

    def skip_reason(self, stats: ColumnStats) -> SkipReason | None:
        if stats.rows == 0:
            return SkipReason.INSUFFICIENT_DATA
        return None

    def detect(self, stats: ColumnStats, is_label: bool = False) -> list[Finding]:
        """
        Detect missing values in one column.

        Any missing value yields a finding. Missing values in a label column
        are always at least a warning.
        """
        if self.skip_reason(stats) is not None or stats.missing_count == 0:
            return []

        ratio = stats.missing_ratio
        if ratio > self.critical_ratio:
            severity = Severity.CRITICAL
        elif ratio > self.warning_ratio or is_label:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO

        where = "label column" if is_label else "column"
        return [
            Finding(
                kind=FindingKind.MISSING_VALUES,
                column=stats.name,
                position=stats.position,
                severity=severity,
                score=ratio,
                message=f"{where.capitalize()} '{stats.name}' has {stats.missing_count} "
                f"missing values ({ratio:.1%})",
                payload={
                    "missing_count": stats.missing_count,
                    "missing_ratio": ratio,
                    "rows": stats.rows,
                    "is_label": is_label,
                },
            )
        ]


class OutlierDetector:
    """
    Flag extreme values in a numeric column by z-score.

    The z-score of a value is ``|value - mean| / std`` using the full-column
    mean and standard deviation. Only members of the column's reservoir sample
    can be flagged, so when a column holds more valid values than the
    reservoir capacity some outliers go unreported: recall is bounded by
    ``sample_size / count``. The ``exhaustive`` payload flag tells callers
    whether the sample covered the whole column.
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize outlier detector.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()

        # Thresholds from config
        self.zscore_threshold = self.config.validation.outlier_zscore_threshold
        self.critical_zscore = self.config.validation.outlier_critical_zscore
        self.min_rows = self.config.validation.min_rows_for_outlier_detection
        self.max_findings = self.config.validation.max_outliers_per_column

    def skip_reason(self, stats: ColumnStats) -> SkipReason | None:
        """Return why detection cannot run on this column, or None."""
        if not stats.is_numeric:
            return SkipReason.NOT_APPLICABLE
        if stats.count < self.min_rows or not stats.std:
            return SkipReason.INSUFFICIENT_DATA
        return None

    def detect(self, stats: ColumnStats) -> list[Finding]:
        """
        Detect outliers in one numeric column.

        Args:
            stats: Finalized column statistics

        Returns:
            Findings ordered by |z| descending, at most max_outliers_per_column
        """
        if self.skip_reason(stats) is not None:
            return []

        sample = stats.sample_array()
        z_scores = (sample - stats.mean) / stats.std
        abs_z = np.abs(z_scores)

        flagged = np.flatnonzero(abs_z > self.zscore_threshold)
        if flagged.size == 0:
            return []

        # Most extreme first; stable sort keeps sample order for ties
        flagged = flagged[np.argsort(-abs_z[flagged], kind="stable")]
        exhaustive = stats.sample_size == stats.count

        findings = []
        for index in flagged[: self.max_findings]:
            z = float(z_scores[index])
            value = float(sample[index])
            severity = Severity.CRITICAL if abs(z) > self.critical_zscore else Severity.WARNING
            findings.append(
                Finding(
                    kind=FindingKind.OUTLIER,
                    column=stats.name,
                    position=stats.position,
                    severity=severity,
                    score=abs(z),
                    message=f"Value {value:g} in '{stats.name}' is {abs(z):.1f} "
                    f"standard deviations from the mean",
                    payload={
                        "value": value,
                        "z_score": z,
                        "mean": stats.mean,
                        "std": stats.std,
                        "sample_size": stats.sample_size,
                        "flagged_in_sample": int(flagged.size),
                        "exhaustive": exhaustive,
                    },
                )
            )

        if flagged.size > self.max_findings:
            logger.debug(
                f"Column {stats.name}: {flagged.size} outliers in sample, "
                f"reporting the {self.max_findings} most extreme",
                extra={"column": stats.name, "flagged": int(flagged.size)},
            )

        return findings


def _row_key(row: Sequence[Any]) -> bytes:
    """Digest a row with missing markers normalized to None and numpy scalars unwrapped."""
    normalized = tuple(
        None if is_missing(v) else v.item() if isinstance(v, np.generic) else v for v in row
    )
    return hashlib.blake2b(repr(normalized).encode(), digest_size=16).digest()


class DuplicateRowDetector:
    """
    Count rows identical to an earlier row.

    Rows are remembered as 128-bit BLAKE2b digests of their normalized repr,
    in a set holding at most ``duplicate_tracking_cap`` entries. Once the set
    is full, new distinct rows are no longer remembered and the duplicate
    count becomes a lower bound (``exact`` is False).
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or get_config()
        self.tracking_cap = self.config.validation.duplicate_tracking_cap
        self.rows_observed = 0
        self.duplicate_count = 0
        self.saturated = False
        self._seen: set[bytes] = set()

    def observe(self, row: Sequence[Any]) -> None:
        """Record one row."""
        self.rows_observed += 1
        key = _row_key(row)
        if key in self._seen:
            self.duplicate_count += 1
        elif len(self._seen) < self.tracking_cap:
            self._seen.add(key)
        else:
            self.saturated = True

    def detect(self) -> list[Finding]:
        """Detect duplicate rows among everything observed so far."""
        if self.duplicate_count == 0:
            return []

        dup_ratio = self.duplicate_count / self.rows_observed
        if dup_ratio > 0.1:
            severity = Severity.CRITICAL
        elif dup_ratio > 0.01:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO

        qualifier = "at least " if self.saturated else ""
        return [
            Finding(
                kind=FindingKind.DUPLICATE_ROWS,
                column=DATASET_COLUMN,
                position=DATASET_POSITION,
                severity=severity,
                score=dup_ratio,
                message=f"Found {qualifier}{self.duplicate_count} duplicate rows ({dup_ratio:.2%})",
                payload={
                    "duplicate_count": self.duplicate_count,
                    "duplicate_ratio": dup_ratio,
                    "rows": self.rows_observed,
                    "exact": not self.saturated,
                },
            )
        ]


# =============================================================================
# Convenience Functions
# =============================================================================


def detect_anomalies(
    stats: DatasetStats,
    config: Settings | None = None,
    label_columns: Collection[str] = (),
) -> list[Finding]:
    """
    Convenience function to run the missing value and outlier detectors.

    Args:
        stats: Finalized dataset statistics
        config: Configuration object
        label_columns: Columns whose missing values are escalated

    Returns:
        Findings in column order
    """
    missing = MissingValueDetector(config)
    outliers = OutlierDetector(config)

    findings: list[Finding] = []
    for column in stats.ordered():
        findings.extend(missing.detect(column, is_label=column.name in label_columns))
        findings.extend(outliers.detect(column))
    return findings
