"""
mlcheck - Drift Comparator

Detect distribution drift between a training set and a held-out/test set using
the Population Stability Index (PSI):

    PSI = sum over bins of (test_pct - train_pct) * ln(test_pct / train_pct)

- Numeric columns: both reservoir samples are binned on the same edges, the
  train-sample quantiles (drift_bin_count bins).
- Categorical columns: categories are the bins; categories never seen in train
  get the epsilon train proportion.

Zero proportions are floored at psi_epsilon so the logarithm stays finite.
Severity bands follow the usual PSI convention:
- PSI < 0.1: No significant change
- PSI 0.1-0.25: Moderate change (warning)
- PSI > 0.25: Significant change (critical)

Usage:
    comparator = DriftComparator(config)

    finding = comparator.compare(train_stats.get("income"), test_stats.get("income"))
    if finding is not None and finding.severity == Severity.CRITICAL:
        print(f"CRITICAL DRIFT: {finding.message}")
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from scipy import stats as scipy_stats

from mlcheck.shared.config import Settings, get_config
from mlcheck.validation.errors import SchemaMismatch
from mlcheck.validation.findings import (
    Finding,
    FindingKind,
    Severity,
    SkippedCheck,
    SkipReason,
)
from mlcheck.validation.statistics import ColumnStats, DatasetStats

logger = logging.getLogger(__name__)

DRIFT_CHECK = "drift"

# Bins reported as the largest PSI contributors
_TOP_CONTRIBUTORS = 5


def calculate_psi(train_pct: Any, test_pct: Any, epsilon: float = 1e-4) -> float:
    """
    Calculate the Population Stability Index between two binned distributions.

    Args:
        train_pct: Per-bin proportions of the reference (train) data
        test_pct: Per-bin proportions of the compared (test) data
        epsilon: Floor substituted for zero proportions

    Returns:
        PSI (always >= 0)
    """
    terms = _psi_terms(
        np.asarray(train_pct, dtype=np.float64),
        np.asarray(test_pct, dtype=np.float64),
        epsilon,
    )
    return float(np.sum(terms))


def _psi_terms(train_pct: np.ndarray, test_pct: np.ndarray, epsilon: float) -> np.ndarray:
    train = np.maximum(train_pct, epsilon)
    test = np.maximum(test_pct, epsilon)
    return (test - train) * np.log(test / train)


def _bin_proportions(values: np.ndarray, edges: np.ndarray) -> np.ndarray:
    """Share of values per right-closed bin (-inf, e1], (e1, e2], ..., (ek, +inf)."""
    indices = np.searchsorted(edges, values, side="left")
    counts = np.bincount(indices, minlength=len(edges) + 1)
    return counts / len(values)


class DriftComparator:
    """
    Compare one column's finalized statistics across two datasets.

    Both sides must describe the same column (same name and kind); anything
    else is a caller error and raises SchemaMismatch.
    """

    def __init__(self, config: Settings | None = None):
        """
        Initialize drift comparator.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()

        # Thresholds from config
        self.psi_warning_threshold = self.config.drift.psi.warning
        self.psi_critical_threshold = self.config.drift.psi.critical
        self.bin_count = self.config.drift.drift_bin_count
        self.epsilon = self.config.drift.psi_epsilon

    def skip_reason(self, train: ColumnStats, test: ColumnStats) -> SkipReason | None:
        """
        Return why the comparison cannot run, or None.

        Raises:
            SchemaMismatch: If the two sides are different columns or kinds
        """
        if train.name != test.name:
            raise SchemaMismatch(
                train.name, str(train.kind), str(test.kind), test_column=test.name
            )
        if train.kind != test.kind:
            raise SchemaMismatch(train.name, str(train.kind), str(test.kind))
        if train.count == 0 or test.count == 0:
            return SkipReason.INSUFFICIENT_DATA
        return None

    def compare(self, train: ColumnStats, test: ColumnStats) -> Finding | None:
        """
        Compare train and test distributions of one column.

        Args:
            train: Finalized statistics of the reference (train) column
            test: Finalized statistics of the same column in the test data

        Returns:
            A drift Finding, or None when PSI is below the warning threshold
            or either side has no valid values

        Raises:
            SchemaMismatch: If the two sides are different columns or kinds
        """
        if self.skip_reason(train, test) is not None:
            return None

        if train.is_numeric:
            psi, payload = self._numeric_drift(train, test)
        else:
            psi, payload = self._categorical_drift(train, test)

        severity = self._get_severity(psi)
        if severity is None:
            return None

        return Finding(
            kind=FindingKind.DRIFT,
            column=train.name,
            position=train.position,
            severity=severity,
            score=psi,
            message=f"Column '{train.name}' drifted between train and test (PSI {psi:.3f})",
            payload=payload,
        )

    def compare_column(
        self,
        train_stats: DatasetStats,
        test_stats: DatasetStats,
        column: str,
    ) -> tuple[Finding | None, SkippedCheck | None]:
        """
        Compare one named column of two datasets, absorbing non-fatal conditions.

        A SchemaMismatch is fatal to this column's comparison only: it is
        logged and returned as a skipped check.
        """
        train = train_stats.get(column)
        test = test_stats.get(column)
        if train is None:
            return None, SkippedCheck(column, DRIFT_CHECK, SkipReason.MISSING_IN_TRAIN)
        if test is None:
            return None, SkippedCheck(column, DRIFT_CHECK, SkipReason.MISSING_IN_TEST)

        try:
            reason = self.skip_reason(train, test)
        except SchemaMismatch as e:
            logger.warning(
                f"Skipping drift for column {column}: {e}",
                extra={"column": column, "train_kind": e.train_kind, "test_kind": e.test_kind},
            )
            return None, SkippedCheck(column, DRIFT_CHECK, SkipReason.SCHEMA_MISMATCH, str(e))

        if reason is not None:
            logger.debug(f"Skipping drift for column {column}: {reason}")
            return None, SkippedCheck(column, DRIFT_CHECK, reason)

        return self.compare(train, test), None

    def quantile_edges(self, train_sample: np.ndarray) -> np.ndarray:
        """Interior bin edges: train-sample quantiles, duplicates collapsed."""
        probabilities = np.linspace(0.0, 1.0, self.bin_count + 1)[1:-1]
        return np.unique(np.quantile(train_sample, probabilities))

    def _get_severity(self, psi: float) -> Severity | None:
        """Get severity level from PSI value."""
        if psi > self.psi_critical_threshold:
            return Severity.CRITICAL
        elif psi >= self.psi_warning_threshold:
            return Severity.WARNING
        return None

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _numeric_drift(self, train: ColumnStats, test: ColumnStats) -> tuple[float, dict[str, Any]]:
        """PSI over quantile bins of the two reservoir samples."""
        train_sample = train.sample_array()
        test_sample = test.sample_array()

        edges = self.quantile_edges(train_sample)
        train_pct = _bin_proportions(train_sample, edges)
        test_pct = _bin_proportions(test_sample, edges)
        terms = _psi_terms(train_pct, test_pct, self.epsilon)
        psi = float(np.sum(terms))

        ks = scipy_stats.ks_2samp(train_sample, test_sample)

        labels = _interval_labels(edges)
        payload = {
            "column_kind": str(train.kind),
            "psi": psi,
            "bin_edges": edges.tolist(),
            "train_pct": train_pct.tolist(),
            "test_pct": test_pct.tolist(),
            "top_contributors": _top_contributors(labels, terms),
            "ks_statistic": float(ks.statistic),
            "ks_pvalue": float(ks.pvalue),
            "train_mean": train.mean,
            "test_mean": test.mean,
            "train_std": train.std,
            "test_std": test.std,
            "train_sample_size": train.sample_size,
            "test_sample_size": test.sample_size,
        }
        return psi, payload

    def _categorical_drift(
        self, train: ColumnStats, test: ColumnStats
    ) -> tuple[float, dict[str, Any]]:
        """PSI over categories, with test-only categories appended as extra bins."""
        train_counts = train.counts_with_other()
        test_counts = test.counts_with_other()

        categories = list(train_counts) + [c for c in test_counts if c not in train_counts]
        train_freq = np.array([train_counts.get(c, 0) for c in categories], dtype=np.float64)
        test_freq = np.array([test_counts.get(c, 0) for c in categories], dtype=np.float64)
        train_pct = train_freq / train_freq.sum()
        test_pct = test_freq / test_freq.sum()

        terms = _psi_terms(train_pct, test_pct, self.epsilon)
        psi = float(np.sum(terms))

        payload: dict[str, Any] = {
            "column_kind": str(train.kind),
            "psi": psi,
            "categories": categories,
            "train_pct": train_pct.tolist(),
            "test_pct": test_pct.tolist(),
            "top_contributors": _top_contributors(categories, terms),
            "unseen_in_train": [c for c in test_counts if c not in train_counts],
            "train_unique": len(train_counts),
            "test_unique": len(test_counts),
        }

        if len(categories) >= 2:
            chi2, pvalue, _, _ = scipy_stats.chi2_contingency(np.vstack([train_freq, test_freq]))
            payload["chi2_statistic"] = float(chi2)
            payload["chi2_pvalue"] = float(pvalue)

        return psi, payload


def _interval_labels(edges: np.ndarray) -> list[str]:
    bounds = [float("-inf"), *edges.tolist(), float("inf")]
    return [f"({lo:g}, {hi:g}]" for lo, hi in zip(bounds[:-1], bounds[1:], strict=True)]


def _top_contributors(labels: list[str], terms: np.ndarray) -> list[dict[str, Any]]:
    """Bins with the largest PSI terms, largest first."""
    order = np.argsort(-terms, kind="stable")[:_TOP_CONTRIBUTORS]
    return [{"bin": labels[i], "psi": float(terms[i])} for i in order if terms[i] > 0]


# =============================================================================
# Convenience Functions
# =============================================================================


def check_drift(
    train_stats: DatasetStats,
    test_stats: DatasetStats,
    config: Settings | None = None,
) -> list[Finding]:
    """
    Convenience function to check every shared column for drift.

    Args:
        train_stats: Finalized statistics of the reference (train) dataset
        test_stats: Finalized statistics of the test dataset
        config: Configuration object

    Returns:
        Drift findings in train column order
    """
    comparator = DriftComparator(config)

    findings = []
    for column in train_stats.ordered():
        if test_stats.get(column.name) is None:
            continue
        finding, _ = comparator.compare_column(train_stats, test_stats, column.name)
        if finding is not None:
            findings.append(finding)
    return findings
